import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from botdesk.api.server import create_app
from botdesk.app import BotDeskApp

from conftest import FakeBot

WHATSAPP_DELIVERY = {
    "object": "whatsapp_business_account",
    "entry": [
        {
            "id": "WABA",
            "changes": [
                {
                    "field": "messages",
                    "value": {
                        "contacts": [{"wa_id": "15550001", "profile": {"name": "Alice"}}],
                        "messages": [
                            {"from": "15550001", "id": "wamid.1", "type": "text", "text": {"body": "xyzzy plugh"}}
                        ],
                    },
                }
            ],
        }
    ],
}


@pytest.fixture
def client(app_config):
    with TestClient(create_app(BotDeskApp(app_config))) as test_client:
        yield test_client


def settle(client):
    """Wait for webhook deliveries dispatched after the acknowledgment."""
    client.portal.call(client.app.state.botdesk.drain)


def deliver(client, path, payload):
    response = client.post(path, json=payload)
    settle(client)
    return response


@pytest.mark.parametrize("channel, token", [("whatsapp", "wa-verify"), ("messenger", "fb-verify")])
def test_verification_handshake(client, channel, token):
    params = {"hub.mode": "subscribe", "hub.verify_token": token, "hub.challenge": "12345"}
    ok = client.get(f"/webhook/{channel}", params=params)
    assert ok.status_code == 200
    assert ok.text == "12345"

    rejected = client.get(f"/webhook/{channel}", params={**params, "hub.verify_token": "nope"})
    assert rejected.status_code == 403


def test_whatsapp_delivery_runs_pipeline(client):
    response = deliver(client, "/webhook/whatsapp", WHATSAPP_DELIVERY)
    assert response.status_code == 200
    assert response.text == "OK"

    conversations = client.get("/api/conversations").json()
    assert len(conversations) == 1
    assert conversations[0]["userName"] == "Alice"
    assert conversations[0]["messagesCount"] == 2

    thread = client.get(f"/api/conversations/{conversations[0]['id']}/messages").json()
    assert [m["sender"] for m in thread] == ["user", "bot"]
    assert thread[1]["responseTime"] is not None

    stats = client.get("/api/dashboard/stats").json()
    assert stats["totalMessages"] == 1
    assert stats["activeUsers"] == 1
    assert stats["responseRate"] == 100

    # no WhatsApp credentials configured: delivery is skipped with a warning
    levels = [entry["level"] for entry in client.get("/api/logs").json()]
    assert "warn" in levels


def test_telegram_delivery(client):
    update = {
        "update_id": 1,
        "message": {"message_id": 3, "from": {"id": 501, "first_name": "Ada"}, "chat": {"id": 501}, "text": "hello"},
    }
    assert deliver(client, "/webhook/telegram", update).status_code == 200
    conversations = client.get("/api/conversations").json()
    assert conversations[0]["userId"] == "501"


def test_undecodable_envelope_is_rejected_without_mutation(client):
    response = client.post("/webhook/whatsapp", json={"entry": "nope"})
    settle(client)
    assert response.status_code == 400
    assert response.json()["channel"] == "whatsapp"
    assert client.get("/api/conversations").json() == []


def test_invalid_json_is_rejected(client):
    response = client.post(
        "/webhook/messenger", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400


def test_bot_config_patch_validates_threshold(client):
    assert client.get("/api/bot/config").json()["confidenceThreshold"] == 75
    assert client.patch("/api/bot/config", json={"confidenceThreshold": 150}).status_code == 400

    updated = client.patch("/api/bot/config", json={"confidenceThreshold": 90})
    assert updated.status_code == 200
    assert updated.json()["confidenceThreshold"] == 90


def test_null_fields_are_rejected_before_any_change(client):
    before = client.get("/api/bot/config").json()

    response = client.patch("/api/bot/config", json={"confidenceThreshold": None})
    assert response.status_code == 400
    assert client.patch("/api/bot/config", json={"fallbackMessage": None, "tone": "friendly"}).status_code == 400
    assert client.get("/api/bot/config").json() == before

    template_id = client.get("/api/templates").json()[0]["id"]
    assert client.patch(f"/api/templates/{template_id}", json={"name": None}).status_code == 400

    # credentials may be cleared
    platform = client.post("/api/platforms", json={"name": "messenger", "apiKey": "page-token"}).json()
    cleared = client.patch(f"/api/platforms/{platform['id']}", json={"apiKey": None})
    assert cleared.status_code == 200
    assert cleared.json()["apiKey"] is None
    assert client.patch(f"/api/platforms/{platform['id']}", json={"config": None}).status_code == 400

    # the pipeline still answers with the unchanged threshold
    assert deliver(client, "/webhook/whatsapp", WHATSAPP_DELIVERY).status_code == 200
    assert [m["sender"] for m in client.get("/api/messages/recent").json()] == ["bot", "user"]


def test_bot_test_surface(client):
    reply = client.post("/api/bot/test", json={"message": "xyzzy plugh"}).json()
    assert reply["response"] == "Thank you for your message. How can I assist you today?"
    assert reply["confidence"] == 75
    assert reply["intent"] == "general_inquiry"

    assert client.post("/api/bot/test", json={}).status_code == 400
    assert client.get("/api/conversations").json() == []


def test_platform_routes(client):
    created = client.post("/api/platforms", json={"name": "telegram", "status": "active"})
    assert created.status_code == 201
    platform_id = created.json()["id"]

    assert client.post("/api/platforms", json={"name": "telegram"}).status_code == 400
    assert client.post("/api/platforms", json={"name": "fax"}).status_code == 400

    patched = client.patch(f"/api/platforms/{platform_id}", json={"status": "inactive"})
    assert patched.json()["status"] == "inactive"
    assert client.patch("/api/platforms/999", json={"status": "active"}).status_code == 404
    assert [p["name"] for p in client.get("/api/platforms").json()] == ["telegram"]


def test_template_routes(client):
    seeded = client.get("/api/templates").json()
    assert len(seeded) == 3

    created = client.post(
        "/api/templates",
        json={"name": "Ship", "category": "delivery_inquiry", "content": "Order {orderNumber} is on its way"},
    )
    assert created.status_code == 201
    template = created.json()
    assert template["variables"] == ["orderNumber"]
    assert template["usageCount"] == 0

    patched = client.patch(f"/api/templates/{template['id']}", json={"isActive": False})
    assert patched.json()["isActive"] is False

    assert client.delete(f"/api/templates/{template['id']}").status_code == 204
    assert client.delete(f"/api/templates/{template['id']}").status_code == 404


def test_missing_conversation_is_404(client):
    assert client.get("/api/conversations/999/messages").status_code == 404


def test_recent_messages_limit(client):
    deliver(client, "/webhook/whatsapp", WHATSAPP_DELIVERY)
    recent = client.get("/api/messages/recent", params={"limit": 1}).json()
    assert len(recent) == 1
    assert recent[0]["sender"] == "bot"


def test_model_routes(client):
    assert client.get("/api/ml/model").json()["name"] == "Intent Rules"

    deliver(client, "/webhook/whatsapp", WHATSAPP_DELIVERY)
    trained = client.post("/api/ml/train").json()
    assert trained["samples"] == 1
    assert trained["model"]["status"] == "ready"


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["services"] == {"live_fanout": True, "scheduler": True}


def test_live_socket_sends_snapshot_first(client):
    with client.websocket_connect("/ws") as websocket:
        types = [websocket.receive_json()["type"] for _ in range(4)]
    assert types == ["stats_update", "platform_status", "new_message", "ml_update"]


def test_webhook_is_acknowledged_before_the_reply_is_sent(app_config):
    app_config.channels.whatsapp.access_token = "wa-token"
    app_config.channels.whatsapp.phone_number_id = "1000"
    gate = asyncio.Event()
    sent = []

    async def slow_graph(request: httpx.Request) -> httpx.Response:
        await gate.wait()
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

    botdesk = BotDeskApp(app_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(slow_graph)))
    with TestClient(create_app(botdesk)) as client:
        try:
            response = client.post("/webhook/whatsapp", json=WHATSAPP_DELIVERY)
            sent_before_ack = list(sent)
        finally:
            client.portal.call(gate.set)
        settle(client)
        levels = [entry["level"] for entry in client.get("/api/logs").json()]

    assert response.status_code == 200
    assert response.text == "OK"
    assert sent_before_ack == []
    assert sent[0]["to"] == "15550001"
    assert "error" not in levels


def test_telegram_platform_registers_and_stores_webhook(app_config):
    app_config.channels.telegram.bot_token = "123:abc"
    bot = FakeBot()

    with TestClient(create_app(BotDeskApp(app_config, telegram_bot=bot))) as client:
        created = client.post("/api/platforms", json={"name": "telegram", "apiKey": "123:abc", "status": "active"})
        stored = client.get("/api/platforms").json()

    assert created.status_code == 201
    assert bot.webhooks == ["http://testserver/webhook/telegram"]
    assert created.json()["webhookUrl"] == "http://testserver/webhook/telegram"
    assert stored[0]["webhookUrl"] == "http://testserver/webhook/telegram"


def test_live_socket_ignores_binary_frames(client):
    with client.websocket_connect("/ws") as websocket:
        for _ in range(4):
            websocket.receive_json()
        websocket.send_bytes(b"\x00\x01")
        websocket.send_text("ping")

    fanout = client.app.state.botdesk.fanout
    client.portal.call(fanout.join)
    assert fanout.observer_count == 0
