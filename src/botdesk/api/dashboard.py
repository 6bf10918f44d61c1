"""Dashboard REST API: bot configuration, platforms, conversations, templates, models, logs."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from botdesk.api.deps import get_botdesk
from botdesk.api.schemas import (
    BotConfigPatch,
    BotTestRequest,
    PlatformCreate,
    PlatformPatch,
    TemplateCreate,
    TemplatePatch,
)
from botdesk.app import BotDeskApp
from botdesk.core.errors import ConfigurationMissingError, ValidationError
from botdesk.core.types import ChannelKind, LiveEvent
from botdesk.core.wire import to_wire
from botdesk.log import get_logger
from botdesk.messenger.telegram import TelegramAdapter
from botdesk.nlp.selector import template_variables
from botdesk.services.stats import compute_stats

router = APIRouter(prefix="/api", tags=["dashboard"])
logger = get_logger(__name__)


@router.get("/dashboard/stats")
async def dashboard_stats(botdesk: BotDeskApp = Depends(get_botdesk)):
    return to_wire(await compute_stats(botdesk.store, botdesk.config.fanout.stats_window))


# Bot configuration

@router.get("/bot/config")
async def get_bot_config(botdesk: BotDeskApp = Depends(get_botdesk)):
    bot_config = await botdesk.store.get_bot_config()
    if bot_config is None:
        raise ConfigurationMissingError("Bot configuration not found")
    return to_wire(bot_config)


@router.patch("/bot/config")
async def update_bot_config(body: BotConfigPatch, botdesk: BotDeskApp = Depends(get_botdesk)):
    changes = body.changes()
    bot_config = await botdesk.store.update_bot_config(**changes)
    await botdesk.activity.info("Bot configuration updated", "dashboard", {"fields": sorted(changes)})
    return to_wire(bot_config)


@router.post("/bot/test")
async def test_bot(body: BotTestRequest, botdesk: BotDeskApp = Depends(get_botdesk)):
    selected = await botdesk.selector.select(body.message, platform_id=body.platform_id)
    return {
        "response": selected.response,
        "confidence": selected.confidence,
        "intent": selected.intent,
        "templateId": selected.template_id,
    }


# Platforms

async def _broadcast_platforms(botdesk: BotDeskApp) -> None:
    await botdesk.fanout.publish(LiveEvent.PLATFORM_STATUS, await botdesk.store.list_platforms())


@router.get("/platforms")
async def list_platforms(botdesk: BotDeskApp = Depends(get_botdesk)):
    return to_wire(await botdesk.store.list_platforms())


@router.post("/platforms", status_code=201)
async def create_platform(
    body: PlatformCreate, request: Request, botdesk: BotDeskApp = Depends(get_botdesk)
):
    if await botdesk.store.get_platform_by_name(body.name.value) is not None:
        raise ValidationError(f"Platform {body.name.value} already exists")

    platform = await botdesk.store.create_platform(**body.changes())

    if body.name == ChannelKind.TELEGRAM and body.api_key:
        adapter = botdesk.channels.get(ChannelKind.TELEGRAM)
        if isinstance(adapter, TelegramAdapter):
            webhook_url = await adapter.register_webhook(str(request.url_for("receive_telegram")))
            if webhook_url is not None:
                platform = await botdesk.store.update_platform(platform.id, webhook_url=webhook_url)

    await botdesk.activity.info(f"Platform {platform.name} created", "dashboard", {"platform_id": platform.id})
    await _broadcast_platforms(botdesk)
    return to_wire(platform)


@router.patch("/platforms/{platform_id}")
async def update_platform(platform_id: int, body: PlatformPatch, botdesk: BotDeskApp = Depends(get_botdesk)):
    platform = await botdesk.store.update_platform(platform_id, **body.changes())
    await _broadcast_platforms(botdesk)
    return to_wire(platform)


# Conversations and messages

@router.get("/conversations")
async def list_conversations(
    platform_id: Optional[int] = Query(default=None, alias="platformId"),
    botdesk: BotDeskApp = Depends(get_botdesk),
):
    conversations = await botdesk.store.list_conversations(platform_id=platform_id)
    conversations.sort(key=lambda c: (c.last_message_at or c.created_at, c.id), reverse=True)
    return to_wire(conversations)


@router.get("/conversations/{conversation_id}/messages")
async def list_conversation_messages(conversation_id: int, botdesk: BotDeskApp = Depends(get_botdesk)):
    await botdesk.store.get_conversation_or_raise(conversation_id)
    return to_wire(await botdesk.store.list_messages(conversation_id))


@router.get("/messages/recent")
async def recent_messages(
    limit: int = Query(default=20, ge=1, le=500),
    botdesk: BotDeskApp = Depends(get_botdesk),
):
    return to_wire(await botdesk.store.recent_messages(limit))


# Templates

@router.get("/templates")
async def list_templates(botdesk: BotDeskApp = Depends(get_botdesk)):
    return to_wire(await botdesk.store.list_templates())


@router.post("/templates", status_code=201)
async def create_template(body: TemplateCreate, botdesk: BotDeskApp = Depends(get_botdesk)):
    fields = body.changes()
    if body.variables is None:
        fields["variables"] = template_variables(body.content)
    template = await botdesk.store.create_template(**fields)
    logger.info("template_created", template_id=template.id, category=template.category)
    return to_wire(template)


@router.patch("/templates/{template_id}")
async def update_template(template_id: int, body: TemplatePatch, botdesk: BotDeskApp = Depends(get_botdesk)):
    return to_wire(await botdesk.store.update_template(template_id, **body.changes()))


@router.delete("/templates/{template_id}", status_code=204)
async def delete_template(template_id: int, botdesk: BotDeskApp = Depends(get_botdesk)):
    await botdesk.store.delete_template(template_id)
    return Response(status_code=204)


# ML model

@router.get("/ml/model")
async def current_model(botdesk: BotDeskApp = Depends(get_botdesk)):
    return to_wire(await botdesk.store.get_current_ml_model())


@router.post("/ml/train")
async def train_model(botdesk: BotDeskApp = Depends(get_botdesk)):
    result = await botdesk.trainer.train_from_conversations()
    return {
        "accuracy": result.accuracy,
        "samples": result.samples,
        "holdout": result.holdout,
        "model": to_wire(await botdesk.store.get_current_ml_model()),
    }


# Logs

@router.get("/logs")
async def recent_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    botdesk: BotDeskApp = Depends(get_botdesk),
):
    return to_wire(await botdesk.store.recent_logs(limit))
