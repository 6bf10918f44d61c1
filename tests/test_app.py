from botdesk.app import PLATFORMS_JOB_ID, STATS_JOB_ID, TRAINING_JOB_ID, BotDeskApp
from botdesk.core.activity import ActivityLog
from botdesk.core.types import ChannelKind, LiveEvent, LogLevel
from botdesk.core.wire import live_message, to_wire
from botdesk.storage.memory import InMemoryStore
from botdesk.storage.models import LogEntry


async def test_start_seeds_registers_jobs_and_channels(app_config):
    app = BotDeskApp(app_config)
    await app.start()
    try:
        assert await app.store.get_bot_config() is not None
        job_ids = {job["id"] for job in app.scheduler.list_jobs()}
        assert job_ids == {STATS_JOB_ID, PLATFORMS_JOB_ID, TRAINING_JOB_ID}
        assert set(app.channels.kinds()) == set(ChannelKind)
        assert await app.health() == {"live_fanout": True, "scheduler": True}
    finally:
        await app.stop()


async def test_start_restores_learned_phrases(app_config):
    store = InMemoryStore()
    await store.create_ml_model(
        name="Intent Rules",
        version="1.0.0",
        status="ready",
        training_data=[{"text": "where is my parcel", "intent": "delivery_inquiry"}],
    )
    app = BotDeskApp(app_config, store=store)
    await app.start()
    try:
        assert app.classifier.learned_phrases == 1
        assert app.classifier.classify("where is my parcel").intent == "delivery_inquiry"
    finally:
        await app.stop()


async def test_activity_log_persists_and_publishes(memory_store, publisher):
    activity = ActivityLog(memory_store, publish=publisher)
    entry = await activity.record(LogLevel.WARN, "careful", "test", {"k": 1})

    assert (await memory_store.recent_logs())[0].id == entry.id
    assert publisher.of(LiveEvent.LOG_UPDATE) == [entry]


def test_wire_shapes_are_camel_case_and_keep_free_form_keys():
    entry = LogEntry(id=1, level="info", message="m", source="s", details={"user_id": "x"})
    payload = live_message(LiveEvent.LOG_UPDATE, entry)

    assert payload["type"] == "log_update"
    assert payload["data"]["createdAt"] == entry.created_at.isoformat()
    assert payload["data"]["details"] == {"user_id": "x"}
    assert to_wire(None) is None
