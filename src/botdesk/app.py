"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from telegram import Bot

from botdesk.config import AppConfig
from botdesk.core.activity import ActivityLog
from botdesk.core.channel_registry import ChannelRegistry
from botdesk.core.pipeline import MessagePipeline
from botdesk.core.resolver import ConversationResolver
from botdesk.core.types import ChannelKind, LiveEvent
from botdesk.log import get_logger
from botdesk.messenger.base import ChannelAdapter
from botdesk.messenger.models import InboundMessage
from botdesk.nlp.classifier import IntentClassifier
from botdesk.nlp.selector import ResponseSelector
from botdesk.nlp.trainer import ModelTrainer
from botdesk.services.service_manager import ServiceManager
from botdesk.services.stats import compute_stats, dashboard_snapshot
from botdesk.storage.base import RecordStore
from botdesk.storage.factory import build_store, seed_defaults

logger = get_logger(__name__)

STATS_JOB_ID = "broadcast_stats"
PLATFORMS_JOB_ID = "broadcast_platforms"
TRAINING_JOB_ID = "auto_train"


class BotDeskApp:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config: AppConfig,
        store: Optional[RecordStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        telegram_bot: Optional[Bot] = None,
    ):
        self.config = config
        self.store = store or build_store(config.storage)
        self.http_client = http_client or httpx.AsyncClient(timeout=config.http.timeout_seconds)
        self._telegram_bot = telegram_bot
        self._deliveries: set[asyncio.Task] = set()

        self.service_manager = ServiceManager(config.fanout)
        self.fanout = self.service_manager.get_fanout()
        self.scheduler = self.service_manager.get_scheduler()
        self.fanout.set_snapshot_provider(self._snapshot)

        self.activity = ActivityLog(self.store, publish=self.fanout.publish)
        self.classifier = IntentClassifier()
        self.selector = ResponseSelector(self.classifier, self.store)
        self.resolver = ConversationResolver(self.store)
        self.trainer = ModelTrainer(
            self.store, self.classifier, self.activity, config.training, publish=self.fanout.publish
        )

        self.channels = ChannelRegistry()
        for kind in ChannelKind:
            self.channels.register(self._create_adapter(kind))

        self.pipeline = MessagePipeline(
            self.store,
            self.channels,
            self.resolver,
            self.selector,
            self.activity,
            config.pipeline,
            publish=self.fanout.publish,
        )

    async def start(self) -> None:
        """Initialize and start all components."""
        # 1. Store and first-start records
        await self.store.initialize()
        await seed_defaults(self.store, self.config.bot)

        # 2. Restore learned phrases from the current model
        model = await self.store.get_current_ml_model()
        if model is not None and model.training_data:
            self.classifier.train(model.training_data)

        # 3. Channel adapters
        for adapter in self.channels.all():
            try:
                await adapter.start()
            except Exception as e:
                logger.error("channel_start_failed", channel=adapter.kind.value, error=str(e))

        # 4. Services and periodic jobs
        self._register_jobs()
        await self.service_manager.start_all()

        logger.info("botdesk_started", channels=[k.value for k in self.channels.kinds()])

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        await self.drain()
        await self.service_manager.stop_all()

        for adapter in self.channels.all():
            try:
                await adapter.stop()
            except Exception as e:
                logger.error("channel_stop_error", channel=adapter.kind.value, error=str(e))

        await self.http_client.aclose()
        await self.store.close()
        logger.info("botdesk_stopped")

    def dispatch(
        self, kind: ChannelKind, messages: list[InboundMessage], received_at: Optional[float] = None
    ) -> asyncio.Task:
        """Run a decoded delivery through the pipeline without waiting for it."""
        task = asyncio.create_task(
            self.pipeline.handle_delivery(kind, messages, received_at), name=f"delivery-{kind.value}"
        )
        self._deliveries.add(task)
        task.add_done_callback(self._delivery_done)
        return task

    async def drain(self) -> None:
        """Wait for every dispatched delivery to finish."""
        while self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    def _delivery_done(self, task: asyncio.Task) -> None:
        self._deliveries.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("delivery_task_failed", task=task.get_name(), error=str(task.exception()))

    async def health(self) -> dict[str, bool]:
        return await self.service_manager.health_check_all()

    async def broadcast_stats(self) -> None:
        stats = await compute_stats(self.store, self.config.fanout.stats_window)
        await self.fanout.publish(LiveEvent.STATS_UPDATE, stats)

    async def broadcast_platforms(self) -> None:
        await self.fanout.publish(LiveEvent.PLATFORM_STATUS, await self.store.list_platforms())

    async def auto_train(self) -> None:
        try:
            await self.trainer.train_if_enabled()
        except Exception:
            logger.exception("auto_training_failed")

    def _register_jobs(self) -> None:
        fanout = self.config.fanout
        self.scheduler.add_interval_job(
            self.broadcast_stats, seconds=fanout.stats_interval_seconds, job_id=STATS_JOB_ID
        )
        self.scheduler.add_interval_job(
            self.broadcast_platforms, seconds=fanout.platform_interval_seconds, job_id=PLATFORMS_JOB_ID
        )
        self.scheduler.add_interval_job(
            self.auto_train, hours=self.config.training.auto_train_interval_hours, job_id=TRAINING_JOB_ID
        )

    async def _snapshot(self):
        return await dashboard_snapshot(self.store, self.config.fanout)

    def _create_adapter(self, kind: ChannelKind) -> ChannelAdapter:
        channels = self.config.channels
        match kind:
            case ChannelKind.WHATSAPP:
                from botdesk.messenger.whatsapp import WhatsAppAdapter

                return WhatsAppAdapter(channels.whatsapp, self.http_client)
            case ChannelKind.TELEGRAM:
                from botdesk.messenger.telegram import TelegramAdapter

                return TelegramAdapter(channels.telegram, bot=self._telegram_bot)
            case ChannelKind.MESSENGER:
                from botdesk.messenger.facebook import MessengerAdapter

                return MessengerAdapter(channels.messenger, self.http_client)
            case _:
                raise ValueError(f"Unknown channel: {kind}")
