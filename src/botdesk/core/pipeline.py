"""Inbound message pipeline: webhook delivery to persisted, answered turn."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from botdesk.config import PipelineConfig
from botdesk.core.activity import ActivityLog, Publisher
from botdesk.core.channel_registry import ChannelRegistry
from botdesk.core.errors import ConfigurationMissingError
from botdesk.core.resolver import ConversationResolver
from botdesk.core.types import ChannelKind, LiveEvent, Sender
from botdesk.log import get_logger
from botdesk.messenger.base import ChannelAdapter
from botdesk.messenger.models import DeliveryResult, InboundMessage
from botdesk.nlp.classifier import DEFAULT_INTENT
from botdesk.nlp.selector import ResponseSelector, SelectedResponse
from botdesk.storage.base import RecordStore
from botdesk.storage.models import BotConfig, Conversation, Message, Platform, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class TurnResult:
    platform: Platform
    conversation: Conversation
    user_message: Message
    bot_message: Message
    delivery: DeliveryResult


def elapsed_ms(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))


class MessagePipeline:
    """Runs each normalized inbound message through resolve, select, persist and send.

    Every message in a delivery is handled on its own: a failure is written
    to the activity log and the remaining messages still run. Nothing is
    retried and a failed send does not undo the stored turn.
    """

    def __init__(
        self,
        store: RecordStore,
        channels: ChannelRegistry,
        resolver: ConversationResolver,
        selector: ResponseSelector,
        activity: ActivityLog,
        config: PipelineConfig,
        publish: Optional[Publisher] = None,
    ):
        self._store = store
        self._channels = channels
        self._resolver = resolver
        self._selector = selector
        self._activity = activity
        self._config = config
        self._publish = publish

    def attach(self, publish: Publisher) -> None:
        self._publish = publish

    async def handle_delivery(
        self,
        kind: ChannelKind,
        messages: list[InboundMessage],
        received_at: Optional[float] = None,
    ) -> list[TurnResult]:
        """Process a decoded webhook delivery; never raises for per-message failures."""
        if received_at is None:
            received_at = time.perf_counter()
        adapter = self._channels.get(kind)

        results: list[TurnResult] = []
        for inbound in messages:
            try:
                results.append(await self.handle_message(adapter, inbound, received_at))
            except Exception as e:
                logger.exception("pipeline_failed", channel=kind.value, user_id=inbound.external_user_id)
                await self._record_failure(kind, inbound, e)
        return results

    async def _record_failure(self, kind: ChannelKind, inbound: InboundMessage, error: Exception) -> None:
        try:
            await self._activity.error(
                f"Error processing {kind.value} message",
                kind.value,
                {"error": str(error), "user_id": inbound.external_user_id},
            )
        except Exception:
            logger.exception("failure_log_not_recorded", channel=kind.value)

    async def handle_message(
        self, adapter: ChannelAdapter, inbound: InboundMessage, received_at: float
    ) -> TurnResult:
        kind = adapter.kind
        bot_config = await self._store.get_bot_config()
        if bot_config is None:
            raise ConfigurationMissingError("Bot configuration not found")

        platform = await self._resolver.resolve_platform(kind, adapter.credential)
        conversation = await self._resolver.resolve(
            platform.id, inbound.external_user_id, inbound.display_name
        )
        user_message = await self._store.create_message(
            conversation_id=conversation.id, content=inbound.text, sender=Sender.USER.value
        )

        selected = await self._select(inbound.text, platform.id, bot_config, kind)
        response_time = elapsed_ms(received_at)

        bot_message = await self._store.create_message(
            conversation_id=conversation.id,
            content=selected.response,
            sender=Sender.BOT.value,
            confidence=selected.confidence,
            response_time=response_time,
            template_id=selected.template_id,
        )

        delivery = await adapter.send(inbound.recipient_id, selected.response)
        await self._report_delivery(kind, inbound, delivery)

        now = utc_now()
        platform = await self._resolver.record_platform_message(platform.id, now)
        conversation = await self._resolver.record_turn(conversation.id, now)

        await self._activity.info(
            f"Processed {kind.value} message",
            kind.value,
            {
                "conversation_id": conversation.id,
                "intent": selected.intent,
                "confidence": selected.confidence,
                "response_time": response_time,
                "delivered": delivery.delivered,
            },
        )
        logger.info(
            "pipeline_completed",
            channel=kind.value,
            conversation_id=conversation.id,
            intent=selected.intent,
            response_time=response_time,
        )

        if self._publish is not None:
            await self._publish(LiveEvent.NEW_MESSAGE, [user_message, bot_message])
            await self._publish(LiveEvent.PLATFORM_STATUS, [platform])

        return TurnResult(
            platform=platform,
            conversation=conversation,
            user_message=user_message,
            bot_message=bot_message,
            delivery=delivery,
        )

    async def _select(
        self, text: str, platform_id: int, bot_config: BotConfig, kind: ChannelKind
    ) -> SelectedResponse:
        selection = self._selector.select(text, platform_id=platform_id, bot_config=bot_config)
        if not self._config.enforce_deadline:
            return await selection

        try:
            return await asyncio.wait_for(selection, timeout=bot_config.max_response_time)
        except asyncio.TimeoutError:
            await self._activity.warn(
                "Response deadline exceeded, using fallback message",
                kind.value,
                {"max_response_time": bot_config.max_response_time},
            )
            return SelectedResponse(
                response=bot_config.fallback_message,
                confidence=0,
                intent=DEFAULT_INTENT,
                fallback=True,
            )

    async def _report_delivery(
        self, kind: ChannelKind, inbound: InboundMessage, delivery: DeliveryResult
    ) -> None:
        if delivery.delivered:
            return
        details = {"recipient": inbound.recipient_id, "error": delivery.error}
        if delivery.skipped:
            await self._activity.warn(f"{kind.value} credentials not configured", kind.value, details)
        else:
            details["status_code"] = delivery.status_code
            await self._activity.error(f"Failed to send {kind.value} message", kind.value, details)
