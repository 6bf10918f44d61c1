"""Telegram adapter using python-telegram-bot v21+ in webhook mode."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from telegram import Bot
from telegram.error import TelegramError

from botdesk.config import TelegramConfig
from botdesk.core.types import ChannelKind
from botdesk.log import get_logger
from botdesk.messenger.models import MEDIA_PLACEHOLDER, DeliveryResult, InboundMessage
from botdesk.messenger.schemas import TelegramUpdate, TgUser, decode

logger = get_logger(__name__)

DEFAULT_DISPLAY_NAME = "Telegram User"


def _display_name(user: TgUser) -> str:
    full = " ".join(part for part in (user.first_name, user.last_name) if part)
    return full or user.username or DEFAULT_DISPLAY_NAME


class TelegramAdapter:
    """Receives updates through the webhook route and replies via the Bot API.

    Updates arrive over HTTP, so no polling ``Application`` is started; the
    adapter only needs a :class:`telegram.Bot` for outbound calls.
    """

    kind = ChannelKind.TELEGRAM

    def __init__(self, config: TelegramConfig, bot: Optional[Bot] = None):
        self._config = config
        if bot is None and config.bot_token:
            bot = Bot(token=config.bot_token)
        self._bot = bot
        self._initialized = False

    @property
    def credential(self) -> Optional[str]:
        return self._config.bot_token

    def verify(self, params: Mapping[str, str]) -> Optional[str]:
        return None

    def parse_inbound(self, payload: Any) -> list[InboundMessage]:
        update = decode(TelegramUpdate, payload, self.kind)
        message = update.message
        if message is None or message.sender is None:
            logger.debug("telegram_update_ignored", update_id=update.update_id)
            return []

        return [
            InboundMessage(
                channel=self.kind,
                external_user_id=str(message.sender.id),
                display_name=_display_name(message.sender),
                text=message.text if message.text is not None else MEDIA_PLACEHOLDER,
                recipient_id=str(message.chat.id),
                message_id=str(message.message_id),
            )
        ]

    async def send(self, recipient_id: str, text: str) -> DeliveryResult:
        if self._bot is None:
            logger.warning("telegram_not_configured")
            return DeliveryResult.not_configured("Telegram bot token missing")

        try:
            await self._bot.send_message(chat_id=recipient_id, text=text)
        except TelegramError as e:
            logger.warning("delivery_failed", channel=self.kind.value, error=str(e))
            return DeliveryResult.failed(f"telegram delivery failed: {e}")
        return DeliveryResult.ok()

    async def register_webhook(self, url: Optional[str] = None) -> Optional[str]:
        """Point the bot's updates at our webhook route via ``setWebhook``.

        The configured ``webhook_url`` wins over ``url``. Uses the configured bot
        token; returns the registered URL, or None when nothing was registered.
        """
        target = self._config.webhook_url or url
        if self._bot is None or not target:
            logger.info("telegram_webhook_not_registered", has_bot=self._bot is not None)
            return None
        try:
            registered = await self._bot.set_webhook(url=target)
        except TelegramError as e:
            logger.error("telegram_webhook_failed", url=target, error=str(e))
            return None
        logger.info("telegram_webhook_registered", url=target, ok=registered)
        return target if registered else None

    async def start(self) -> None:
        if self._bot is None:
            logger.info("telegram_adapter_started", configured=False)
            return
        try:
            await self._bot.initialize()
            self._initialized = True
        except TelegramError as e:
            logger.warning("telegram_initialize_failed", error=str(e))
        logger.info("telegram_adapter_started", configured=True)

    async def stop(self) -> None:
        if self._bot is not None and self._initialized:
            await self._bot.shutdown()
            self._initialized = False
        logger.info("telegram_adapter_stopped")
