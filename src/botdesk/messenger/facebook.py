"""Facebook Messenger Platform adapter."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from botdesk.config import MessengerConfig
from botdesk.core.types import ChannelKind
from botdesk.log import get_logger
from botdesk.messenger.base import verify_subscription
from botdesk.messenger.graph import deliver
from botdesk.messenger.models import MEDIA_PLACEHOLDER, DeliveryResult, InboundMessage
from botdesk.messenger.schemas import MessengerEnvelope, decode

logger = get_logger(__name__)

ENVELOPE_OBJECT = "page"
DEFAULT_DISPLAY_NAME = "Messenger User"


class MessengerAdapter:
    kind = ChannelKind.MESSENGER

    def __init__(self, config: MessengerConfig, client: httpx.AsyncClient):
        self._config = config
        self._client = client

    @property
    def credential(self) -> Optional[str]:
        return self._config.access_token

    @property
    def messages_url(self) -> str:
        base = self._config.api_base.rstrip("/")
        return f"{base}/{self._config.api_version}/me/messages"

    def verify(self, params: Mapping[str, str]) -> Optional[str]:
        return verify_subscription(params, self._config.verify_token)

    def parse_inbound(self, payload: Any) -> list[InboundMessage]:
        envelope = decode(MessengerEnvelope, payload, self.kind)
        if envelope.object != ENVELOPE_OBJECT:
            logger.debug("messenger_envelope_ignored", object=envelope.object)
            return []

        messages: list[InboundMessage] = []
        for entry in envelope.entry:
            for event in entry.messaging:
                # Postbacks, reads and our own echoes carry no user text.
                if event.message is None or event.message.is_echo:
                    continue
                text = event.message.text if event.message.text is not None else MEDIA_PLACEHOLDER
                messages.append(
                    InboundMessage(
                        channel=self.kind,
                        external_user_id=event.sender.id,
                        display_name=DEFAULT_DISPLAY_NAME,
                        text=text,
                        recipient_id=event.sender.id,
                        message_id=event.message.mid,
                    )
                )
        return messages

    async def send(self, recipient_id: str, text: str) -> DeliveryResult:
        if not self._config.access_token:
            logger.warning("messenger_not_configured")
            return DeliveryResult.not_configured("Messenger page access token missing")

        payload = {
            "recipient": {"id": recipient_id},
            "messaging_type": "RESPONSE",
            "message": {"text": text},
        }
        params = {"access_token": self._config.access_token}
        return await deliver(self._client, self.kind, self.messages_url, payload, params=params)

    async def start(self) -> None:
        logger.info("messenger_adapter_started", configured=bool(self._config.access_token))

    async def stop(self) -> None:
        logger.info("messenger_adapter_stopped")
