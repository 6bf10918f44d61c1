"""WhatsApp Cloud API adapter."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from botdesk.config import WhatsAppConfig
from botdesk.core.types import ChannelKind
from botdesk.log import get_logger
from botdesk.messenger.base import verify_subscription
from botdesk.messenger.graph import deliver
from botdesk.messenger.models import MEDIA_PLACEHOLDER, DeliveryResult, InboundMessage
from botdesk.messenger.schemas import WaValue, WhatsAppEnvelope, decode

logger = get_logger(__name__)

ENVELOPE_OBJECT = "whatsapp_business_account"
DEFAULT_DISPLAY_NAME = "Unknown User"


def _display_name(value: WaValue, sender: str) -> str:
    for contact in value.contacts:
        if contact.wa_id == sender and contact.profile.name:
            return contact.profile.name
    if value.contacts and value.contacts[0].profile.name:
        return value.contacts[0].profile.name
    return DEFAULT_DISPLAY_NAME


class WhatsAppAdapter:
    kind = ChannelKind.WHATSAPP

    def __init__(self, config: WhatsAppConfig, client: httpx.AsyncClient):
        self._config = config
        self._client = client

    @property
    def credential(self) -> Optional[str]:
        return self._config.access_token

    @property
    def messages_url(self) -> str:
        base = self._config.api_base.rstrip("/")
        return f"{base}/{self._config.api_version}/{self._config.phone_number_id}/messages"

    def verify(self, params: Mapping[str, str]) -> Optional[str]:
        return verify_subscription(params, self._config.verify_token)

    def parse_inbound(self, payload: Any) -> list[InboundMessage]:
        envelope = decode(WhatsAppEnvelope, payload, self.kind)
        if envelope.object != ENVELOPE_OBJECT:
            logger.debug("whatsapp_envelope_ignored", object=envelope.object)
            return []

        messages: list[InboundMessage] = []
        for entry in envelope.entry:
            for change in entry.changes:
                value = change.value
                for message in value.messages:
                    if message.type == "text" and message.text is not None:
                        text = message.text.body
                    else:
                        text = MEDIA_PLACEHOLDER
                    messages.append(
                        InboundMessage(
                            channel=self.kind,
                            external_user_id=message.sender,
                            display_name=_display_name(value, message.sender),
                            text=text,
                            recipient_id=message.sender,
                            message_id=message.id,
                        )
                    )
        return messages

    async def send(self, recipient_id: str, text: str) -> DeliveryResult:
        if not self._config.access_token or not self._config.phone_number_id:
            logger.warning("whatsapp_not_configured")
            return DeliveryResult.not_configured("WhatsApp access token or phone number id missing")

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient_id,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        headers = {"Authorization": f"Bearer {self._config.access_token}"}
        return await deliver(self._client, self.kind, self.messages_url, payload, headers=headers)

    async def start(self) -> None:
        logger.info("whatsapp_adapter_started", configured=bool(self._config.access_token))

    async def stop(self) -> None:
        logger.info("whatsapp_adapter_stopped")
