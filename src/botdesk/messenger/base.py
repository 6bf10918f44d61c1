"""Capability contract shared by all channel adapters."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from botdesk.core.types import ChannelKind
from botdesk.messenger.models import DeliveryResult, InboundMessage


@runtime_checkable
class ChannelAdapter(Protocol):
    """What the pipeline and the webhook routes need from a channel.

    Adapters hold nothing but their credentials; each one decodes its own
    envelope shape. To add a channel, implement these members and register
    the adapter in :class:`botdesk.core.channel_registry.ChannelRegistry`.
    """

    kind: ChannelKind

    @property
    def credential(self) -> Optional[str]:
        """Secret stored on the platform record when it is first created."""
        ...

    def verify(self, params: Mapping[str, str]) -> Optional[str]:
        """Return the challenge to echo, or None to reject."""
        ...

    def parse_inbound(self, payload: Any) -> list[InboundMessage]:
        """Decode a webhook body; raises PayloadDecodeError on schema mismatch."""
        ...

    async def send(self, recipient_id: str, text: str) -> DeliveryResult:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


def verify_subscription(params: Mapping[str, str], expected_token: Optional[str]) -> Optional[str]:
    """Meta-style handshake: ``hub.mode=subscribe`` plus a matching ``hub.verify_token``."""
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")

    if mode == "subscribe" and expected_token and token == expected_token:
        return challenge or ""
    return None
