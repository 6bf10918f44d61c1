"""Unified message models for all messenger platforms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from botdesk.core.types import ChannelKind

MEDIA_PLACEHOLDER = "[Media]"


@dataclass(frozen=True, slots=True)
class InboundMessage:
    channel: ChannelKind
    external_user_id: str
    display_name: str
    text: str
    recipient_id: str  # where the reply goes (chat id on Telegram, user id elsewhere)
    message_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    delivered: bool
    skipped: bool = False  # credentials not configured
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, status_code: int | None = None) -> DeliveryResult:
        return cls(delivered=True, status_code=status_code)

    @classmethod
    def not_configured(cls, reason: str) -> DeliveryResult:
        return cls(delivered=False, skipped=True, error=reason)

    @classmethod
    def failed(cls, error: str, status_code: int | None = None) -> DeliveryResult:
        return cls(delivered=False, status_code=status_code, error=error)
