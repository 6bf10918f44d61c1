"""Inbound webhook envelopes, decoded explicitly per channel."""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from botdesk.core.errors import PayloadDecodeError
from botdesk.core.types import ChannelKind


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# WhatsApp Cloud API

class WaText(_Envelope):
    body: str = ""


class WaProfile(_Envelope):
    name: Optional[str] = None


class WaContact(_Envelope):
    wa_id: Optional[str] = None
    profile: WaProfile = Field(default_factory=WaProfile)


class WaMessage(_Envelope):
    id: Optional[str] = None
    sender: str = Field(alias="from")
    type: str = "text"
    text: Optional[WaText] = None


class WaValue(_Envelope):
    messaging_product: Optional[str] = None
    contacts: list[WaContact] = Field(default_factory=list)
    messages: list[WaMessage] = Field(default_factory=list)


class WaChange(_Envelope):
    field: Optional[str] = None
    value: WaValue = Field(default_factory=WaValue)


class WaEntry(_Envelope):
    id: Optional[str] = None
    changes: list[WaChange] = Field(default_factory=list)


class WhatsAppEnvelope(_Envelope):
    object: str
    entry: list[WaEntry] = Field(default_factory=list)


# Telegram Bot API

class TgUser(_Envelope):
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class TgChat(_Envelope):
    id: int


class TgMessage(_Envelope):
    message_id: int
    sender: Optional[TgUser] = Field(default=None, alias="from")
    chat: TgChat
    text: Optional[str] = None


class TelegramUpdate(_Envelope):
    update_id: int
    message: Optional[TgMessage] = None


# Facebook Messenger Platform

class FbParticipant(_Envelope):
    id: str


class FbMessageBody(_Envelope):
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False


class FbEvent(_Envelope):
    sender: FbParticipant
    recipient: Optional[FbParticipant] = None
    timestamp: Optional[int] = None
    message: Optional[FbMessageBody] = None


class FbEntry(_Envelope):
    id: Optional[str] = None
    time: Optional[int] = None
    messaging: list[FbEvent] = Field(default_factory=list)


class MessengerEnvelope(_Envelope):
    object: str
    entry: list[FbEntry] = Field(default_factory=list)


EnvelopeT = TypeVar("EnvelopeT", bound=BaseModel)


def decode(model: type[EnvelopeT], payload: Any, channel: ChannelKind) -> EnvelopeT:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise PayloadDecodeError(channel.value, e.errors()) from e
