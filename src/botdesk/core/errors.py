"""Error taxonomy shared by the store, the pipeline and the HTTP layer."""

from __future__ import annotations

from typing import Any


class BotDeskError(Exception):
    """Base class for all botdesk errors."""


class ValidationError(BotDeskError):
    """Submitted data is malformed; nothing was mutated."""


class PayloadDecodeError(ValidationError):
    """A webhook envelope did not match the channel's schema."""

    def __init__(self, channel: str, errors: list[dict[str, Any]]):
        self.channel = channel
        self.errors = errors
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = first.get("msg", "invalid payload")
        super().__init__(f"Invalid {channel} payload at '{location}': {detail}")


class NotFoundError(BotDeskError):
    def __init__(self, kind: str, entity_id: Any):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class ConfigurationMissingError(BotDeskError):
    """The bot configuration record does not exist."""


class DeliveryError(BotDeskError):
    def __init__(self, channel: str, status_code: int | None, body_text: str):
        super().__init__(f"{channel} delivery failed ({status_code}): {body_text}")
        self.channel = channel
        self.status_code = status_code
        self.body_text = body_text
