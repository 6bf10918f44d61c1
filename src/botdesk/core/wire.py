"""JSON shapes for records leaving the process (HTTP responses and live pushes)."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic.alias_generators import to_camel

from botdesk.core.types import LiveEvent


def to_wire(value: Any) -> Any:
    """Record dataclasses become camelCase objects; free-form dict values keep their keys."""
    if is_dataclass(value) and not isinstance(value, type):
        return {to_camel(f.name): to_wire(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return jsonable_encoder(value)


def live_message(event: LiveEvent, data: Any) -> dict[str, Any]:
    return {"type": event.value, "data": to_wire(data)}
