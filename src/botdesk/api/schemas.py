"""Request bodies accepted by the dashboard API (camelCase on the wire)."""

from __future__ import annotations

from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from botdesk.core.types import ChannelKind, PlatformStatus


class ApiModel(BaseModel):
    """Partial-update body: omitted fields are left alone, explicit nulls are rejected.

    Only the fields named in ``nullable`` may be cleared with ``null``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self):
        cleared = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable
        )
        if cleared:
            raise ValueError(f"{', '.join(to_camel(name) for name in cleared)} may not be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields the client actually sent, keyed by record attribute name."""
        return self.model_dump(exclude_unset=True, mode="json")


class BotConfigPatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    language: Optional[str] = None
    tone: Optional[str] = None
    confidence_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    max_response_time: Optional[int] = Field(default=None, ge=1)
    fallback_message: Optional[str] = Field(default=None, min_length=1)
    auto_training: Optional[bool] = None


class BotTestRequest(ApiModel):
    message: str = Field(min_length=1)
    platform_id: int = 1


class PlatformCreate(ApiModel):
    nullable = frozenset({"api_key", "webhook_url"})

    name: ChannelKind
    status: PlatformStatus = PlatformStatus.INACTIVE
    api_key: Optional[str] = None
    webhook_url: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)


class PlatformPatch(ApiModel):
    nullable = frozenset({"api_key", "webhook_url"})

    status: Optional[PlatformStatus] = None
    api_key: Optional[str] = None
    webhook_url: Optional[str] = None
    config: Optional[dict[str, Any]] = None


class TemplateCreate(ApiModel):
    nullable = frozenset({"variables"})

    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    content: str = Field(min_length=1)
    variables: Optional[list[str]] = None
    is_active: bool = True


class TemplatePatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    variables: Optional[list[str]] = None
    is_active: Optional[bool] = None
