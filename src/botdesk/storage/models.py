"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Platform:
    id: int
    name: str  # channel kind: "whatsapp" | "telegram" | "messenger"
    status: str = "inactive"
    api_key: Optional[str] = None
    webhook_url: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    messages_count: int = 0
    last_message_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Conversation:
    id: int
    platform_id: int
    user_id: str  # platform-native identifier, opaque
    user_name: Optional[str] = None
    status: str = "active"
    messages_count: int = 0
    last_message_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Message:
    id: int
    conversation_id: int
    content: str
    sender: str  # "user" | "bot"
    confidence: Optional[int] = None
    response_time: Optional[int] = None  # milliseconds
    template_id: Optional[int] = None
    sent_at: datetime = field(default_factory=utc_now)


@dataclass
class Template:
    id: int
    name: str
    category: str
    content: str
    variables: list[str] = field(default_factory=list)
    is_active: bool = True
    usage_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class BotConfig:
    id: int
    name: str
    language: str = "en"
    tone: str = "professional"
    confidence_threshold: int = 75
    max_response_time: int = 3  # seconds
    fallback_message: str = "Sorry, I didn't understand that. Can you please rephrase?"
    auto_training: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class MlModel:
    id: int
    name: str
    version: str
    accuracy: int = 0  # percentage
    training_data: list[dict[str, Any]] = field(default_factory=list)
    status: str = "training"
    last_trained_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class LogEntry:
    id: int
    level: str  # "info" | "warn" | "error"
    message: str
    source: str
    details: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=utc_now)
