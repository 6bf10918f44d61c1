"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class ChannelKind(StrEnum):
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    MESSENGER = "messenger"


class PlatformStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class ConversationStatus(StrEnum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class Sender(StrEnum):
    USER = "user"
    BOT = "bot"


class Sentiment(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ModelStatus(StrEnum):
    TRAINING = "training"
    READY = "ready"
    ERROR = "error"


class LogLevel(StrEnum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LiveEvent(StrEnum):
    """Discriminator of messages pushed to dashboard observers."""

    STATS_UPDATE = "stats_update"
    NEW_MESSAGE = "new_message"
    PLATFORM_STATUS = "platform_status"
    ML_UPDATE = "ml_update"
    LOG_UPDATE = "log_update"
