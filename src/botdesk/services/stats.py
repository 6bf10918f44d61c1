"""Aggregate dashboard figures and the snapshot sent to new live observers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from botdesk.config import FanoutConfig
from botdesk.core.types import LiveEvent, PlatformStatus, Sender
from botdesk.storage.base import RecordStore
from botdesk.storage.models import Message, utc_now


@dataclass(frozen=True)
class DashboardStats:
    total_messages: int
    active_users: int
    response_rate: int  # percent, capped at 100
    avg_response_time: int  # milliseconds
    today_messages: int
    ml_accuracy: int
    active_platforms: int


def local_midnight(now: datetime) -> datetime:
    """Start of the current calendar day in the server's local timezone."""
    local = now.astimezone()
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def response_rate(window: list[Message]) -> int:
    users = sum(1 for m in window if m.sender == Sender.USER)
    bots = sum(1 for m in window if m.sender == Sender.BOT)
    if users == 0:
        return 100
    return min(100, round(bots / users * 100))


def average_response_time(window: list[Message]) -> int:
    times = [m.response_time for m in window if m.sender == Sender.BOT and m.response_time is not None]
    if not times:
        return 0
    return math.floor(sum(times) / len(times) + 0.5)


async def compute_stats(store: RecordStore, window: int = 1000, now: Optional[datetime] = None) -> DashboardStats:
    midnight = local_midnight(now or utc_now())

    platforms = await store.list_platforms()
    conversations = await store.list_conversations()
    recent = await store.recent_messages(window)
    today = await store.messages_since(midnight)
    model = await store.get_current_ml_model()

    active_users = {
        c.user_id
        for c in conversations
        if c.last_message_at is not None and c.last_message_at >= midnight
    }

    return DashboardStats(
        total_messages=sum(p.messages_count for p in platforms),
        active_users=len(active_users),
        response_rate=response_rate(recent),
        avg_response_time=average_response_time(recent),
        today_messages=len(today),
        ml_accuracy=model.accuracy if model is not None else 0,
        active_platforms=sum(1 for p in platforms if p.status == PlatformStatus.ACTIVE),
    )


async def dashboard_snapshot(store: RecordStore, config: FanoutConfig) -> list[tuple[LiveEvent, Any]]:
    """Stats, platforms, recent messages and current model, in delivery order."""
    return [
        (LiveEvent.STATS_UPDATE, await compute_stats(store, config.stats_window)),
        (LiveEvent.PLATFORM_STATUS, await store.list_platforms()),
        (LiveEvent.NEW_MESSAGE, await store.recent_messages(config.snapshot_messages)),
        (LiveEvent.ML_UPDATE, await store.get_current_ml_model()),
    ]
