"""Diagnostic log records: persisted, mirrored to structlog, pushed to observers."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from botdesk.core.types import LiveEvent, LogLevel
from botdesk.log import get_logger
from botdesk.storage.base import RecordStore
from botdesk.storage.models import LogEntry

logger = get_logger(__name__)

Publisher = Callable[[LiveEvent, Any], Awaitable[None]]


class ActivityLog:
    """Writes ``Log`` records for the dashboard's log stream."""

    def __init__(self, store: RecordStore, publish: Optional[Publisher] = None):
        self._store = store
        self._publish = publish

    def attach(self, publish: Publisher) -> None:
        self._publish = publish

    async def record(
        self,
        level: LogLevel,
        message: str,
        source: str,
        details: Optional[dict[str, Any]] = None,
    ) -> LogEntry:
        entry = await self._store.create_log(
            level=level.value, message=message, source=source, details=details
        )

        emit = {
            LogLevel.INFO: logger.info,
            LogLevel.WARN: logger.warning,
            LogLevel.ERROR: logger.error,
        }[level]
        emit("activity", message=message, source=source, details=details)

        if self._publish is not None:
            await self._publish(LiveEvent.LOG_UPDATE, entry)
        return entry

    async def info(self, message: str, source: str, details: Optional[dict[str, Any]] = None) -> LogEntry:
        return await self.record(LogLevel.INFO, message, source, details)

    async def warn(self, message: str, source: str, details: Optional[dict[str, Any]] = None) -> LogEntry:
        return await self.record(LogLevel.WARN, message, source, details)

    async def error(self, message: str, source: str, details: Optional[dict[str, Any]] = None) -> LogEntry:
        return await self.record(LogLevel.ERROR, message, source, details)
