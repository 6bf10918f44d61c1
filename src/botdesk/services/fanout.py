"""Live push channel to dashboard observers.

A single actor task owns the observer set. Connects, disconnects and
broadcasts are queued as commands and applied one at a time, so a new
observer receives its full snapshot before any broadcast queued after
its connect, and sends to one observer never overlap.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional, Protocol

from botdesk.config import FanoutConfig
from botdesk.core.types import LiveEvent
from botdesk.core.wire import live_message
from botdesk.log import get_logger
from botdesk.services.base import Service

logger = get_logger(__name__)

SnapshotProvider = Callable[[], Awaitable[list[tuple[LiveEvent, Any]]]]


class Observer(Protocol):
    """Anything that can receive a JSON push; a Starlette ``WebSocket`` qualifies."""

    async def send_json(self, data: Any) -> None:
        ...


@dataclass
class _Command:
    op: Literal["connect", "disconnect", "broadcast"]
    observer: Optional[Observer] = None
    message: Optional[dict[str, Any]] = None


class LiveFanout(Service):
    service_name = "live_fanout"

    def __init__(self, config: FanoutConfig, snapshot: Optional[SnapshotProvider] = None):
        self._config = config
        self._snapshot = snapshot
        self._observers: list[Observer] = []
        self._queue: asyncio.Queue[_Command] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def set_snapshot_provider(self, snapshot: SnapshotProvider) -> None:
        self._snapshot = snapshot

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="live-fanout")
        logger.info("fanout_started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._observers.clear()
        logger.info("fanout_stopped")

    async def health_check(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self, observer: Observer) -> None:
        await self._queue.put(_Command("connect", observer=observer))

    async def disconnect(self, observer: Observer) -> None:
        await self._queue.put(_Command("disconnect", observer=observer))

    async def publish(self, event: LiveEvent, data: Any) -> None:
        """Queue a broadcast; the payload is encoded now, not at send time."""
        await self._queue.put(_Command("broadcast", message=live_message(event, data)))

    async def join(self) -> None:
        """Wait until every queued command has been applied."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            command = await self._queue.get()
            try:
                await self._apply(command)
            except Exception:
                logger.exception("fanout_command_failed", op=command.op)
            finally:
                self._queue.task_done()

    async def _apply(self, command: _Command) -> None:
        match command.op:
            case "connect":
                self._observers.append(command.observer)
                logger.info("observer_connected", observers=len(self._observers))
                await self._send_snapshot(command.observer)
            case "disconnect":
                self._drop(command.observer)
            case "broadcast":
                for observer in list(self._observers):
                    if not await self._send(observer, command.message):
                        self._drop(observer)

    async def _send_snapshot(self, observer: Observer) -> None:
        if self._snapshot is None:
            return
        for event, data in await self._snapshot():
            if not await self._send(observer, live_message(event, data)):
                self._drop(observer)
                return

    async def _send(self, observer: Observer, message: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(observer.send_json(message), timeout=self._config.send_timeout_seconds)
        except Exception as e:
            logger.info("observer_send_failed", error=str(e) or type(e).__name__)
            return False
        return True

    def _drop(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            logger.info("observer_disconnected", observers=len(self._observers))
