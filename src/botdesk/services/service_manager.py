"""Service lifecycle manager."""

from __future__ import annotations

from botdesk.config import FanoutConfig
from botdesk.log import get_logger
from botdesk.services.fanout import LiveFanout
from botdesk.services.scheduler import SchedulerService

logger = get_logger(__name__)


class ServiceManager:
    """Starts the live fan-out before the scheduler that feeds it, stops in reverse."""

    def __init__(self, fanout_config: FanoutConfig, timezone: str = "UTC"):
        self._fanout = LiveFanout(fanout_config)
        self._scheduler = SchedulerService(timezone=timezone)

    def get_fanout(self) -> LiveFanout:
        return self._fanout

    def get_scheduler(self) -> SchedulerService:
        return self._scheduler

    async def start_all(self) -> None:
        await self._fanout.start()
        await self._scheduler.start()
        logger.info("all_services_started")

    async def stop_all(self) -> None:
        await self._scheduler.stop()
        await self._fanout.stop()
        logger.info("all_services_stopped")

    async def health_check_all(self) -> dict[str, bool]:
        return {
            self._fanout.service_name: await self._fanout.health_check(),
            self._scheduler.service_name: await self._scheduler.health_check(),
        }
