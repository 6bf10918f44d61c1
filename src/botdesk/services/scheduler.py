"""APScheduler-based interval job service."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Coroutine, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from botdesk.log import get_logger
from botdesk.services.base import Service

logger = get_logger(__name__)


class SchedulerService(Service):
    """Runs the periodic dashboard broadcasts and auto-training."""

    service_name = "scheduler"

    def __init__(self, timezone: str = "UTC"):
        self._timezone = timezone
        self._scheduler = AsyncIOScheduler(timezone=timezone)

    async def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("scheduler_started", timezone=self._timezone, jobs=len(self._scheduler.get_jobs()))

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")

    async def health_check(self) -> bool:
        return self._scheduler.running

    def add_interval_job(
        self,
        callback: Callable[..., Coroutine[Any, Any, Any]],
        *,
        seconds: int = 0,
        hours: int = 0,
        job_id: Optional[str] = None,
        **kwargs: Any,
    ) -> str:
        """Add a recurring job. Returns the job ID."""
        job_id = job_id or uuid.uuid4().hex[:12]
        trigger = IntervalTrigger(seconds=seconds, hours=hours, timezone=self._timezone)
        self._scheduler.add_job(
            callback,
            trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info("interval_job_added", job_id=job_id, seconds=seconds, hours=hours)
        return job_id

    def list_jobs(self) -> list[dict[str, Any]]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": str(job.next_run_time) if getattr(job, "next_run_time", None) else None,
                "trigger": str(job.trigger),
            }
            for job in self._scheduler.get_jobs()
        ]
