"""
Periodic revalidation backed by APScheduler.

Each engine owns at most one AsyncIOScheduler, created lazily on the first
scheduled key and started on the running event loop.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class RevalidationScheduler:
    """
    Thin wrapper around AsyncIOScheduler keyed by cache key.

    Jobs are coroutine functions; APScheduler runs them on the event loop the
    scheduler was started from.
    """

    def __init__(self):
        self._scheduler: AsyncIOScheduler | None = None
        self._lock = threading.RLock()
        self._started = False

    def get_scheduler(self) -> AsyncIOScheduler:
        """Get or create the scheduler instance."""
        with self._lock:
            if self._scheduler is None:
                self._scheduler = AsyncIOScheduler()
            return self._scheduler

    def start(self) -> None:
        with self._lock:
            if not self._started:
                self.get_scheduler().start()
                self._started = True
                logger.info("Revalidation scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            if self._started and self._scheduler is not None:
                self._scheduler.shutdown(wait=wait)
                self._started = False
                self._scheduler = None
                logger.info("Revalidation scheduler stopped")

    def add(
        self,
        job_id: str,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_immediately: bool = True,
    ) -> None:
        """Register job to run every interval_seconds, replacing any job with the same id."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        options: dict[str, Any] = {}
        if run_immediately:
            options["next_run_time"] = datetime.now(timezone.utc)

        self.get_scheduler().add_job(
            job,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options,
        )
        self.start()

    def remove(self, job_id: str) -> bool:
        """Remove job. Returns False if it was not scheduled."""
        with self._lock:
            if self._scheduler is None or self._scheduler.get_job(job_id) is None:
                return False
            self._scheduler.remove_job(job_id)
            return True

    def job_ids(self) -> list[str]:
        with self._lock:
            if self._scheduler is None:
                return []
            return [job.id for job in self._scheduler.get_jobs()]
