"""
Interval Scheduler
==================

Wrapper around APScheduler used by the dispute monitor and the
notification dispatcher.

Each scheduler owns exactly one interval job. Start and stop are
idempotent; stopping removes the job first so no further ticks fire,
then waits for a tick that is already running to finish before the
underlying scheduler is shut down.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


class IntervalScheduler:
    """
    Runs a coroutine function on a fixed interval.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, name: str, interval_seconds: int = 30):
        self.name = name
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._idle: Optional[asyncio.Event] = None

    async def start(self, job_func: JobFunc) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Scheduler already running", extra={"scheduler": self.name})
            return

        if self.interval_seconds <= 0:
            logger.info("Scheduler disabled by configuration", extra={"scheduler": self.name})
            return

        self._idle = asyncio.Event()
        self._idle.set()

        async def _tick() -> None:
            self._idle.clear()
            try:
                await job_func()
            except Exception as e:
                logger.error(
                    "Scheduled job failed",
                    extra={"scheduler": self.name, "error": str(e)}
                )
            finally:
                self._idle.set()

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            _tick,
            "interval",
            seconds=self.interval_seconds,
            id=self.name,
            name=f"{self.name} job",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Scheduler started",
            extra={"scheduler": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully (safe to call when not running)."""
        if not self._running:
            return

        if self._scheduler:
            if self._scheduler.get_job(self.name) is not None:
                self._scheduler.remove_job(self.name)
            if self._idle is not None:
                await self._idle.wait()
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Scheduler stopped", extra={"scheduler": self.name})

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
