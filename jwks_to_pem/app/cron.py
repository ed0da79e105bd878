"""
Cron-style scheduling of the fetch/write/reload pass.
"""

import asyncio
import signal
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from shared.errors import ConfigError, JwksToPemError
from shared.logging import get_logger

logger = get_logger("jwks_to_pem.cron")

JOB_ID = "jwks_to_pem"


def build_trigger(schedule: str) -> CronTrigger:
    """Parse a standard five field crontab expression."""
    if not schedule or not schedule.strip():
        raise ConfigError("a cron schedule is required (--schedule or JWKS_SCHEDULE)")
    try:
        return CronTrigger.from_crontab(schedule.strip())
    except ValueError as e:
        raise ConfigError(f"invalid cron schedule {schedule!r}: {e}") from e


class CronRunner:
    """Runs a job on a cron schedule until stopped."""

    def __init__(self,
                 schedule: str,
                 job: Callable[[], Awaitable[Any]],
                 run_on_start: bool = False):
        self.schedule = schedule
        self.trigger = build_trigger(schedule)
        self.job = job
        self.run_on_start = run_on_start
        self.runs = 0
        self.failures = 0
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._stopped: Optional[asyncio.Event] = None

    async def _run_job(self) -> None:
        self.runs += 1
        try:
            await self.job()
        except JwksToPemError as e:
            self.failures += 1
            logger.error("scheduled run failed", error=e.message, code=e.code)

    def start(self) -> AsyncIOScheduler:
        """Create and start the scheduler on the running event loop."""
        self._stopped = asyncio.Event()
        self.scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())

        job_kwargs = {}
        if self.run_on_start:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self._run_job,
            self.trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            **job_kwargs
        )
        self.scheduler.start()

        logger.info("starting cron process", schedule=self.schedule)
        return self.scheduler

    def stop(self) -> None:
        """Ask a running ``serve`` to return."""
        if self._stopped is not None:
            self._stopped.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform or outside the main thread
                pass

    async def serve(self, handle_signals: bool = True) -> None:
        """Run the schedule until ``stop`` is called or SIGINT/SIGTERM arrives."""
        scheduler = self.start()
        if handle_signals:
            self._install_signal_handlers()

        try:
            await self._stopped.wait()
        finally:
            scheduler.shutdown(wait=False)
            logger.info("cron process stopped", runs=self.runs, failures=self.failures)
