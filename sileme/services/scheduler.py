"""
In-process scheduler for the notification jobs.

    scheduler = Scheduler(SessionLocal, sinks, Clock())
    scheduler.start()          # inside a running event loop (app lifespan)
    await scheduler.trigger("dispatch")
    await scheduler.stop()     # cancels every pending tick

Jobs
----
dispatch   every DISPATCH_INTERVAL_SECONDS
cleanup    daily at CLEANUP_TIME (local)
reminder   daily at REMINDER_TIME (local)

A job never overlaps with itself: a tick that arrives while the previous
run is still going is skipped. Job bodies run in a worker thread through
asyncio.to_thread and any exception they raise is logged; the next tick is
scheduled regardless.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from sileme.core.clock import Clock, as_utc
from sileme.core.config import Settings, settings as default_settings
from sileme.services import jobs
from sileme.services.delivery import Sinks

logger = logging.getLogger(__name__)

DelayFn = Callable[[], float]


def every(seconds: float) -> DelayFn:
    return lambda: seconds


def seconds_until(at: time, clock: Clock) -> float:
    """Seconds from clock.now() to the next local occurrence of `at`."""
    now = clock.local(clock.now())
    candidate = datetime.combine(now.date(), at, tzinfo=clock.tz)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), at, tzinfo=clock.tz)
    # elapsed time, not wall-clock time, across DST changes
    return max((as_utc(candidate) - clock.now()).total_seconds(), 0.0)


def daily_at(at: time, clock: Clock) -> DelayFn:
    return lambda: seconds_until(at, clock)


class PeriodicJob:
    def __init__(self, name: str, func: Callable[[], object], delay: DelayFn):
        self.name = name
        self.func = func
        self.delay = delay
        self.runs = 0
        self.failures = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """Run the body now. Returns False if a run was already in progress."""
        if self._running:
            logger.info("job %s still running, tick skipped", self.name)
            return False
        self._running = True
        try:
            await asyncio.to_thread(self.func)
            self.runs += 1
        except Exception:
            self.failures += 1
            logger.exception("job %s failed", self.name)
        finally:
            self._running = False
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.delay())
            await self.run_once()

    def start(self) -> None:
        if self.is_scheduled:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=f"job:{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class Scheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sinks: Sinks,
        clock: Clock,
        settings: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.sinks = sinks
        self.clock = clock
        self.settings = settings
        self.jobs: dict[str, PeriodicJob] = {
            "dispatch": PeriodicJob(
                "dispatch", self._dispatch, every(settings.DISPATCH_INTERVAL_SECONDS)
            ),
            "cleanup": PeriodicJob(
                "cleanup", self._cleanup, daily_at(settings.cleanup_at, clock)
            ),
            "reminder": PeriodicJob(
                "reminder", self._remind, daily_at(settings.reminder_at, clock)
            ),
        }

    # job bodies (worker thread)

    def _dispatch(self) -> jobs.DispatchResult:
        with self.session_factory() as db:
            return jobs.dispatch_pending(db, self.sinks, self.clock)

    def _cleanup(self) -> int:
        with self.session_factory() as db:
            return jobs.cleanup_expired(db, self.clock)

    def _remind(self) -> jobs.ReminderResult:
        with self.session_factory() as db:
            return jobs.send_daily_reminders(
                db, self.sinks, self.clock, dedupe=self.settings.REMINDER_DEDUPE
            )

    # lifecycle

    @property
    def running(self) -> bool:
        return any(job.is_scheduled for job in self.jobs.values())

    def start(self) -> None:
        for job in self.jobs.values():
            job.start()
        logger.info("scheduler started (%s)", ", ".join(self.jobs))

    async def stop(self) -> None:
        for job in self.jobs.values():
            await job.stop()
        logger.info("scheduler stopped")

    async def trigger(self, name: str) -> bool:
        """Run one job immediately, outside its schedule."""
        return await self.jobs[name].run_once()
