"""
Tests for the in-process scheduler.

Async code is driven with asyncio.run so no pytest plugin is needed.
"""
from __future__ import annotations

import asyncio
import threading
from datetime import date, datetime, time, timedelta

from sileme.core.clock import FixedClock
from sileme.core.config import Settings
from sileme.db.base import SessionLocal
from sileme.services.notifications import NotificationDraft, create_notification
from sileme.services.scheduler import PeriodicJob, Scheduler, every, seconds_until


class TestDelays:
    def test_later_today(self, clock):
        clock.set(datetime(2026, 3, 10, 1, 0))
        assert seconds_until(time(2, 0), clock) == 3600

    def test_already_passed_rolls_to_tomorrow(self, clock):
        clock.set(datetime(2026, 3, 10, 3, 0))
        assert seconds_until(time(2, 0), clock) == 23 * 3600

    def test_exactly_now_rolls_to_tomorrow(self, clock):
        clock.set(datetime(2026, 3, 10, 9, 0))
        assert seconds_until(time(9, 0), clock) == 24 * 3600

    def test_spring_forward_day(self):
        clock = FixedClock(datetime(2026, 3, 7, 10, 0), tz="America/New_York")
        delay = seconds_until(time(9, 0), clock)
        assert delay == 22 * 3600
        wake = clock.local(clock.now() + timedelta(seconds=delay))
        assert (wake.date(), wake.hour) == (date(2026, 3, 8), 9)

    def test_fall_back_day(self):
        clock = FixedClock(datetime(2026, 10, 31, 10, 0), tz="America/New_York")
        delay = seconds_until(time(9, 0), clock)
        assert delay == 24 * 3600
        wake = clock.local(clock.now() + timedelta(seconds=delay))
        assert (wake.date(), wake.hour) == (date(2026, 11, 1), 9)


class TestPeriodicJob:
    def test_crash_is_logged_and_job_keeps_ticking(self, caplog):
        calls = []

        def boom():
            calls.append(1)
            raise RuntimeError("boom")

        async def scenario():
            job = PeriodicJob("boom", boom, every(0.01))
            job.start()
            await asyncio.sleep(0.2)
            still_scheduled = job.is_scheduled
            await job.stop()
            return job, still_scheduled

        job, still_scheduled = asyncio.run(scenario())
        assert still_scheduled
        assert len(calls) >= 2
        assert job.failures >= 2
        assert not job.is_scheduled
        assert "job boom failed" in caplog.text

    def test_no_overlapping_runs(self):
        release = threading.Event()
        started = threading.Event()
        calls = []

        def slow():
            calls.append(1)
            started.set()
            release.wait(timeout=5)

        async def scenario():
            job = PeriodicJob("slow", slow, every(3600))
            first = asyncio.create_task(job.run_once())
            while not started.is_set():
                await asyncio.sleep(0.01)
            skipped = await job.run_once()
            release.set()
            return await first, skipped

        first, skipped = asyncio.run(scenario())
        assert first is True
        assert skipped is False
        assert len(calls) == 1

    def test_stop_cancels_pending_tick(self):
        calls = []

        async def scenario():
            job = PeriodicJob("later", lambda: calls.append(1), every(3600))
            job.start()
            await asyncio.sleep(0)
            await job.stop()
            return job

        job = asyncio.run(scenario())
        assert calls == []
        assert not job.is_scheduled


class TestScheduler:
    def test_start_and_stop(self, clock, sinks):
        scheduler = Scheduler(SessionLocal, sinks, clock, Settings())

        async def scenario():
            scheduler.start()
            running = scheduler.running
            await scheduler.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert scheduler.running is False

    def test_trigger_dispatch(self, db, user, clock, sinks, push_sink):
        n = create_notification(
            db, user.id,
            NotificationDraft(title="Due", message="now", scheduled_for=clock.now() - timedelta(seconds=1)),
            clock,
        )
        scheduler = Scheduler(SessionLocal, sinks, clock, Settings())
        assert asyncio.run(scheduler.trigger("dispatch")) is True
        db.refresh(n)
        assert n.is_sent is True
        assert len(push_sink.messages) == 1

    def test_trigger_reminder_and_cleanup(self, db, user, clock, sinks, realtime_sink):
        scheduler = Scheduler(SessionLocal, sinks, clock, Settings())
        asyncio.run(scheduler.trigger("reminder"))
        assert len(realtime_sink.events("notification")) == 1

        clock.advance(days=31)
        asyncio.run(scheduler.trigger("cleanup"))
        assert scheduler.jobs["cleanup"].failures == 0
        assert scheduler.jobs["cleanup"].runs == 1
