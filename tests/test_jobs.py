"""
Tests for the scheduler job bodies: dispatch, cleanup and daily reminders.
"""
from __future__ import annotations

from datetime import timedelta

from sileme.core.errors import DeliveryFailedError
from sileme.models.notification import Notification, NotificationCategory
from sileme.services import jobs
from sileme.services.checkins import CheckInFields, create_checkin
from sileme.services.delivery import RecordingSink
from sileme.services.notifications import NotificationDraft, create_notification


class FailingForSink(RecordingSink):
    """Raises for one channel key, records everything else."""

    def __init__(self, channel: str, failing_key: str):
        super().__init__(channel)
        self.failing_key = failing_key

    def publish(self, channel_key, event, payload):
        if channel_key == self.failing_key:
            raise DeliveryFailedError(self.channel, channel_key, "unreachable")
        super().publish(channel_key, event, payload)


def _due(db, user, clock, **overrides):
    fields = {
        "title": "Scheduled",
        "message": "Due now",
        "scheduled_for": clock.now() - timedelta(minutes=1),
    }
    fields.update(overrides)
    return create_notification(db, user.id, NotificationDraft(**fields), clock)


class TestDispatch:
    def test_delivers_and_marks_sent(self, db, user, clock, sinks, push_sink):
        n = _due(db, user, clock)
        result = jobs.dispatch_pending(db, sinks, clock)
        assert (result.sent, result.dropped, result.failed) == (1, 0, 0)
        db.refresh(n)
        assert n.is_sent is True
        (msg,) = push_sink.events("notification")
        assert msg.channel_key == f"user_{user.id}"

    def test_publishes_on_every_declared_channel(self, db, user, clock, sinks, push_sink, realtime_sink):
        _due(db, user, clock, channels=["push", "realtime", "email"])
        jobs.dispatch_pending(db, sinks, clock)
        assert len(push_sink.messages) == 1
        assert len(realtime_sink.messages) == 1

    def test_failure_is_isolated(self, db, make_user, clock):
        alice, bob = make_user(), make_user()
        sink = FailingForSink("push", f"user_{alice.id}")
        a = _due(db, alice, clock)
        b = _due(db, bob, clock)

        result = jobs.dispatch_pending(db, {"push": sink}, clock)
        assert (result.sent, result.failed) == (1, 1)
        db.refresh(a)
        db.refresh(b)
        assert a.is_sent is False
        assert b.is_sent is True
        assert [m.channel_key for m in sink.messages] == [f"user_{bob.id}"]

    def test_failed_notification_retried_next_pass(self, db, user, clock, push_sink):
        n = _due(db, user, clock)
        sink = FailingForSink("push", f"user_{user.id}")
        jobs.dispatch_pending(db, {"push": sink}, clock)
        result = jobs.dispatch_pending(db, {"push": push_sink}, clock)
        assert result.sent == 1
        db.refresh(n)
        assert n.is_sent is True

    def test_disabled_user_dropped_without_delivery(self, db, make_user, clock, sinks, push_sink):
        quiet = make_user(notification_enabled=False)
        n = _due(db, quiet, clock)
        result = jobs.dispatch_pending(db, sinks, clock)
        assert result.dropped == 1
        db.refresh(n)
        assert n.is_sent is True
        assert push_sink.messages == []

    def test_future_and_expired_untouched(self, db, user, clock, sinks):
        future = _due(db, user, clock, scheduled_for=clock.now() + timedelta(hours=1))
        result = jobs.dispatch_pending(db, sinks, clock)
        assert result.sent == 0
        db.refresh(future)
        assert future.is_sent is False


class TestCleanup:
    def test_cleanup_job(self, db, user, clock):
        _due(db, user, clock, expires_at=clock.now() - timedelta(seconds=1))
        _due(db, user, clock)
        assert jobs.cleanup_expired(db, clock) == 1
        assert db.query(Notification).count() == 1


class TestReminders:
    def test_only_eligible_users_reminded(self, db, make_user, clock, sinks, realtime_sink):
        due = make_user()
        checked_in = make_user()
        no_reminder = make_user(checkin_reminder=False)
        muted = make_user(notification_enabled=False)
        create_checkin(db, checked_in, CheckInFields(), clock, {})

        result = jobs.send_daily_reminders(db, sinks, clock)
        assert result.sent == 1

        reminders = (
            db.query(Notification)
            .filter(Notification.category == NotificationCategory.reminder)
            .all()
        )
        assert [n.user_id for n in reminders] == [due.id]
        assert reminders[0].is_sent is True
        assert reminders[0].is_scheduled is False
        keys = {m.channel_key for m in realtime_sink.events("notification")}
        assert keys == {f"user_{due.id}"}
        assert {no_reminder.id, muted.id}.isdisjoint(n.user_id for n in reminders)

    def test_second_run_same_day_is_deduplicated(self, db, user, clock, sinks):
        jobs.send_daily_reminders(db, sinks, clock)
        result = jobs.send_daily_reminders(db, sinks, clock)
        assert (result.sent, result.skipped) == (0, 1)

    def test_dedupe_can_be_disabled(self, db, user, clock, sinks):
        jobs.send_daily_reminders(db, sinks, clock)
        result = jobs.send_daily_reminders(db, sinks, clock, dedupe=False)
        assert result.sent == 1

    def test_next_day_reminds_again(self, db, user, clock, sinks):
        jobs.send_daily_reminders(db, sinks, clock)
        clock.advance(days=1)
        assert jobs.send_daily_reminders(db, sinks, clock).sent == 1

    def test_per_user_failure_skipped(self, db, make_user, clock):
        first, second = make_user(), make_user()
        sink = FailingForSink("push", f"user_{first.id}")
        result = jobs.send_daily_reminders(db, {"push": sink}, clock)
        assert (result.sent, result.failed) == (1, 1)
        assert [m.channel_key for m in sink.messages] == [f"user_{second.id}"]
