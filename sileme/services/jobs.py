"""
Bodies of the periodic jobs run by the scheduler.

Each function takes an open Session and does one full pass. They are
synchronous; the scheduler runs them in a worker thread. Failures of a
single notification or user are logged and skipped so the rest of the
batch still goes out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.models.checkin import CheckIn
from sileme.models.user import User
from sileme.services import notifications
from sileme.services.delivery import Sinks

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    sent: int = 0
    dropped: int = 0
    failed: int = 0


@dataclass
class ReminderResult:
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def dispatch_pending(db: Session, sinks: Sinks, clock: Clock) -> DispatchResult:
    """
    Deliver every due scheduled notification.

    Owner has notifications disabled -> marked sent, nothing published.
    A publish error leaves that notification unsent for the next pass.
    """
    result = DispatchResult()
    for n in notifications.get_pending(db, clock):
        if not n.user.notification_enabled:
            notifications.mark_sent(db, n, clock)
            result.dropped += 1
            continue
        try:
            notifications.deliver_notification(n, sinks)
        except Exception as exc:
            logger.warning("notification %s not delivered: %s", n.id, exc)
            result.failed += 1
            continue
        notifications.mark_sent(db, n, clock)
        result.sent += 1

    if result.sent or result.dropped or result.failed:
        logger.info(
            "dispatch: %d sent, %d dropped, %d failed",
            result.sent, result.dropped, result.failed,
        )
    return result


def cleanup_expired(db: Session, clock: Clock) -> int:
    count = notifications.cleanup_expired(db, clock)
    logger.info("cleanup: %d expired notifications removed", count)
    return count


def users_due_reminder(db: Session, clock: Clock) -> list[User]:
    """Active users with reminders on and no check-in today."""
    checked_in = db.query(CheckIn.user_id).filter(CheckIn.day == clock.today())
    return (
        db.query(User)
        .filter(
            User.is_active == True,  # noqa: E712
            User.checkin_reminder == True,  # noqa: E712
            User.notification_enabled == True,  # noqa: E712
            User.id.not_in(checked_in),
        )
        .order_by(User.id)
        .all()
    )


def send_daily_reminders(
    db: Session,
    sinks: Sinks,
    clock: Clock,
    dedupe: bool = True,
) -> ReminderResult:
    result = ReminderResult()
    for user in users_due_reminder(db, clock):
        if dedupe and notifications.has_reminder_today(db, user.id, clock):
            result.skipped += 1
            continue
        try:
            n = notifications.create_reminder_notification(db, user.id, clock)
            notifications.deliver_notification(n, sinks)
            notifications.mark_sent(db, n, clock)
        except Exception:
            db.rollback()
            logger.exception("reminder for user %s failed", user.id)
            result.failed += 1
            continue
        result.sent += 1

    logger.info(
        "reminders: %d sent, %d skipped, %d failed",
        result.sent, result.skipped, result.failed,
    )
    return result
