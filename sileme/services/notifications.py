"""
Notification store: creation defaults, read/sent transitions, queries and
cleanup.

Public API
----------
create_notification(db, user_id, draft, clock)         -> Notification
mark_read(db, user_id, notification_id, clock)          -> Notification  (idempotent)
mark_sent(db, notification, clock)                      -> Notification  (idempotent)
mark_all_read(db, user_id, clock)                       -> int
get_unread_count(db, user_id, clock)                    -> int
get_pending(db, clock)                                  -> list[Notification]
cleanup_expired(db, clock)                              -> int
delete_notification(db, user_id, notification_id)       -> None
bulk_delete(db, user_id, criteria)                      -> int
deliver_notification(notification, sinks)               -> list[str]

Derived state is computed, never stored: is_expired / is_overdue /
is_dispatchable take the row and "now".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from sileme.core.clock import Clock, as_utc, day_bounds
from sileme.core.config import settings
from sileme.core.errors import NotFoundError, ValidationFailedError, Violation
from sileme.models.notification import (
    Channel,
    Notification,
    NotificationCategory,
    NotificationType,
)
from sileme.services.delivery import Sinks, channel_key_for

logger = logging.getLogger(__name__)

Primitive = Union[str, int, float, bool, None]

TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 500
DEFAULT_PRIORITY = 3
DEFAULT_CHANNELS = [Channel.push.value]
LIVE_CHANNELS = [Channel.push.value, Channel.realtime.value]

NOTIFICATION_EVENT = "notification"
NEW_NOTIFICATION_EVENT = "new_notification"


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------

@dataclass
class NotificationMeta:
    source: Optional[str] = None
    action_url: Optional[str] = None
    image_url: Optional[str] = None
    sound: Optional[str] = None


@dataclass
class NotificationDraft:
    """Fields accepted by create_notification. Unset fields get defaults."""
    title: str
    message: str
    type: str = NotificationType.info.value
    priority: int = DEFAULT_PRIORITY
    category: str = NotificationCategory.other.value
    data: dict[str, Primitive] = field(default_factory=dict)
    scheduled_for: Optional[datetime] = None
    channels: Optional[list[str]] = None
    meta: NotificationMeta = field(default_factory=NotificationMeta)
    expires_at: Optional[datetime] = None


@dataclass
class BulkDeleteCriteria:
    ids: Optional[list[int]] = None
    type: Optional[str] = None
    is_read: Optional[bool] = None


@dataclass
class ListFilters:
    type: Optional[str] = None
    category: Optional[str] = None
    is_read: Optional[bool] = None
    priority: Optional[int] = None


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------

def is_expired(n: Notification, now: datetime) -> bool:
    return not as_utc(n.expires_at) > as_utc(now)


def is_overdue(n: Notification, now: datetime) -> bool:
    return (
        n.scheduled_for is not None
        and as_utc(n.scheduled_for) < as_utc(now)
        and not n.is_sent
    )


def is_dispatchable(n: Notification, now: datetime) -> bool:
    return (
        n.is_scheduled
        and not n.is_sent
        and n.scheduled_for is not None
        and as_utc(n.scheduled_for) <= as_utc(now)
        and not is_expired(n, now)
    )


# ---------------------------------------------------------------------------
# Validation / normalisation
# ---------------------------------------------------------------------------

def _enum_value(v: Any) -> str:
    return v.value if hasattr(v, "value") else str(v)


def validate_draft(draft: NotificationDraft) -> list[Violation]:
    """Collect every problem with a draft instead of stopping at the first."""
    problems: list[Violation] = []
    title = (draft.title or "").strip()
    message = (draft.message or "").strip()

    if not title:
        problems.append(Violation("title", "title is required"))
    elif len(title) > TITLE_MAX_LENGTH:
        problems.append(Violation("title", f"title must be at most {TITLE_MAX_LENGTH} characters"))

    if not message:
        problems.append(Violation("message", "message is required"))
    elif len(message) > MESSAGE_MAX_LENGTH:
        problems.append(Violation("message", f"message must be at most {MESSAGE_MAX_LENGTH} characters"))

    if _enum_value(draft.type) not in NotificationType.__members__:
        problems.append(Violation("type", f"unknown notification type {draft.type!r}"))
    if _enum_value(draft.category) not in NotificationCategory.__members__:
        problems.append(Violation("category", f"unknown category {draft.category!r}"))

    if isinstance(draft.priority, bool) or not isinstance(draft.priority, int) or not 1 <= draft.priority <= 5:
        problems.append(Violation("priority", "priority must be an integer between 1 and 5"))

    for ch in draft.channels or []:
        if _enum_value(ch) not in Channel.__members__:
            problems.append(Violation("channels", f"unknown channel {ch!r}"))

    for key, value in (draft.data or {}).items():
        if not isinstance(key, str):
            problems.append(Violation("data", "data keys must be strings"))
        if value is not None and not isinstance(value, (str, int, float, bool)):
            problems.append(Violation(f"data.{key}", "data values must be str, int, float, bool or null"))

    for name in ("scheduled_for", "expires_at"):
        value = getattr(draft, name)
        if value is not None and value.tzinfo is None:
            problems.append(Violation(name, "timestamp must include a timezone"))

    return problems


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_notification(
    db: Session,
    user_id: int,
    draft: NotificationDraft,
    clock: Clock,
    commit: bool = True,
) -> Notification:
    problems = validate_draft(draft)
    if problems:
        raise ValidationFailedError(problems)

    now = clock.now()
    channels = list(dict.fromkeys(_enum_value(c) for c in (draft.channels or DEFAULT_CHANNELS)))
    n = Notification(
        user_id=user_id,
        title=draft.title.strip(),
        message=draft.message.strip(),
        type=NotificationType(_enum_value(draft.type)),
        priority=draft.priority,
        category=NotificationCategory(_enum_value(draft.category)),
        data=dict(draft.data or {}),
        scheduled_for=draft.scheduled_for,
        is_scheduled=draft.scheduled_for is not None,
        is_read=False,
        is_sent=False,
        channels=channels,
        source=draft.meta.source,
        action_url=draft.meta.action_url,
        image_url=draft.meta.image_url,
        sound=draft.meta.sound,
        expires_at=draft.expires_at or now + timedelta(days=settings.NOTIFICATION_EXPIRY_DAYS),
        created_at=now,
    )
    db.add(n)
    if commit:
        db.commit()
        db.refresh(n)
    else:
        db.flush()
    return n


def _set_read(n: Notification, now: datetime) -> bool:
    if n.is_read:
        return False
    n.is_read = True
    n.read_at = now
    return True


def _set_sent(n: Notification, now: datetime) -> bool:
    if n.is_sent:
        return False
    n.is_sent = True
    n.sent_at = now
    return True


def mark_read(db: Session, user_id: int, notification_id: int, clock: Clock) -> Notification:
    """Mark as read. A second call leaves read_at untouched."""
    n = get_notification(db, user_id, notification_id)
    if _set_read(n, clock.now()):
        db.commit()
        db.refresh(n)
    return n


def mark_sent(db: Session, n: Notification, clock: Clock, commit: bool = True) -> Notification:
    if _set_sent(n, clock.now()) and commit:
        db.commit()
    return n


def mark_all_read(db: Session, user_id: int, clock: Clock) -> int:
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .update(
            {Notification.is_read: True, Notification.read_at: clock.now()},
            synchronize_session=False,
        )
    )
    db.commit()
    return count


def delete_notification(db: Session, user_id: int, notification_id: int) -> None:
    n = get_notification(db, user_id, notification_id)
    db.delete(n)
    db.commit()


def bulk_delete(db: Session, user_id: int, criteria: BulkDeleteCriteria) -> int:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if criteria.ids is not None:
        q = q.filter(Notification.id.in_(criteria.ids))
    if criteria.type:
        q = q.filter(Notification.type == NotificationType(_enum_value(criteria.type)))
    if criteria.is_read is not None:
        q = q.filter(Notification.is_read == criteria.is_read)
    count = q.delete(synchronize_session=False)
    db.commit()
    return count


def cleanup_expired(db: Session, clock: Clock) -> int:
    """Physically delete every notification whose expires_at is in the past."""
    count = (
        db.query(Notification)
        .filter(Notification.expires_at < clock.now())
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_notification(db: Session, user_id: int, notification_id: int) -> Notification:
    n = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if n is None:
        raise NotFoundError("Notification", notification_id)
    return n


def get_unread_count(db: Session, user_id: int, clock: Clock) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
            Notification.expires_at > clock.now(),
        )
        .scalar()
        or 0
    )


def get_pending(db: Session, clock: Clock) -> list[Notification]:
    """Scheduled, unsent, due and unexpired notifications across all users."""
    now = clock.now()
    return (
        db.query(Notification)
        .options(joinedload(Notification.user))
        .filter(
            Notification.is_scheduled == True,  # noqa: E712
            Notification.is_sent == False,  # noqa: E712
            Notification.scheduled_for <= now,
            Notification.expires_at > now,
        )
        .order_by(Notification.priority.desc(), Notification.scheduled_for.asc(), Notification.id.asc())
        .all()
    )


def list_notifications(
    db: Session,
    user_id: int,
    clock: Clock,
    filters: Optional[ListFilters] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[Notification]]:
    """Return (total, page) of unexpired notifications, newest first."""
    filters = filters or ListFilters()
    q = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.expires_at > clock.now(),
    )
    if filters.type:
        q = q.filter(Notification.type == NotificationType(_enum_value(filters.type)))
    if filters.category:
        q = q.filter(Notification.category == NotificationCategory(_enum_value(filters.category)))
    if filters.is_read is not None:
        q = q.filter(Notification.is_read == filters.is_read)
    if filters.priority is not None:
        q = q.filter(Notification.priority == filters.priority)
    total = q.count()
    items = (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def notification_stats(db: Session, user_id: int, clock: Clock) -> dict:
    now = clock.now()
    visible = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.expires_at > now,
    )
    total = visible.count()
    unread = get_unread_count(db, user_id, clock)

    type_rows = (
        visible.with_entities(Notification.type, func.count(Notification.id))
        .group_by(Notification.type)
        .all()
    )
    priority_rows = (
        visible.with_entities(Notification.priority, func.count(Notification.id))
        .group_by(Notification.priority)
        .order_by(Notification.priority)
        .all()
    )
    recent = visible.filter(Notification.created_at >= now - timedelta(days=7)).count()

    return {
        "total": total,
        "unread": unread,
        "read": total - unread,
        "recent": recent,
        "by_type": sorted(
            ({"type": _enum_value(t), "count": c} for t, c in type_rows),
            key=lambda r: -r["count"],
        ),
        "by_priority": [{"priority": p, "count": c} for p, c in priority_rows],
    }


def has_reminder_today(db: Session, user_id: int, clock: Clock) -> bool:
    start, _ = day_bounds(clock.today(), clock.tz)
    return (
        db.query(Notification.id)
        .filter(
            Notification.user_id == user_id,
            Notification.category == NotificationCategory.reminder,
            Notification.is_scheduled == False,  # noqa: E712
            Notification.created_at >= start,
        )
        .first()
        is not None
    )


# ---------------------------------------------------------------------------
# Canned notifications
# ---------------------------------------------------------------------------

def create_system_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    clock: Clock,
    data: Optional[dict[str, Primitive]] = None,
    category: str = NotificationCategory.system.value,
    commit: bool = True,
) -> Notification:
    draft = NotificationDraft(
        title=title,
        message=message,
        type=NotificationType.system.value,
        category=category,
        data=data or {},
        channels=LIVE_CHANNELS,
    )
    return create_notification(db, user_id, draft, clock, commit=commit)


def create_reminder_notification(
    db: Session,
    user_id: int,
    clock: Clock,
    scheduled_for: Optional[datetime] = None,
) -> Notification:
    draft = NotificationDraft(
        title="Check-in reminder",
        message="Don't forget today's check-in. Keep the habit going!",
        type=NotificationType.info.value,
        category=NotificationCategory.reminder.value,
        scheduled_for=scheduled_for,
        channels=LIVE_CHANNELS,
        meta=NotificationMeta(source="system", sound="default"),
    )
    return create_notification(db, user_id, draft, clock)


def schedule_reminder(db: Session, user_id: int, when: datetime, clock: Clock) -> Notification:
    """A user-requested reminder at a future time."""
    if when.tzinfo is None:
        raise ValidationFailedError.single("scheduled_for", "timestamp must include a timezone")
    if as_utc(when) <= clock.now():
        raise ValidationFailedError.single("scheduled_for", "reminder time must be in the future")
    return create_reminder_notification(db, user_id, clock, scheduled_for=when)


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

def notification_payload(n: Notification) -> dict:
    return {
        "id": n.id,
        "title": n.title,
        "message": n.message,
        "type": _enum_value(n.type),
        "category": _enum_value(n.category),
        "priority": n.priority,
        "data": n.data or {},
        "created_at": n.created_at,
    }


def deliver_notification(
    n: Notification,
    sinks: Sinks,
    event: str = NOTIFICATION_EVENT,
) -> list[str]:
    """
    Publish on every declared channel a sink exists for.
    Returns the channels used. DeliveryFailedError (or any sink error)
    propagates so the caller can leave the notification unsent.
    """
    used: list[str] = []
    payload = notification_payload(n)
    for channel in n.channels or []:
        sink = sinks.get(channel)
        if sink is None:
            continue
        sink.publish(channel_key_for(n.user_id), event, payload)
        used.append(channel)
    return used


def create_instant_notification(
    db: Session,
    user_id: int,
    draft: NotificationDraft,
    sinks: Sinks,
    clock: Clock,
    notifications_enabled: bool = True,
) -> Notification:
    """Create an unscheduled notification, push it right away and mark it sent."""
    draft = replace(draft, scheduled_for=None)
    n = create_notification(db, user_id, draft, clock)
    if notifications_enabled:
        try:
            deliver_notification(n, sinks, event=NEW_NOTIFICATION_EVENT)
        except Exception as exc:
            logger.warning("instant notification %s not delivered: %s", n.id, exc)
            return n
    mark_sent(db, n, clock)
    db.refresh(n)
    return n


# ---------------------------------------------------------------------------
# dict helper
# ---------------------------------------------------------------------------

def notification_to_dict(n: Notification, now: Optional[datetime] = None) -> dict:
    d = {
        "id": n.id,
        "user_id": n.user_id,
        "title": n.title,
        "message": n.message,
        "type": _enum_value(n.type),
        "priority": n.priority,
        "category": _enum_value(n.category),
        "data": n.data or {},
        "is_read": n.is_read,
        "read_at": n.read_at.isoformat() if n.read_at else None,
        "scheduled_for": n.scheduled_for.isoformat() if n.scheduled_for else None,
        "is_scheduled": n.is_scheduled,
        "is_sent": n.is_sent,
        "sent_at": n.sent_at.isoformat() if n.sent_at else None,
        "channels": list(n.channels or []),
        "metadata": {
            "source": n.source,
            "action_url": n.action_url,
            "image_url": n.image_url,
            "sound": n.sound,
        },
        "expires_at": n.expires_at.isoformat() if n.expires_at else None,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }
    if now is not None:
        d["is_expired"] = is_expired(n, now)
        d["is_overdue"] = is_overdue(n, now)
    return d
