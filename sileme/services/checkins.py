"""
Check-in registrar.

Enforces one check-in per user per calendar day, keeps the user's stats
snapshot in step with the full check-in history and announces successful
check-ins.

create_checkin flow:
  1. validate fields (all violations collected)
  2. pre-check "already checked in today?"  -> AlreadyCheckedInError
  3. insert + flush; a (user_id, day) unique violation raised by a
     concurrent request maps to the same AlreadyCheckedInError
  4. recompute stats over every check-in day, write the snapshot
  5. companion system notification, same transaction
  6. commit, then publish "checkin_success" on the realtime sink
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.config import settings
from sileme.core.errors import (
    AlreadyCheckedInError,
    NotAllowedError,
    NotFoundError,
    ValidationFailedError,
    Violation,
)
from sileme.models.checkin import CheckIn, Mood
from sileme.models.notification import Channel, NotificationCategory
from sileme.models.user import User
from sileme.services import notifications
from sileme.services.delivery import Sinks, channel_key_for
from sileme.services.streaks import StreakStats, compute_stats

logger = logging.getLogger(__name__)

CHECKIN_SUCCESS_EVENT = "checkin_success"

EDITABLE_FIELDS = (
    "mood", "note", "longitude", "latitude", "address", "weather", "tags", "is_public",
)


@dataclass
class CheckInFields:
    mood: str = Mood.normal.value
    note: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    address: Optional[str] = None
    weather: Optional[dict[str, Any]] = None
    tags: list[str] = field(default_factory=list)
    is_public: bool = False

    def as_changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


@dataclass
class CheckInQuery:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mood: Optional[str] = None
    tags: Optional[list[str]] = None
    limit: int = 20
    offset: int = 0
    newest_first: bool = True


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_changes(changes: dict[str, Any]) -> list[Violation]:
    """Check only the keys present in `changes`; return every violation found."""
    problems: list[Violation] = []

    if "mood" in changes:
        mood = changes["mood"]
        mood = mood.value if isinstance(mood, Mood) else mood
        if mood not in Mood.__members__:
            problems.append(Violation(
                "mood", f"mood must be one of {', '.join(Mood.__members__)}"
            ))

    note = changes.get("note")
    if note is not None:
        if not isinstance(note, str):
            problems.append(Violation("note", "note must be a string"))
        elif len(note) > settings.CHECKIN_NOTE_MAX_LENGTH:
            problems.append(Violation(
                "note", f"note must be at most {settings.CHECKIN_NOTE_MAX_LENGTH} characters"
            ))

    lon = changes.get("longitude")
    lat = changes.get("latitude")
    if (lon is None) != (lat is None) and ("longitude" in changes or "latitude" in changes):
        problems.append(Violation("location", "longitude and latitude must be given together"))
    if lon is not None and (not _is_number(lon) or not -180 <= lon <= 180):
        problems.append(Violation("longitude", "longitude must be a number between -180 and 180"))
    if lat is not None and (not _is_number(lat) or not -90 <= lat <= 90):
        problems.append(Violation("latitude", "latitude must be a number between -90 and 90"))

    weather = changes.get("weather")
    if weather is not None:
        if not isinstance(weather, dict):
            problems.append(Violation("weather", "weather must be an object"))
        else:
            for key in ("temperature", "humidity"):
                if weather.get(key) is not None and not _is_number(weather[key]):
                    problems.append(Violation(f"weather.{key}", f"{key} must be a number"))
            if weather.get("condition") is not None and not isinstance(weather["condition"], str):
                problems.append(Violation("weather.condition", "condition must be a string"))

    tags = changes.get("tags")
    if tags is not None:
        if not isinstance(tags, list):
            problems.append(Violation("tags", "tags must be a list of strings"))
        else:
            if len(tags) > settings.CHECKIN_MAX_TAGS:
                problems.append(Violation(
                    "tags", f"at most {settings.CHECKIN_MAX_TAGS} tags allowed"
                ))
            for i, tag in enumerate(tags):
                if not isinstance(tag, str) or not tag.strip():
                    problems.append(Violation(f"tags.{i}", "tag must be a non-empty string"))
                elif len(tag) > settings.CHECKIN_TAG_MAX_LENGTH:
                    problems.append(Violation(
                        f"tags.{i}",
                        f"tag must be at most {settings.CHECKIN_TAG_MAX_LENGTH} characters",
                    ))

    return problems


def _apply(checkin: CheckIn, changes: dict[str, Any]) -> None:
    for name, value in changes.items():
        if name not in EDITABLE_FIELDS:
            continue
        if name == "mood":
            value = Mood(value.value if isinstance(value, Mood) else value)
        elif name == "tags" and value is not None:
            value = [t.strip() for t in value]
        elif name == "weather" and value is not None:
            value = dict(value)
        setattr(checkin, name, value)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def _checkin_days(db: Session, user_id: int) -> list[date]:
    return [d for (d,) in db.query(CheckIn.day).filter(CheckIn.user_id == user_id).all()]


def get_user_stats(db: Session, user_id: int, clock: Clock) -> StreakStats:
    """Stats straight from history; the user's stored snapshot is not consulted."""
    return compute_stats(_checkin_days(db, user_id), clock.today())


def recompute_user_stats(db: Session, user: User, clock: Clock) -> StreakStats:
    """Recompute from every check-in and write the snapshot onto `user` (no commit)."""
    stats = get_user_stats(db, user.id, clock)
    user.total_checkins = stats.total
    user.current_streak = stats.current
    user.longest_streak = stats.longest
    user.last_checkin = stats.last
    return stats


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def has_checked_in_today(db: Session, user_id: int, clock: Clock) -> bool:
    return get_today_checkin(db, user_id, clock) is not None


def get_today_checkin(db: Session, user_id: int, clock: Clock) -> Optional[CheckIn]:
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user_id, CheckIn.day == clock.today())
        .first()
    )


def get_checkin(db: Session, user_id: int, checkin_id: int) -> CheckIn:
    checkin = (
        db.query(CheckIn)
        .filter(CheckIn.id == checkin_id, CheckIn.user_id == user_id)
        .first()
    )
    if checkin is None:
        raise NotFoundError("CheckIn", checkin_id)
    return checkin


def list_checkins(db: Session, user_id: int, query: CheckInQuery) -> tuple[int, list[CheckIn]]:
    q = db.query(CheckIn).filter(CheckIn.user_id == user_id)
    if query.start_date:
        q = q.filter(CheckIn.day >= query.start_date)
    if query.end_date:
        q = q.filter(CheckIn.day <= query.end_date)
    if query.mood:
        q = q.filter(CheckIn.mood == Mood(query.mood))

    order = CheckIn.day.desc() if query.newest_first else CheckIn.day.asc()
    q = q.order_by(order)

    if query.tags:
        # tags live in a JSON text column; match in Python
        wanted = set(query.tags)
        rows = [c for c in q.all() if wanted.intersection(c.tags or [])]
        return len(rows), rows[query.offset:query.offset + query.limit]

    total = q.count()
    return total, q.offset(query.offset).limit(query.limit).all()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_checkin(
    db: Session,
    user: User,
    fields: CheckInFields,
    clock: Clock,
    sinks: Sinks,
) -> tuple[CheckIn, StreakStats]:
    changes = fields.as_changes()
    problems = validate_changes(changes)
    if problems:
        raise ValidationFailedError(problems)

    today = clock.today()
    if has_checked_in_today(db, user.id, clock):
        raise AlreadyCheckedInError(today)

    now = clock.now()
    checkin = CheckIn(user_id=user.id, day=today, created_at=now, updated_at=now)
    _apply(checkin, changes)
    db.add(checkin)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("concurrent check-in rejected for user %s on %s", user.id, today)
        raise AlreadyCheckedInError(today)

    stats = recompute_user_stats(db, user, clock)
    notifications.create_system_notification(
        db,
        user.id,
        title="Check-in complete",
        message=f"Checked in! Current streak: {stats.current} day(s).",
        clock=clock,
        data={
            "checkin_id": checkin.id,
            "current_streak": stats.current,
            "total_checkins": stats.total,
        },
        category=NotificationCategory.checkin.value,
        commit=False,
    )
    db.commit()
    db.refresh(checkin)
    logger.info(
        "user %s checked in on %s (streak %d, total %d)",
        user.id, today, stats.current, stats.total,
    )

    sink = sinks.get(Channel.realtime.value)
    if sink is not None:
        try:
            sink.publish(channel_key_for(user.id), CHECKIN_SUCCESS_EVENT, {
                "checkin": checkin_to_dict(checkin),
                "stats": stats.to_dict(),
            })
        except Exception as exc:
            logger.warning("checkin_success for user %s not published: %s", user.id, exc)

    return checkin, stats


def update_checkin(
    db: Session,
    user: User,
    checkin_id: int,
    changes: dict[str, Any],
    clock: Clock,
) -> CheckIn:
    """Edit today's check-in. Earlier days are read-only."""
    checkin = get_checkin(db, user.id, checkin_id)
    if checkin.day != clock.today():
        raise NotAllowedError(
            "Only today's check-in can be edited.",
            details={"day": str(checkin.day)},
        )

    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    # a lone coordinate pairs with the stored one
    if ("longitude" in changes) != ("latitude" in changes):
        changes.setdefault("longitude", checkin.longitude)
        changes.setdefault("latitude", checkin.latitude)
    problems = validate_changes(changes)
    if problems:
        raise ValidationFailedError(problems)

    _apply(checkin, changes)
    checkin.updated_at = clock.now()
    db.commit()
    db.refresh(checkin)
    logger.info("user %s updated check-in %s", user.id, checkin.id)
    return checkin


def delete_checkin(db: Session, user: User, checkin_id: int, clock: Clock) -> StreakStats:
    checkin = get_checkin(db, user.id, checkin_id)
    db.delete(checkin)
    db.flush()
    stats = recompute_user_stats(db, user, clock)
    db.commit()
    logger.info("user %s deleted check-in %s", user.id, checkin_id)
    return stats


# ---------------------------------------------------------------------------
# dict helper
# ---------------------------------------------------------------------------

def checkin_to_dict(c: CheckIn) -> dict:
    location = None
    if c.longitude is not None and c.latitude is not None:
        location = {
            "longitude": c.longitude,
            "latitude": c.latitude,
            "address": c.address,
        }
    return {
        "id": c.id,
        "user_id": c.user_id,
        "day": str(c.day),
        "mood": c.mood.value if isinstance(c.mood, Mood) else c.mood,
        "note": c.note,
        "location": location,
        "weather": c.weather,
        "tags": list(c.tags or []),
        "is_public": c.is_public,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }
