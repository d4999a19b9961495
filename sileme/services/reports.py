"""
Read-only statistics built from check-in history.

overview          headline numbers for the dashboard
checkin_trends    per-day / mood / weekday breakdown of the last N days
monthly_report    one calendar month, including streaks inside the month
yearly_report     per-month counts for one year
calendar_month    day-of-month -> check-in summary, for calendar views
"""
from __future__ import annotations

import calendar
from collections import Counter
from datetime import date, timedelta

from sqlalchemy.orm import Session

from sileme.core.clock import Clock, days_between
from sileme.core.errors import ValidationFailedError, Violation
from sileme.models.checkin import CheckIn, Mood
from sileme.models.user import User
from sileme.services import achievements, notifications
from sileme.services.checkins import get_user_stats
from sileme.services.streaks import run_lengths

MAX_TREND_DAYS = 365
WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _mood_value(mood) -> str:
    return mood.value if isinstance(mood, Mood) else mood


def _checkins_between(db: Session, user_id: int, start: date, end: date) -> list[CheckIn]:
    """Check-ins with start <= day <= end, oldest first."""
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user_id, CheckIn.day >= start, CheckIn.day <= end)
        .order_by(CheckIn.day.asc())
        .all()
    )


def _validate_year_month(year: int, month: int | None = None) -> None:
    problems = []
    if not 1 <= year <= 9999:
        problems.append(Violation("year", "year must be between 1 and 9999"))
    if month is not None and not 1 <= month <= 12:
        problems.append(Violation("month", "month must be between 1 and 12"))
    if problems:
        raise ValidationFailedError(problems)


def _month_range(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def _mood_distribution(rows: list[CheckIn]) -> dict[str, int]:
    counts = Counter(_mood_value(c.mood) for c in rows)
    return {m: counts.get(m, 0) for m in Mood.__members__}


def _tag_distribution(rows: list[CheckIn], top: int = 10) -> list[dict]:
    counts = Counter(tag for c in rows for tag in (c.tags or []))
    return [{"tag": t, "count": n} for t, n in counts.most_common(top)]


def overview(db: Session, user: User, clock: Clock) -> dict:
    today = clock.today()
    stats = get_user_stats(db, user.id, clock)

    month_start = today.replace(day=1)
    week_start = today - timedelta(days=today.weekday())
    this_month = len(_checkins_between(db, user.id, month_start, today))
    this_week = len(_checkins_between(db, user.id, week_start, today))

    early = achievements.count_early_checkins(db, user.id, clock)
    unlocked = achievements.summarize(achievements.evaluate(stats, early))
    note_stats = notifications.notification_stats(db, user.id, clock)

    return {
        "stats": stats.to_dict(),
        "this_month": this_month,
        "this_week": this_week,
        "join_days": days_between(user.created_at, clock.now(), clock.tz) + 1,
        "achievements": unlocked,
        "notifications": {
            "total": note_stats["total"],
            "unread": note_stats["unread"],
        },
    }


def checkin_trends(db: Session, user_id: int, clock: Clock, days: int = 30) -> dict:
    if not 1 <= days <= MAX_TREND_DAYS:
        raise ValidationFailedError.single("days", f"days must be between 1 and {MAX_TREND_DAYS}")

    today = clock.today()
    start = today - timedelta(days=days - 1)
    rows = _checkins_between(db, user_id, start, today)
    by_day = {c.day: c for c in rows}

    daily = []
    for i in range(days):
        d = start + timedelta(days=i)
        c = by_day.get(d)
        daily.append({
            "date": str(d),
            "checked_in": c is not None,
            "mood": _mood_value(c.mood) if c else None,
        })

    weekdays = Counter(c.day.weekday() for c in rows)
    return {
        "days": days,
        "start_date": str(start),
        "end_date": str(today),
        "total": len(rows),
        "rate": round(len(rows) / days * 100, 1),
        "daily": daily,
        "mood_distribution": _mood_distribution(rows),
        "weekday_distribution": [
            {"weekday": name, "count": weekdays.get(i, 0)}
            for i, name in enumerate(WEEKDAY_NAMES)
        ],
    }


def monthly_report(db: Session, user_id: int, year: int, month: int) -> dict:
    _validate_year_month(year, month)
    start, end = _month_range(year, month)
    rows = _checkins_between(db, user_id, start, end)
    days_in_month = end.day

    runs = run_lengths([c.day for c in rows])
    return {
        "year": year,
        "month": month,
        "days_in_month": days_in_month,
        "checkin_days": len(rows),
        "rate": round(len(rows) / days_in_month * 100, 1),
        "max_streak": max(runs, default=0),
        "streaks": runs,
        "average_streak": round(sum(runs) / len(runs), 1) if runs else 0,
        "mood_distribution": _mood_distribution(rows),
        "top_tags": _tag_distribution(rows),
    }


def yearly_report(db: Session, user_id: int, year: int) -> dict:
    _validate_year_month(year)
    rows = _checkins_between(db, user_id, date(year, 1, 1), date(year, 12, 31))
    per_month = Counter(c.day.month for c in rows)
    days_in_year = 366 if calendar.isleap(year) else 365

    return {
        "year": year,
        "total": len(rows),
        "days_in_year": days_in_year,
        "rate": round(len(rows) / days_in_year * 100, 1),
        "active_months": sum(1 for m in range(1, 13) if per_month.get(m)),
        "monthly": [{"month": m, "count": per_month.get(m, 0)} for m in range(1, 13)],
        "mood_distribution": _mood_distribution(rows),
    }


def calendar_month(db: Session, user_id: int, year: int, month: int) -> dict[int, dict]:
    _validate_year_month(year, month)
    start, end = _month_range(year, month)
    return {
        c.day.day: {
            "id": c.id,
            "mood": _mood_value(c.mood),
            "note": c.note,
            "tags": list(c.tags or []),
        }
        for c in _checkins_between(db, user_id, start, end)
    }
