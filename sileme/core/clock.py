"""
Clock and calendar helpers.

Every day-boundary decision in the app (streaks, the one-check-in-per-day
rule, reminders, reports) goes through this module so a "day" is always
computed the same way: convert to the configured zone, truncate to the
calendar date, then diff whole dates.

Public API
----------
Clock / FixedClock                 → injectable source of "now"
start_of_day(t, tz)                → aware datetime at 00:00 in tz
day_of(t, tz)                      → calendar date of t in tz
days_between(a, b, tz)             → whole calendar days from a to b
is_consecutive(a, b, tz)           → days_between(a, b) == 1
day_of_week(t, tz)                 → Monday=0 … Sunday=6
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Union
from zoneinfo import ZoneInfo

from sileme.core.config import settings

Instant = Union[datetime, date]


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (as read from SQLite) and normalise aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _zone(tz: tzinfo | None) -> tzinfo:
    return settings.tz if tz is None else tz


def day_of(t: Instant, tz: tzinfo | None = None) -> date:
    """Calendar date of `t` in `tz`. Plain dates are already truncated."""
    if isinstance(t, datetime):
        return as_utc(t).astimezone(_zone(tz)).date()
    return t


def start_of_day(t: Instant, tz: tzinfo | None = None) -> datetime:
    return datetime.combine(day_of(t, tz), time.min, tzinfo=_zone(tz))


def days_between(a: Instant, b: Instant, tz: tzinfo | None = None) -> int:
    return (day_of(b, tz) - day_of(a, tz)).days


def is_consecutive(a: Instant, b: Instant, tz: tzinfo | None = None) -> bool:
    return days_between(a, b, tz) == 1


def day_of_week(t: Instant, tz: tzinfo | None = None) -> int:
    return day_of(t, tz).weekday()


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day as aware UTC datetimes."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class Clock:
    """System time in the configured zone."""

    def __init__(self, tz: tzinfo | str | None = None):
        if tz is None:
            tz = settings.tz
        elif isinstance(tz, str):
            tz = ZoneInfo(tz)
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def today(self) -> date:
        return day_of(self.now(), self.tz)

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)

    def start_of_today(self) -> datetime:
        return start_of_day(self.now(), self.tz)

    def local(self, value: datetime) -> datetime:
        return as_utc(value).astimezone(self.tz)


class FixedClock(Clock):
    """A clock whose "now" is set by hand. Used by tests."""

    def __init__(self, now: datetime, tz: tzinfo | str | None = None):
        super().__init__(tz)
        self.set(now)

    def set(self, now: datetime) -> None:
        if now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        self._now = now.astimezone(timezone.utc)

    def advance(self, **delta: float) -> None:
        self._now = self._now + timedelta(**delta)

    def now(self) -> datetime:
        return self._now
