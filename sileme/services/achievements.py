"""
Achievement evaluator.

Achievements are not stored. They are derived on every request from the
streak stats plus the number of "early" check-ins (created before
settings.EARLY_BIRD_HOUR local time).
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Callable

from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.config import settings
from sileme.models.checkin import CheckIn
from sileme.services.streaks import StreakStats


@dataclass(frozen=True)
class AchievementDef:
    id: str
    name: str
    description: str
    target: int
    metric: Callable[[StreakStats, int], int]


@dataclass
class Achievement:
    id: str
    name: str
    description: str
    target: int
    progress: int
    unlocked: bool

    def to_dict(self) -> dict:
        return asdict(self)


def _total(stats: StreakStats, early: int) -> int:
    return stats.total


def _longest(stats: StreakStats, early: int) -> int:
    return stats.longest


def _early(stats: StreakStats, early: int) -> int:
    return early


CATALOG: tuple[AchievementDef, ...] = (
    AchievementDef("first_checkin", "First Check-in", "Complete your first check-in", 1, _total),
    AchievementDef("week_warrior", "Week Warrior", "Check in 7 days in a row", 7, _longest),
    AchievementDef("month_master", "Month Master", "Check in 30 days in a row", 30, _longest),
    AchievementDef("hundred_club", "Hundred Club", "Check in 100 times", 100, _total),
    AchievementDef("year_veteran", "Year Veteran", "Check in 365 days in a row", 365, _longest),
    AchievementDef("early_bird", "Early Bird", "Check in early 10 times", 10, _early),
)


def evaluate(stats: StreakStats, early_count: int) -> list[Achievement]:
    """One entry per catalog item, in catalog order."""
    result = []
    for d in CATALOG:
        value = d.metric(stats, early_count)
        result.append(Achievement(
            id=d.id,
            name=d.name,
            description=d.description,
            target=d.target,
            progress=min(value, d.target),
            unlocked=value >= d.target,
        ))
    return result


def count_early_checkins(db: Session, user_id: int, clock: Clock) -> int:
    # hour is taken in the configured zone, so this is done in Python
    rows = db.query(CheckIn.created_at).filter(CheckIn.user_id == user_id).all()
    return sum(1 for (created_at,) in rows if clock.local(created_at).hour < settings.EARLY_BIRD_HOUR)


def summarize(achievements: list[Achievement]) -> dict:
    unlocked = sum(1 for a in achievements if a.unlocked)
    total = len(achievements)
    return {
        "unlocked": unlocked,
        "total": total,
        "completion_rate": round(unlocked / total * 100) if total else 0,
    }
