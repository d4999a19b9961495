"""
Streak engine: pure statistics over a user's check-in days.

compute_stats(days, today) -> StreakStats

  total    number of distinct days
  longest  longest run of consecutive calendar days
  current  run ending at the latest day, but only if the latest day is
           today or yesterday; otherwise 0
  last     latest day (None when empty)

Input is deduplicated and sorted before anything else, so callers may pass
rows in any order. There is no incremental variant: stats are always
recomputed from the full history.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date
from typing import Iterable, Optional

from sileme.core.clock import days_between, is_consecutive


@dataclass(frozen=True)
class StreakStats:
    total: int
    current: int
    longest: int
    last: Optional[date]

    def to_dict(self) -> dict:
        d = asdict(self)
        d["last"] = str(self.last) if self.last else None
        return d


EMPTY_STATS = StreakStats(total=0, current=0, longest=0, last=None)


def normalize_days(days: Iterable[date]) -> list[date]:
    """Distinct days, ascending."""
    return sorted(set(days))


def longest_run(days: list[date]) -> int:
    """Longest consecutive run in an ascending, distinct list."""
    if not days:
        return 0
    longest = 0
    run = 1
    for prev, cur in zip(days, days[1:]):
        if is_consecutive(prev, cur):
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    return max(longest, run)


def current_run(days: list[date], today: date) -> int:
    """Run ending at days[-1], or 0 if days[-1] is older than yesterday."""
    if not days:
        return 0
    if days_between(days[-1], today) not in (0, 1):
        return 0
    run = 1
    for i in range(len(days) - 1, 0, -1):
        if not is_consecutive(days[i - 1], days[i]):
            break
        run += 1
    return run


def run_lengths(days: list[date]) -> list[int]:
    """Lengths of every maximal run, in chronological order."""
    runs: list[int] = []
    for i, d in enumerate(days):
        if i and is_consecutive(days[i - 1], d):
            runs[-1] += 1
        else:
            runs.append(1)
    return runs


def compute_stats(days: Iterable[date], today: date) -> StreakStats:
    ordered = normalize_days(days)
    if not ordered:
        return EMPTY_STATS
    return StreakStats(
        total=len(ordered),
        current=current_run(ordered, today),
        longest=longest_run(ordered),
        last=ordered[-1],
    )
