"""
Statistics router.

GET /stats                  streak stats computed from full history
GET /stats/achievements     achievement progress
GET /stats/overview         dashboard numbers
GET /stats/trends           last N days breakdown
GET /stats/monthly          one month report
GET /stats/yearly           one year report
GET /stats/calendar         calendar view of one month
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.deps import get_clock, get_current_user
from sileme.db.base import get_db
from sileme.models.user import User
from sileme.schemas.stats import (
    AchievementResponse,
    AchievementsResponse,
    AchievementSummary,
    CalendarResponse,
    MonthlyReportResponse,
    OverviewResponse,
    StreakStatsResponse,
    TrendsResponse,
    YearlyReportResponse,
)
from sileme.services import achievements, reports
from sileme.services.checkins import get_user_stats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StreakStatsResponse, summary="Streak statistics")
def stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Always derived from the full check-in history; `current` drops to 0 as
    soon as neither today nor yesterday has a check-in.
    """
    return StreakStatsResponse(**get_user_stats(db, user.id, clock).to_dict())


@router.get("/achievements", response_model=AchievementsResponse, summary="Achievements")
def list_achievements(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    stats = get_user_stats(db, user.id, clock)
    early = achievements.count_early_checkins(db, user.id, clock)
    items = achievements.evaluate(stats, early)
    return AchievementsResponse(
        items=[AchievementResponse(**a.to_dict()) for a in items],
        summary=AchievementSummary(**achievements.summarize(items)),
    )


@router.get("/overview", response_model=OverviewResponse, summary="Dashboard overview")
def overview(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return OverviewResponse(**reports.overview(db, user, clock))


@router.get("/trends", response_model=TrendsResponse, summary="Check-in trends")
def trends(
    days: int = Query(default=30, description="Window size in days (1-365)."),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return TrendsResponse(**reports.checkin_trends(db, user.id, clock, days))


def _current_year_month(clock: Clock) -> tuple[int, int]:
    today = clock.today()
    return today.year, today.month


@router.get("/monthly", response_model=MonthlyReportResponse, summary="Monthly report")
def monthly(
    year: int | None = Query(default=None),
    month: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Defaults to the current month in the server zone."""
    cur_year, cur_month = _current_year_month(clock)
    return MonthlyReportResponse(
        **reports.monthly_report(db, user.id, year or cur_year, month or cur_month)
    )


@router.get("/yearly", response_model=YearlyReportResponse, summary="Yearly report")
def yearly(
    year: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return YearlyReportResponse(**reports.yearly_report(db, user.id, year or clock.today().year))


@router.get("/calendar", response_model=CalendarResponse, summary="Calendar month")
def calendar(
    year: int | None = Query(default=None),
    month: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    cur_year, cur_month = _current_year_month(clock)
    year, month = year or cur_year, month or cur_month
    return CalendarResponse(
        year=year,
        month=month,
        days=reports.calendar_month(db, user.id, year, month),
    )
