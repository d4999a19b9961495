"""
Statistics, achievements and report schemas.

GET /stats                  → StreakStatsResponse
GET /stats/achievements     → AchievementsResponse
GET /stats/overview         → OverviewResponse
GET /stats/trends           → TrendsResponse
GET /stats/monthly          → MonthlyReportResponse
GET /stats/yearly           → YearlyReportResponse
GET /stats/calendar         → CalendarResponse
"""
from typing import Optional

from pydantic import BaseModel, Field


class StreakStatsResponse(BaseModel):
    total: int = Field(description="Distinct check-in days.")
    current: int = Field(description="Current streak; 0 once a full day is missed.")
    longest: int = Field(description="Longest streak ever.")
    last: Optional[str] = Field(default=None, description="ISO date of the latest check-in.")


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    target: int
    progress: int
    unlocked: bool


class AchievementSummary(BaseModel):
    unlocked: int
    total: int
    completion_rate: int = Field(description="Percentage of the catalog unlocked.")


class AchievementsResponse(BaseModel):
    items: list[AchievementResponse]
    summary: AchievementSummary


class NotificationCounts(BaseModel):
    total: int
    unread: int


class OverviewResponse(BaseModel):
    stats: StreakStatsResponse
    this_month: int
    this_week: int
    join_days: int
    achievements: AchievementSummary
    notifications: NotificationCounts


class TrendDay(BaseModel):
    date: str
    checked_in: bool
    mood: Optional[str] = None


class WeekdayCount(BaseModel):
    weekday: str
    count: int


class TrendsResponse(BaseModel):
    days: int
    start_date: str
    end_date: str
    total: int
    rate: float
    daily: list[TrendDay]
    mood_distribution: dict[str, int]
    weekday_distribution: list[WeekdayCount]


class TagCount(BaseModel):
    tag: str
    count: int


class MonthlyReportResponse(BaseModel):
    year: int
    month: int
    days_in_month: int
    checkin_days: int
    rate: float
    max_streak: int
    streaks: list[int] = Field(description="Length of every streak inside the month, in order.")
    average_streak: float
    mood_distribution: dict[str, int]
    top_tags: list[TagCount]


class MonthCount(BaseModel):
    month: int
    count: int


class YearlyReportResponse(BaseModel):
    year: int
    total: int
    days_in_year: int
    rate: float
    active_months: int
    monthly: list[MonthCount]
    mood_distribution: dict[str, int]


class CalendarDay(BaseModel):
    id: int
    mood: str
    note: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class CalendarResponse(BaseModel):
    year: int
    month: int
    days: dict[int, CalendarDay] = Field(description="Day of month → check-in summary.")
