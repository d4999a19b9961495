"""
Tests for the statistics reports.

Seeded history (March 2026): 1 2 3 . 5 . . 8 9 10
"""
from datetime import datetime

import pytest

from sileme.core.errors import ValidationFailedError
from sileme.services import reports
from sileme.services.checkins import CheckInFields, create_checkin

SEEDED_DAYS = (1, 2, 3, 5, 8, 9, 10)


@pytest.fixture()
def history(db, user, clock, sinks):
    for d in SEEDED_DAYS:
        clock.set(datetime(2026, 3, d, 8, 0))
        create_checkin(
            db, user,
            CheckInFields(mood="happy" if d % 2 else "bad", tags=["run"] if d < 5 else []),
            clock, sinks,
        )
    clock.set(datetime(2026, 3, 10, 10, 0))
    return user


class TestMonthly:
    def test_month_with_streaks(self, db, history):
        r = reports.monthly_report(db, history.id, 2026, 3)
        assert r["days_in_month"] == 31
        assert r["checkin_days"] == 7
        assert r["rate"] == 22.6
        assert r["streaks"] == [3, 1, 3]
        assert r["max_streak"] == 3
        assert r["average_streak"] == 2.3
        assert r["mood_distribution"]["happy"] == 4
        assert r["mood_distribution"]["bad"] == 3
        assert r["top_tags"] == [{"tag": "run", "count": 3}]

    def test_empty_month(self, db, history):
        r = reports.monthly_report(db, history.id, 2026, 2)
        assert r["days_in_month"] == 28
        assert r["checkin_days"] == 0
        assert r["max_streak"] == 0
        assert r["average_streak"] == 0

    def test_invalid_month(self, db, user):
        with pytest.raises(ValidationFailedError):
            reports.monthly_report(db, user.id, 2026, 13)


class TestYearly:
    def test_counts_per_month(self, db, history):
        r = reports.yearly_report(db, history.id, 2026)
        assert r["total"] == 7
        assert r["days_in_year"] == 365
        assert r["active_months"] == 1
        assert r["monthly"][2] == {"month": 3, "count": 7}

    def test_leap_year(self, db, user):
        assert reports.yearly_report(db, user.id, 2024)["days_in_year"] == 366
        assert reports.yearly_report(db, user.id, 2100)["days_in_year"] == 365


class TestTrends:
    def test_last_week(self, db, history, clock):
        r = reports.checkin_trends(db, history.id, clock, days=7)
        assert r["start_date"] == "2026-03-04"
        assert r["end_date"] == "2026-03-10"
        assert r["total"] == 4
        assert len(r["daily"]) == 7
        assert r["daily"][-1] == {"date": "2026-03-10", "checked_in": True, "mood": "bad"}
        assert r["daily"][0]["checked_in"] is False
        weekdays = {w["weekday"]: w["count"] for w in r["weekday_distribution"]}
        assert weekdays == {"Mon": 1, "Tue": 1, "Wed": 0, "Thu": 1, "Fri": 0, "Sat": 0, "Sun": 1}

    def test_window_bounds(self, db, user, clock):
        with pytest.raises(ValidationFailedError):
            reports.checkin_trends(db, user.id, clock, days=0)


def test_calendar_month(db, history):
    cal = reports.calendar_month(db, history.id, 2026, 3)
    assert set(cal) == set(SEEDED_DAYS)
    assert cal[1]["tags"] == ["run"]
    assert cal[2]["mood"] == "bad"


def test_overview(db, history, clock):
    r = reports.overview(db, history, clock)
    assert r["stats"]["total"] == 7
    assert r["stats"]["current"] == 3
    assert r["this_month"] == 7
    assert r["this_week"] == 2
    assert r["join_days"] == 1
    assert r["achievements"]["unlocked"] == 1
    assert r["notifications"] == {"total": 7, "unread": 7}
