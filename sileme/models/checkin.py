"""
CheckIn: one row per user per calendar day.

The (user_id, day) unique constraint is the source of truth for the
one-check-in-per-day rule; the registrar's "already checked in?" query is
only a shortcut in front of it.

`day` is the calendar date in the configured zone (settings.TIMEZONE) at
the moment of check-in. tags / weather are JSON-encoded Text.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Float, Boolean, Date, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from sileme.db.base import Base
from sileme.db.types import JSONText, UTCDateTime


class Mood(str, enum.Enum):
    very_good = "very_good"
    happy = "happy"
    neutral = "neutral"
    bad = "bad"
    normal = "normal"


class CheckIn(Base):
    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_checkin_user_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    mood: Mapped[str] = mapped_column(
        Enum(Mood, name="mood_enum"), nullable=False, default=Mood.normal
    )
    note: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Geo point (WGS84) + free-form address
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)

    weather: Mapped[dict | None] = mapped_column(
        JSONText, nullable=True,
        comment='JSON object: {"temperature": float, "condition": str, "humidity": float}',
    )
    tags: Mapped[list | None] = mapped_column(JSONText, nullable=True, comment="JSON array of strings")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
