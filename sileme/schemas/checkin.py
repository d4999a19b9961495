"""
Check-in request / response schemas.

POST  /checkins            → CheckInCreateRequest → CheckInCreateResponse
PATCH /checkins/{id}       → CheckInUpdateRequest → CheckInResponse
GET   /checkins            → CheckInListResponse
GET   /checkins/today      → TodayResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sileme.models.checkin import Mood
from sileme.schemas.stats import StreakStatsResponse


class LocationIn(BaseModel):
    longitude: float = Field(ge=-180, le=180, examples=[121.47])
    latitude: float = Field(ge=-90, le=90, examples=[31.23])
    address: Optional[str] = Field(default=None, max_length=255)


class Weather(BaseModel):
    temperature: Optional[float] = None
    condition: Optional[str] = Field(default=None, max_length=50)
    humidity: Optional[float] = None


class CheckInCreateRequest(BaseModel):
    """Today's check-in. Every field is optional; mood defaults to "normal"."""
    mood: Mood = Field(default=Mood.normal, examples=["happy"])
    note: Optional[str] = Field(
        default=None,
        description="Free text, at most CHECKIN_NOTE_MAX_LENGTH characters.",
        examples=["Morning run done"],
    )
    location: Optional[LocationIn] = None
    weather: Optional[Weather] = None
    tags: list[str] = Field(default_factory=list, examples=[["run", "outdoor"]])
    is_public: bool = False


class CheckInUpdateRequest(BaseModel):
    """Partial update of today's check-in. Omitted fields are left alone."""
    mood: Optional[Mood] = None
    note: Optional[str] = None
    location: Optional[LocationIn] = None
    weather: Optional[Weather] = None
    tags: Optional[list[str]] = None
    is_public: Optional[bool] = None


class LocationOut(BaseModel):
    longitude: float
    latitude: float
    address: Optional[str] = None


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    day: str = Field(description="Calendar date of the check-in in the server zone.")
    mood: str
    note: Optional[str] = None
    location: Optional[LocationOut] = None
    weather: Optional[Weather] = None
    tags: list[str] = Field(default_factory=list)
    is_public: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CheckInCreateResponse(BaseModel):
    checkin: CheckInResponse
    stats: StreakStatsResponse


class CheckInListResponse(BaseModel):
    total: int
    items: list[CheckInResponse]


class TodayResponse(BaseModel):
    checked_in: bool
    checkin: Optional[CheckInResponse] = None
