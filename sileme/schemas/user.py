"""
User, settings and emergency-contact schemas.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from sileme.schemas.stats import StreakStatsResponse


class UserCreateRequest(BaseModel):
    username: str = Field(examples=["alice_01"])
    email: str = Field(examples=["alice@example.com"])


class UserSettings(BaseModel):
    notification_enabled: bool
    checkin_reminder: bool
    reminder_time: str


class SettingsUpdateRequest(BaseModel):
    notification_enabled: Optional[bool] = None
    checkin_reminder: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, examples=["21:30"])


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    is_active: bool
    settings: UserSettings
    stats: StreakStatsResponse
    created_at: Optional[str] = None


class ContactRequest(BaseModel):
    name: str = Field(examples=["Mom"])
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    relationship: Optional[str] = Field(default=None, max_length=32, examples=["family"])


class ContactUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    relationship: Optional[str] = Field(default=None, max_length=32)


class ContactResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    relationship: Optional[str] = None
    added_at: Optional[str] = None


class ClearDataResponse(BaseModel):
    checkins: int
    notifications: int
    emergency_contacts: int
