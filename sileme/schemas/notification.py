"""
Notification request / response schemas.

POST   /notifications               → NotificationCreateRequest → NotificationResponse
POST   /notifications/reminders     → ReminderRequest           → NotificationResponse
GET    /notifications               → NotificationListResponse
GET    /notifications/unread-count  → UnreadCountResponse
GET    /notifications/stats         → NotificationStatsResponse
POST   /notifications/bulk-delete   → BulkDeleteRequest         → CountResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from sileme.models.notification import Channel, NotificationCategory, NotificationType

Primitive = Union[bool, int, float, str, None]


class NotificationMetadata(BaseModel):
    source: Optional[str] = Field(default=None, max_length=64)
    action_url: Optional[str] = Field(default=None, max_length=512)
    image_url: Optional[str] = Field(default=None, max_length=512)
    sound: Optional[str] = Field(default=None, max_length=64)


class NotificationCreateRequest(BaseModel):
    """
    Without scheduled_for the notification is delivered immediately.
    With it, the dispatcher delivers it on the first pass at or after that time.
    """
    title: str = Field(min_length=1, max_length=100)
    message: str = Field(min_length=1, max_length=500)
    type: NotificationType = NotificationType.info
    priority: int = Field(default=3, ge=1, le=5)
    category: NotificationCategory = NotificationCategory.other
    data: dict[str, Primitive] = Field(default_factory=dict)
    scheduled_for: Optional[datetime] = Field(
        default=None,
        description="Timezone-aware ISO timestamp.",
        examples=["2026-03-01T09:00:00+08:00"],
    )
    channels: Optional[list[Channel]] = Field(default=None, description='Defaults to ["push"].')
    metadata: NotificationMetadata = Field(default_factory=NotificationMetadata)


class ReminderRequest(BaseModel):
    scheduled_for: datetime = Field(
        description="Timezone-aware ISO timestamp in the future.",
        examples=["2026-03-01T21:00:00+08:00"],
    )


class BulkDeleteRequest(BaseModel):
    """All given criteria must match. An empty body deletes every notification of the caller."""
    ids: Optional[list[int]] = None
    type: Optional[NotificationType] = None
    is_read: Optional[bool] = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    message: str
    type: str
    priority: int
    category: str
    data: dict[str, Primitive] = Field(default_factory=dict)
    is_read: bool
    read_at: Optional[str] = None
    scheduled_for: Optional[str] = None
    is_scheduled: bool
    is_sent: bool
    sent_at: Optional[str] = None
    channels: list[str]
    metadata: NotificationMetadata
    expires_at: Optional[str] = None
    created_at: Optional[str] = None
    is_expired: bool = False
    is_overdue: bool = False


class NotificationListResponse(BaseModel):
    total: int
    unread: int
    items: list[NotificationResponse]


class UnreadCountResponse(BaseModel):
    unread: int


class TypeCount(BaseModel):
    type: str
    count: int


class PriorityCount(BaseModel):
    priority: int
    count: int


class NotificationStatsResponse(BaseModel):
    total: int
    unread: int
    read: int
    recent: int = Field(description="Created in the last 7 days.")
    by_type: list[TypeCount]
    by_priority: list[PriorityCount]
