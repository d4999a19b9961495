"""
Notification: a per-user message with read, scheduled/sent and expiry state.

Invariants (maintained by services/notifications.py, not by hooks):
  read_at set  <=> is_read
  sent_at set  <=> is_sent
  is_scheduled <=> scheduled_for is not None (at creation)

Derived states ("expired", "overdue") are never stored; see
services.notifications.is_expired / is_overdue.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Boolean, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from sileme.db.base import Base
from sileme.db.types import JSONText, UTCDateTime
from sileme.models.user import User


class NotificationType(str, enum.Enum):
    info = "info"
    warning = "warning"
    emergency = "emergency"
    success = "success"
    system = "system"


class NotificationCategory(str, enum.Enum):
    checkin = "checkin"
    reminder = "reminder"
    system = "system"
    social = "social"
    emergency = "emergency"
    other = "other"


class Channel(str, enum.Enum):
    push = "push"
    email = "email"
    sms = "sms"
    realtime = "realtime"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(
        Enum(NotificationType, name="notification_type_enum"),
        nullable=False,
        default=NotificationType.info,
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    category: Mapped[str] = mapped_column(
        Enum(NotificationCategory, name="notification_category_enum"),
        nullable=False,
        default=NotificationCategory.other,
    )
    data: Mapped[dict | None] = mapped_column(
        JSONText, nullable=True,
        comment="JSON object of primitive values (str/int/float/bool/null)",
    )

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    scheduled_for: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)
    is_scheduled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    channels: Mapped[list] = mapped_column(JSONText, nullable=False, comment="JSON array of channel names")

    # metadata
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    sound: Mapped[str | None] = mapped_column(String(64), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship()
