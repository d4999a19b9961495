from datetime import datetime, date
from sqlalchemy import Integer, String, Boolean, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sileme.db.base import Base
from sileme.db.types import UTCDateTime


class User(Base):
    """
    Account plus the derived check-in stats snapshot.

    total_checkins / current_streak / longest_streak / last_checkin are
    written only by the check-in registrar (services/checkins.py), always
    from a full-history recompute.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Settings
    notification_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    checkin_reminder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_time: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")

    # Stats snapshot
    total_checkins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_checkin: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    emergency_contacts: Mapped[list["EmergencyContact"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="EmergencyContact.id",
    )


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # "relationship" would shadow sqlalchemy.orm.relationship in the class body
    relation: Mapped[str | None] = mapped_column("relationship", String(32), nullable=True)
    added_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="emergency_contacts")
