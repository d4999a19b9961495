"""
User provisioning, settings and emergency contacts.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.config import settings
from sileme.core.errors import (
    LimitExceededError,
    NotFoundError,
    ValidationFailedError,
    Violation,
)
from sileme.models.checkin import CheckIn
from sileme.models.notification import Notification
from sileme.models.user import EmergencyContact, User

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

SETTINGS_FIELDS = ("notification_enabled", "checkin_reminder", "reminder_time")
CONTACT_FIELDS = ("name", "phone", "email", "relation")


@dataclass
class ContactFields:
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    relation: Optional[str] = None


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def create_user(db: Session, username: str, email: str, clock: Clock) -> User:
    problems = []
    if not USERNAME_RE.match(username or ""):
        problems.append(Violation(
            "username", "username must be 3-20 letters, digits or underscores"
        ))
    if not EMAIL_RE.match(email or ""):
        problems.append(Violation("email", "invalid email address"))
    if problems:
        raise ValidationFailedError(problems)

    user = User(username=username, email=email.lower(), created_at=clock.now())
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailedError.single("username", "username or email already registered")
    db.refresh(user)
    logger.info("user %s created (%s)", user.id, user.username)
    return user


def update_settings(db: Session, user: User, changes: dict[str, Any]) -> User:
    changes = {k: v for k, v in changes.items() if k in SETTINGS_FIELDS and v is not None}
    reminder_time = changes.get("reminder_time")
    if reminder_time is not None:
        if not isinstance(reminder_time, str) or not HHMM_RE.match(reminder_time):
            raise ValidationFailedError.single("reminder_time", "reminder_time must be HH:MM")
    for name, value in changes.items():
        setattr(user, name, value)
    db.commit()
    db.refresh(user)
    return user


# ---------------------------------------------------------------------------
# Emergency contacts
# ---------------------------------------------------------------------------

def _validate_contact(changes: dict[str, Any]) -> list[Violation]:
    problems = []
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            problems.append(Violation("name", "name is required"))
        elif len(name) > 50:
            problems.append(Violation("name", "name must be at most 50 characters"))
    if changes.get("email") and not EMAIL_RE.match(changes["email"]):
        problems.append(Violation("email", "invalid email address"))
    return problems


def _get_contact(db: Session, user: User, contact_id: int) -> EmergencyContact:
    contact = (
        db.query(EmergencyContact)
        .filter(EmergencyContact.id == contact_id, EmergencyContact.user_id == user.id)
        .first()
    )
    if contact is None:
        raise NotFoundError("EmergencyContact", contact_id)
    return contact


def add_emergency_contact(
    db: Session, user: User, fields: ContactFields, clock: Clock
) -> EmergencyContact:
    changes = {name: getattr(fields, name) for name in CONTACT_FIELDS}
    problems = _validate_contact(changes)
    if problems:
        raise ValidationFailedError(problems)

    existing = user.emergency_contacts
    if len(existing) >= settings.MAX_EMERGENCY_CONTACTS:
        raise LimitExceededError("emergency contacts", settings.MAX_EMERGENCY_CONTACTS)
    name = fields.name.strip()
    if any(c.name == name and c.phone == fields.phone for c in existing):
        raise ValidationFailedError.single("name", "contact already exists")

    contact = EmergencyContact(
        user_id=user.id,
        name=name,
        phone=fields.phone,
        email=fields.email,
        relation=fields.relation,
        added_at=clock.now(),
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def update_emergency_contact(
    db: Session, user: User, contact_id: int, changes: dict[str, Any]
) -> EmergencyContact:
    contact = _get_contact(db, user, contact_id)
    changes = {k: v for k, v in changes.items() if k in CONTACT_FIELDS}
    problems = _validate_contact(changes)
    if problems:
        raise ValidationFailedError(problems)
    for name, value in changes.items():
        setattr(contact, name, value.strip() if name == "name" else value)
    db.commit()
    db.refresh(contact)
    return contact


def delete_emergency_contact(db: Session, user: User, contact_id: int) -> None:
    contact = _get_contact(db, user, contact_id)
    db.delete(contact)
    db.commit()


# ---------------------------------------------------------------------------
# Data reset
# ---------------------------------------------------------------------------

def clear_all_data(db: Session, user: User) -> dict[str, int]:
    """Remove check-ins, notifications and contacts; reset the stats snapshot."""
    checkins = (
        db.query(CheckIn).filter(CheckIn.user_id == user.id).delete(synchronize_session=False)
    )
    notes = (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .delete(synchronize_session=False)
    )
    contacts = len(user.emergency_contacts)
    user.emergency_contacts = []
    user.total_checkins = 0
    user.current_streak = 0
    user.longest_streak = 0
    user.last_checkin = None
    db.commit()
    logger.info(
        "user %s cleared data: %d check-ins, %d notifications, %d contacts",
        user.id, checkins, notes, contacts,
    )
    return {"checkins": checkins, "notifications": notes, "emergency_contacts": contacts}


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "is_active": user.is_active,
        "settings": {
            "notification_enabled": user.notification_enabled,
            "checkin_reminder": user.checkin_reminder,
            "reminder_time": user.reminder_time,
        },
        "stats": {
            "total": user.total_checkins,
            "current": user.current_streak,
            "longest": user.longest_streak,
            "last": str(user.last_checkin) if user.last_checkin else None,
        },
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
