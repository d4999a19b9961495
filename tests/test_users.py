"""
Tests for user provisioning, settings, emergency contacts and data reset.
"""
import pytest

from sileme.core.errors import LimitExceededError, NotFoundError, ValidationFailedError
from sileme.models.checkin import CheckIn
from sileme.models.notification import Notification
from sileme.services import users as svc
from sileme.services.checkins import CheckInFields, create_checkin


class TestCreateUser:
    def test_create(self, db, clock):
        user = svc.create_user(db, "alice_01", "Alice@Example.com", clock)
        assert user.id > 0
        assert user.email == "alice@example.com"
        assert user.notification_enabled and user.checkin_reminder
        assert user.reminder_time == "09:00"
        assert user.created_at == clock.now()

    def test_invalid_fields_reported_together(self, db, clock):
        with pytest.raises(ValidationFailedError) as exc:
            svc.create_user(db, "a", "not-an-email", clock)
        assert {v.field for v in exc.value.violations} == {"username", "email"}

    def test_duplicate_username(self, db, clock):
        svc.create_user(db, "bob_01", "bob@example.com", clock)
        with pytest.raises(ValidationFailedError):
            svc.create_user(db, "bob_01", "other@example.com", clock)


class TestSettings:
    def test_update(self, db, user):
        user = svc.update_settings(db, user, {"checkin_reminder": False, "reminder_time": "21:30"})
        assert user.checkin_reminder is False
        assert user.reminder_time == "21:30"

    def test_bad_time(self, db, user):
        with pytest.raises(ValidationFailedError):
            svc.update_settings(db, user, {"reminder_time": "25:00"})


class TestContacts:
    def test_add_update_delete(self, db, user, clock):
        c = svc.add_emergency_contact(db, user, svc.ContactFields(name="Mom", phone="123"), clock)
        c = svc.update_emergency_contact(db, user, c.id, {"relation": "family"})
        assert c.relation == "family"
        svc.delete_emergency_contact(db, user, c.id)
        db.refresh(user)
        assert user.emergency_contacts == []

    def test_limit(self, db, user, clock):
        for i in range(5):
            svc.add_emergency_contact(db, user, svc.ContactFields(name=f"c{i}"), clock)
        db.refresh(user)
        with pytest.raises(LimitExceededError):
            svc.add_emergency_contact(db, user, svc.ContactFields(name="sixth"), clock)

    def test_duplicate(self, db, user, clock):
        svc.add_emergency_contact(db, user, svc.ContactFields(name="Dad", phone="1"), clock)
        db.refresh(user)
        with pytest.raises(ValidationFailedError):
            svc.add_emergency_contact(db, user, svc.ContactFields(name="Dad", phone="1"), clock)

    def test_other_users_contact(self, db, make_user, clock):
        owner, other = make_user(), make_user()
        c = svc.add_emergency_contact(db, owner, svc.ContactFields(name="X"), clock)
        with pytest.raises(NotFoundError):
            svc.delete_emergency_contact(db, other, c.id)


def test_clear_all_data(db, user, clock, sinks):
    create_checkin(db, user, CheckInFields(), clock, sinks)
    svc.add_emergency_contact(db, user, svc.ContactFields(name="Mom"), clock)
    db.refresh(user)

    counts = svc.clear_all_data(db, user)
    assert counts == {"checkins": 1, "notifications": 1, "emergency_contacts": 1}
    assert db.query(CheckIn).filter(CheckIn.user_id == user.id).count() == 0
    assert db.query(Notification).filter(Notification.user_id == user.id).count() == 0
    db.refresh(user)
    assert (user.total_checkins, user.current_streak, user.longest_streak) == (0, 0, 0)
    assert user.last_checkin is None
