"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. The
environment is set before anything from sileme is imported so the engine
and settings pick it up.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_sileme.db"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["TIMEZONE"] = "Asia/Shanghai"

import itertools
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from sileme.core.clock import FixedClock
from sileme.core.deps import get_clock, get_sinks
from sileme.db.base import Base, SessionLocal, engine
from sileme.main import app
from sileme.services import users as user_svc
from sileme.services.delivery import RecordingSink

_ids = itertools.count(1)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def clock():
    # 10:00 local on a Tuesday
    return FixedClock(datetime(2026, 3, 10, 10, 0), tz="Asia/Shanghai")


@pytest.fixture()
def realtime_sink():
    return RecordingSink("realtime")


@pytest.fixture()
def push_sink():
    return RecordingSink("push")


@pytest.fixture()
def sinks(realtime_sink, push_sink):
    return {"realtime": realtime_sink, "push": push_sink}


@pytest.fixture()
def db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_user(db, clock):
    def _make(**settings):
        n = next(_ids)
        user = user_svc.create_user(db, f"user_{n}", f"user{n}@example.com", clock)
        if settings:
            user = user_svc.update_settings(db, user, settings)
        return user
    return _make


@pytest.fixture()
def user(make_user):
    return make_user()


@pytest.fixture()
def client(clock, sinks):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_sinks] = lambda: sinks
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth(user):
    return {"X-User-Id": str(user.id)}
