"""
Request-scoped dependencies shared by the routers.

get_current_user  resolves the caller from the X-User-Id header
get_clock         the app clock (tests override it with a FixedClock)
get_sinks         delivery sinks keyed by channel name
"""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.errors import NotAuthenticatedError
from sileme.db.base import get_db
from sileme.models.user import User
from sileme.services.delivery import Sinks

_clock = Clock()


def get_clock() -> Clock:
    return _clock


def get_sinks(request: Request) -> Sinks:
    return request.app.state.sinks


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, description="Id of the calling user."),
    db: Session = Depends(get_db),
) -> User:
    # Authentication is handled upstream; only the resolved id reaches us.
    if not x_user_id or not x_user_id.isdigit():
        raise NotAuthenticatedError()
    user = db.get(User, int(x_user_id))
    if user is None or not user.is_active:
        raise NotAuthenticatedError()
    return user
