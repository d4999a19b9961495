"""
Check-in router.

POST   /checkins            check in for today
GET    /checkins            history (filters + pagination)
GET    /checkins/today      today's check-in, if any
GET    /checkins/{id}       single check-in
PATCH  /checkins/{id}       edit today's check-in
DELETE /checkins/{id}       delete a check-in; stats are recomputed
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.deps import get_clock, get_current_user, get_sinks
from sileme.db.base import get_db
from sileme.models.checkin import CheckIn, Mood
from sileme.models.user import User
from sileme.schemas.checkin import (
    CheckInCreateRequest,
    CheckInCreateResponse,
    CheckInListResponse,
    CheckInResponse,
    CheckInUpdateRequest,
    TodayResponse,
)
from sileme.schemas.common import ERROR_RESPONSES, ErrorResponse
from sileme.schemas.stats import StreakStatsResponse
from sileme.services import checkins as svc
from sileme.services.delivery import Sinks

router = APIRouter(prefix="/checkins", tags=["checkins"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _to_changes(payload: BaseModel, partial: bool) -> dict[str, Any]:
    """Flatten the request body into registrar field names."""
    data = payload.model_dump(exclude_unset=partial)
    if "location" in data:
        loc = data.pop("location") or {}
        data["longitude"] = loc.get("longitude")
        data["latitude"] = loc.get("latitude")
        data["address"] = loc.get("address")
    if isinstance(data.get("mood"), Mood):
        data["mood"] = data["mood"].value
    if partial:
        # mood, tags and is_public cannot be cleared
        data = {k: v for k, v in data.items() if v is not None or k not in ("mood", "tags", "is_public")}
    return data


def _to_response(c: CheckIn) -> CheckInResponse:
    return CheckInResponse(**svc.checkin_to_dict(c))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CheckInCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Check in for today",
    responses={
        409: {"model": ErrorResponse, "description": "Already checked in today."},
        **ERROR_RESPONSES,
    },
)
def create_checkin(
    payload: CheckInCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    sinks: Sinks = Depends(get_sinks),
):
    """
    Record today's check-in for the caller.

    The stats snapshot (total, current streak, longest streak, last day) is
    recomputed from the full history in the same transaction, a
    `checkin_success` event is pushed on the caller's real-time channel and a
    system notification is stored.
    """
    fields = svc.CheckInFields(**_to_changes(payload, partial=False))
    checkin, stats = svc.create_checkin(db, user, fields, clock, sinks)
    return CheckInCreateResponse(
        checkin=_to_response(checkin),
        stats=StreakStatsResponse(**stats.to_dict()),
    )


@router.get("", response_model=CheckInListResponse, summary="List check-ins")
def list_checkins(
    start_date: Optional[date] = Query(default=None, description="Inclusive lower bound."),
    end_date: Optional[date] = Query(default=None, description="Inclusive upper bound."),
    mood: Optional[Mood] = Query(default=None),
    tags: Optional[list[str]] = Query(default=None, description="Match any of these tags."),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = svc.CheckInQuery(
        start_date=start_date,
        end_date=end_date,
        mood=mood.value if mood else None,
        tags=tags,
        limit=limit,
        offset=offset,
        newest_first=order == "desc",
    )
    total, items = svc.list_checkins(db, user.id, query)
    return CheckInListResponse(total=total, items=[_to_response(c) for c in items])


@router.get("/today", response_model=TodayResponse, summary="Today's check-in status")
def today(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    checkin = svc.get_today_checkin(db, user.id, clock)
    return TodayResponse(
        checked_in=checkin is not None,
        checkin=_to_response(checkin) if checkin else None,
    )


@router.get(
    "/{checkin_id}",
    response_model=CheckInResponse,
    summary="Get one check-in",
    responses={404: {"model": ErrorResponse, "description": "Not found."}},
)
def get_checkin(
    checkin_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _to_response(svc.get_checkin(db, user.id, checkin_id))


@router.patch(
    "/{checkin_id}",
    response_model=CheckInResponse,
    summary="Edit today's check-in",
    responses={
        403: {"model": ErrorResponse, "description": "Check-in is not from today."},
        404: {"model": ErrorResponse, "description": "Not found."},
        **ERROR_RESPONSES,
    },
)
def update_checkin(
    checkin_id: int,
    payload: CheckInUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    checkin = svc.update_checkin(db, user, checkin_id, _to_changes(payload, partial=True), clock)
    return _to_response(checkin)


@router.delete(
    "/{checkin_id}",
    response_model=StreakStatsResponse,
    summary="Delete a check-in",
    responses={404: {"model": ErrorResponse, "description": "Not found."}},
)
def delete_checkin(
    checkin_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Delete and return the recomputed stats."""
    stats = svc.delete_checkin(db, user, checkin_id, clock)
    return StreakStatsResponse(**stats.to_dict())
