"""
Notification router.

POST   /notifications                   create (instant or scheduled)
POST   /notifications/reminders         schedule a check-in reminder
GET    /notifications                   list (filters + pagination)
GET    /notifications/unread-count      unread, unexpired count
GET    /notifications/stats             counts by type / priority
POST   /notifications/read-all          mark every notification read
POST   /notifications/bulk-delete       delete by ids / type / read state
GET    /notifications/{id}              single notification
POST   /notifications/{id}/read         mark read (idempotent)
DELETE /notifications/{id}              delete
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.deps import get_clock, get_current_user, get_sinks
from sileme.db.base import get_db
from sileme.models.notification import Notification, NotificationCategory, NotificationType
from sileme.models.user import User
from sileme.schemas.common import ERROR_RESPONSES, CountResponse, ErrorResponse
from sileme.schemas.notification import (
    BulkDeleteRequest,
    NotificationCreateRequest,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    ReminderRequest,
    UnreadCountResponse,
)
from sileme.services import notifications as svc
from sileme.services.delivery import Sinks

router = APIRouter(prefix="/notifications", tags=["notifications"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Not found."}}


def _to_response(n: Notification, clock: Clock) -> NotificationResponse:
    return NotificationResponse(**svc.notification_to_dict(n, now=clock.now()))


@router.post(
    "",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification for the caller",
    responses=ERROR_RESPONSES,
)
def create_notification(
    payload: NotificationCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    sinks: Sinks = Depends(get_sinks),
):
    """
    Without `scheduled_for` the notification is published on its channels
    right away and marked sent. With it, the dispatcher picks it up once due.
    """
    draft = svc.NotificationDraft(
        title=payload.title,
        message=payload.message,
        type=payload.type.value,
        priority=payload.priority,
        category=payload.category.value,
        data=payload.data,
        scheduled_for=payload.scheduled_for,
        channels=[c.value for c in payload.channels] if payload.channels else None,
        meta=svc.NotificationMeta(**payload.metadata.model_dump()),
    )
    if payload.scheduled_for is None:
        n = svc.create_instant_notification(
            db, user.id, draft, sinks, clock,
            notifications_enabled=user.notification_enabled,
        )
    else:
        n = svc.create_notification(db, user.id, draft, clock)
    return _to_response(n, clock)


@router.post(
    "/reminders",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a check-in reminder",
    responses=ERROR_RESPONSES,
)
def schedule_reminder(
    payload: ReminderRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    n = svc.schedule_reminder(db, user.id, payload.scheduled_for, clock)
    return _to_response(n, clock)


@router.get("", response_model=NotificationListResponse, summary="List notifications")
def list_notifications(
    type: Optional[NotificationType] = Query(default=None),
    category: Optional[NotificationCategory] = Query(default=None),
    is_read: Optional[bool] = Query(default=None),
    priority: Optional[int] = Query(default=None, ge=1, le=5),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Newest first. Expired notifications are never listed."""
    filters = svc.ListFilters(
        type=type.value if type else None,
        category=category.value if category else None,
        is_read=is_read,
        priority=priority,
    )
    total, items = svc.list_notifications(db, user.id, clock, filters, limit, offset)
    return NotificationListResponse(
        total=total,
        unread=svc.get_unread_count(db, user.id, clock),
        items=[_to_response(n, clock) for n in items],
    )


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Unread count")
def unread_count(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return UnreadCountResponse(unread=svc.get_unread_count(db, user.id, clock))


@router.get("/stats", response_model=NotificationStatsResponse, summary="Notification statistics")
def stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return NotificationStatsResponse(**svc.notification_stats(db, user.id, clock))


@router.post("/read-all", response_model=CountResponse, summary="Mark all as read")
def read_all(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return CountResponse(count=svc.mark_all_read(db, user.id, clock))


@router.post("/bulk-delete", response_model=CountResponse, summary="Delete many notifications")
def bulk_delete(
    payload: BulkDeleteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    criteria = svc.BulkDeleteCriteria(
        ids=payload.ids,
        type=payload.type.value if payload.type else None,
        is_read=payload.is_read,
    )
    return CountResponse(count=svc.bulk_delete(db, user.id, criteria))


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
    summary="Get one notification",
    responses=NOT_FOUND,
)
def get_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    return _to_response(svc.get_notification(db, user.id, notification_id), clock)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark as read",
    responses=NOT_FOUND,
)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Idempotent: `read_at` keeps the time of the first call."""
    return _to_response(svc.mark_read(db, user.id, notification_id, clock), clock)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
    responses=NOT_FOUND,
)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    svc.delete_notification(db, user.id, notification_id)
