"""
Users router.

POST   /users                            provision a user
GET    /users/me                         the caller
PATCH  /users/me/settings                notification / reminder settings
GET    /users/me/contacts                emergency contacts
POST   /users/me/contacts                add a contact
PATCH  /users/me/contacts/{id}           edit a contact
DELETE /users/me/contacts/{id}           remove a contact
DELETE /users/me/data                    wipe check-ins, notifications, contacts
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sileme.core.clock import Clock
from sileme.core.deps import get_clock, get_current_user
from sileme.db.base import get_db
from sileme.models.user import EmergencyContact, User
from sileme.schemas.common import ERROR_RESPONSES, ErrorResponse
from sileme.schemas.user import (
    ClearDataResponse,
    ContactRequest,
    ContactResponse,
    ContactUpdateRequest,
    SettingsUpdateRequest,
    UserCreateRequest,
    UserResponse,
)
from sileme.services import users as svc

router = APIRouter(prefix="/users", tags=["users"])


def _contact_to_response(c: EmergencyContact) -> ContactResponse:
    return ContactResponse(
        id=c.id,
        name=c.name,
        phone=c.phone,
        email=c.email,
        relationship=c.relation,
        added_at=c.added_at.isoformat() if c.added_at else None,
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    responses={422: {"model": ErrorResponse, "description": "Validation error."}},
)
def create_user(
    payload: UserCreateRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    user = svc.create_user(db, payload.username, payload.email, clock)
    return UserResponse(**svc.user_to_dict(user))


@router.get("/me", response_model=UserResponse, summary="Current user", responses=ERROR_RESPONSES)
def me(user: User = Depends(get_current_user)):
    return UserResponse(**svc.user_to_dict(user))


@router.patch("/me/settings", response_model=UserResponse, summary="Update settings")
def update_settings(
    payload: SettingsUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user = svc.update_settings(db, user, payload.model_dump(exclude_unset=True))
    return UserResponse(**svc.user_to_dict(user))


@router.get("/me/contacts", response_model=list[ContactResponse], summary="Emergency contacts")
def list_contacts(user: User = Depends(get_current_user)):
    return [_contact_to_response(c) for c in user.emergency_contacts]


@router.post(
    "/me/contacts",
    response_model=ContactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an emergency contact",
    responses={409: {"model": ErrorResponse, "description": "Contact limit reached."}},
)
def add_contact(
    payload: ContactRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    fields = svc.ContactFields(
        name=payload.name,
        phone=payload.phone,
        email=payload.email,
        relation=payload.relationship,
    )
    return _contact_to_response(svc.add_emergency_contact(db, user, fields, clock))


@router.patch(
    "/me/contacts/{contact_id}",
    response_model=ContactResponse,
    summary="Edit an emergency contact",
    responses={404: {"model": ErrorResponse, "description": "Not found."}},
)
def update_contact(
    contact_id: int,
    payload: ContactUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    if "relationship" in changes:
        changes["relation"] = changes.pop("relationship")
    return _contact_to_response(svc.update_emergency_contact(db, user, contact_id, changes))


@router.delete(
    "/me/contacts/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an emergency contact",
    responses={404: {"model": ErrorResponse, "description": "Not found."}},
)
def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    svc.delete_emergency_contact(db, user, contact_id)


@router.delete("/me/data", response_model=ClearDataResponse, summary="Clear all user data")
def clear_data(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ClearDataResponse(**svc.clear_all_data(db, user))
