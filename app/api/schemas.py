"""Pydantic schemas shared by several routers."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, ClassVar, Self

from pydantic import BaseModel, model_validator

from app.models.organization import Organization
from app.models.session import Session
from app.models.user import ApplicationUser


class PatchIn(BaseModel):
    """Partial update body: fields the client omits are left unchanged.

    ``not_null`` names the fields backed by NOT NULL columns.  An explicit
    ``null`` for one of them is a 422, never a write.
    """

    not_null: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required(self) -> Self:
        nulled = sorted(
            name
            for name in self.model_fields_set & self.not_null
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CapabilitiesOut(BaseModel):
    is_admin: bool
    can_add_people: bool
    can_organize_events: bool
    can_manage_media: bool


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    organization_id: int | None
    is_admin: bool
    can_add_people: bool
    can_organize_events: bool
    can_manage_media: bool
    receive_cancel_event_notification: bool
    pending: bool
    phone_number: str | None = None
    country_dial_code: str | None = None
    birth_date: date | None = None
    profile_url: str | None = None
    created_at: datetime | None = None


class OrganizationOut(BaseModel):
    id: int
    name: str
    owner_id: int | None
    subscription_plan: str
    max_users: int
    max_storage_gb: float
    created_at: datetime | None = None


class SessionOut(BaseModel):
    status: str
    is_super_admin: bool
    user: UserOut | None
    organization: OrganizationOut | None
    capabilities: CapabilitiesOut


def user_out(user: ApplicationUser) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        organization_id=user.organization_id,
        is_admin=user.is_admin,
        can_add_people=user.can_add_people,
        can_organize_events=user.can_organize_events,
        can_manage_media=user.can_manage_media,
        receive_cancel_event_notification=user.receive_cancel_event_notification,
        pending=user.pending,
        phone_number=user.phone_number,
        country_dial_code=user.country_dial_code,
        birth_date=user.birth_date,
        profile_url=user.profile_url,
        created_at=user.created_at,
    )


def organization_out(org: Organization) -> OrganizationOut:
    return OrganizationOut(
        id=org.id,
        name=org.name,
        owner_id=org.owner_id,
        subscription_plan=str(org.subscription_plan),
        max_users=org.max_users,
        max_storage_gb=org.max_storage_gb,
        created_at=org.created_at,
    )


def session_out(session: Session) -> SessionOut:
    caps = session.capabilities
    return SessionOut(
        status=str(session.status),
        is_super_admin=session.is_super_admin,
        user=user_out(session.user) if session.user else None,
        organization=organization_out(session.organization)
        if session.organization
        else None,
        capabilities=CapabilitiesOut(
            is_admin=caps.is_admin,
            can_add_people=caps.can_add_people,
            can_organize_events=caps.can_organize_events,
            can_manage_media=caps.can_manage_media,
        ),
    )
