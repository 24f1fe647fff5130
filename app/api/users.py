from __future__ import annotations

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import (
    TenantScope,
    get_repositories,
    require_capability,
    require_tenant_user,
)
from app.api.schemas import PatchIn, UserOut, user_out
from app.core.errors import (
    EntityValidationError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from app.models.user import ApplicationUser, Capabilities
from app.repos.registry import Repositories
from app.services import org_service

logger = logging.getLogger(__name__)

# Members of the caller's organization.  Reads need a tenant session;
# invites need can_add_people (or admin); everything else needs is_admin.

router = APIRouter(prefix="/v1/users", tags=["users"])

Repos = Annotated[Repositories, Depends(get_repositories)]
Member = Annotated[TenantScope, Depends(require_tenant_user)]
Admin = Annotated[TenantScope, Depends(require_capability("is_admin"))]
Inviter = Annotated[
    TenantScope, Depends(require_capability("can_add_people", "is_admin"))
]


class UserInviteIn(BaseModel):
    email: str
    name: str
    is_admin: bool = False
    can_add_people: bool = False
    can_organize_events: bool = False
    can_manage_media: bool = False
    receive_cancel_event_notification: bool = False


class ProfileUpdateIn(PatchIn):
    not_null = frozenset({"name", "receive_cancel_event_notification"})

    name: str | None = None
    phone_number: str | None = None
    country_dial_code: str | None = None
    birth_date: date | None = None
    profile_url: str | None = None
    receive_cancel_event_notification: bool | None = None


class UserUpdateIn(ProfileUpdateIn):
    not_null = ProfileUpdateIn.not_null | {
        "email",
        "is_admin",
        "can_add_people",
        "can_organize_events",
        "can_manage_media",
    }

    email: str | None = None
    is_admin: bool | None = None
    can_add_people: bool | None = None
    can_organize_events: bool | None = None
    can_manage_media: bool | None = None


async def _member(repos: Repositories, scope: TenantScope, user_id: int) -> ApplicationUser:
    user = await repos.users.get_by_id(user_id)
    if user is None:
        raise RecordNotFoundError("user not found")
    scope.ensure_owns(user.organization_id, "user")
    return user


def _clean(changes: dict) -> dict:
    if not changes:
        raise EntityValidationError("no fields to update")
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise EntityValidationError("name is required")
        changes["name"] = name
    return changes


@router.get("", response_model=list[UserOut])
async def list_users(scope: Member, repos: Repos) -> list[UserOut]:
    users = await repos.users.list_by_organization(scope.organization_id)
    return [user_out(u) for u in users]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def invite_user(payload: UserInviteIn, scope: Inviter, repos: Repos) -> UserOut:
    caps = Capabilities(
        is_admin=payload.is_admin,
        can_add_people=payload.can_add_people,
        can_organize_events=payload.can_organize_events,
        can_manage_media=payload.can_manage_media,
    )
    # Only admins may hand out admin rights.
    if caps.is_admin and not scope.session.capabilities.is_admin:
        raise PermissionDeniedError("only admins can invite admins")
    user = await org_service.invite_user(
        repos,
        scope.organization_id,
        email=payload.email,
        name=payload.name,
        capabilities=caps,
        receive_cancel_event_notification=payload.receive_cancel_event_notification,
    )
    return user_out(user)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, scope: Member, repos: Repos) -> UserOut:
    return user_out(await _member(repos, scope, user_id))


@router.patch("/me", response_model=UserOut)
async def update_own_profile(
    payload: ProfileUpdateIn, scope: Member, repos: Repos
) -> UserOut:
    if scope.session.is_super_admin:
        raise PermissionDeniedError("the super-admin profile is not stored")
    user = await repos.users.update(
        scope.user_id, **_clean(payload.changes())
    )
    if user is None:
        raise RecordNotFoundError("user not found")
    return user_out(user)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int, payload: UserUpdateIn, scope: Admin, repos: Repos
) -> UserOut:
    await _member(repos, scope, user_id)
    user = await repos.users.update(
        user_id, **_clean(payload.changes())
    )
    if user is None:
        raise RecordNotFoundError("user not found")
    logger.info("User updated  user_id=%s by=%s", user_id, scope.user_id)
    return user_out(user)


@router.post("/{user_id}/approve", response_model=UserOut)
async def approve_user(user_id: int, scope: Admin, repos: Repos) -> UserOut:
    await _member(repos, scope, user_id)
    user = await repos.users.approve(user_id)
    if user is None:
        raise RecordNotFoundError("user not found")
    logger.info("User approved  user_id=%s by=%s", user_id, scope.user_id)
    return user_out(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, scope: Admin, repos: Repos) -> None:
    await _member(repos, scope, user_id)
    org = await repos.organizations.get_by_id(scope.organization_id)
    if org is not None and org.owner_id == user_id:
        raise PermissionDeniedError("the organization owner cannot be removed")
    await repos.users.delete(user_id)
    logger.info("User removed  user_id=%s by=%s", user_id, scope.user_id)
