"""Super-admin ("admin master") endpoints: every tenant, every user.

Each route depends on require_super_admin, which re-validates the session
against the identity provider before checking the allow-list flag.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import get_repositories, require_super_admin
from app.api.schemas import (
    OrganizationOut,
    PatchIn,
    UserOut,
    organization_out,
    user_out,
)
from app.core.errors import EntityValidationError, RecordNotFoundError
from app.models.organization import SubscriptionPlan
from app.models.session import Session
from app.repos.registry import Repositories
from app.services import org_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

SuperAdmin = Annotated[Session, Depends(require_super_admin)]
Repos = Annotated[Repositories, Depends(get_repositories)]


class OrganizationCreateIn(BaseModel):
    name: str
    owner_email: str
    owner_name: str
    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE
    max_users: int | None = None
    max_storage_gb: float | None = None


class OrganizationUpdateIn(PatchIn):
    not_null = frozenset({"name", "subscription_plan", "max_users", "max_storage_gb"})

    name: str | None = None
    subscription_plan: SubscriptionPlan | None = None
    max_users: int | None = None
    max_storage_gb: float | None = None
    owner_id: int | None = None


class OrganizationCreatedOut(BaseModel):
    organization: OrganizationOut
    owner: UserOut


class OrganizationStatsOut(BaseModel):
    total: int
    active: int
    free: int
    basic: int
    premium: int
    recent: int


class UserStatsOut(BaseModel):
    total: int
    pending: int
    admins: int
    recent: int


class StatsOut(BaseModel):
    organizations: OrganizationStatsOut
    users: UserStatsOut


@router.get("/organizations", response_model=list[OrganizationOut])
async def list_organizations(
    _admin: SuperAdmin, repos: Repos, plan: SubscriptionPlan | None = None
) -> list[OrganizationOut]:
    if plan is not None:
        orgs = await repos.organizations.list_by_plan(plan)
    else:
        orgs = await repos.organizations.list_all()
    return [organization_out(o) for o in orgs]


@router.post(
    "/organizations",
    response_model=OrganizationCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_organization(
    payload: OrganizationCreateIn, admin: SuperAdmin, repos: Repos
) -> OrganizationCreatedOut:
    org, owner = await org_service.create_organization_with_owner(
        repos,
        name=payload.name,
        owner_email=payload.owner_email,
        owner_name=payload.owner_name,
        plan=payload.subscription_plan,
        max_users=payload.max_users,
        max_storage_gb=payload.max_storage_gb,
    )
    logger.info(
        "Organization created by super-admin  organization_id=%s admin=%s",
        org.id,
        admin.user.email if admin.user else None,
    )
    return OrganizationCreatedOut(organization=organization_out(org), owner=user_out(owner))


@router.get("/organizations/{org_id}", response_model=OrganizationOut)
async def get_organization(
    org_id: int, _admin: SuperAdmin, repos: Repos
) -> OrganizationOut:
    org = await repos.organizations.get_by_id(org_id)
    if org is None:
        raise RecordNotFoundError("organization not found")
    return organization_out(org)


@router.patch("/organizations/{org_id}", response_model=OrganizationOut)
async def update_organization(
    org_id: int, payload: OrganizationUpdateIn, _admin: SuperAdmin, repos: Repos
) -> OrganizationOut:
    changes = payload.changes()
    if not changes:
        raise EntityValidationError("no fields to update")
    if set(changes) == {"subscription_plan"}:
        # A bare plan switch also resets the seat allowance to the plan default.
        org = await org_service.change_plan(repos, org_id, changes["subscription_plan"])
    else:
        org = await org_service.update_organization(repos, org_id, **changes)
    return organization_out(org)


@router.delete("/organizations/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(org_id: int, _admin: SuperAdmin, repos: Repos) -> None:
    await org_service.delete_organization(repos, org_id)


@router.get("/organizations/{org_id}/owner", response_model=UserOut)
async def get_organization_owner(
    org_id: int, _admin: SuperAdmin, repos: Repos
) -> UserOut:
    org = await repos.organizations.get_by_id(org_id)
    if org is None:
        raise RecordNotFoundError("organization not found")
    return user_out(await org_service.resolve_owner(repos, org))


@router.get("/stats", response_model=StatsOut)
async def stats(_admin: SuperAdmin, repos: Repos) -> StatsOut:
    now = datetime.now(UTC)
    org_stats = await org_service.organization_stats(repos, now)
    usr_stats = await org_service.user_stats(repos, now)
    return StatsOut(
        organizations=OrganizationStatsOut(
            total=org_stats.total,
            active=org_stats.active,
            free=org_stats.free,
            basic=org_stats.basic,
            premium=org_stats.premium,
            recent=org_stats.recent,
        ),
        users=UserStatsOut(
            total=usr_stats.total,
            pending=usr_stats.pending,
            admins=usr_stats.admins,
            recent=usr_stats.recent,
        ),
    )


@router.get("/users", response_model=list[UserOut])
async def list_users(_admin: SuperAdmin, repos: Repos) -> list[UserOut]:
    return [user_out(u) for u in await repos.users.list_all()]


@router.get("/users/pending", response_model=list[UserOut])
async def list_pending_users(_admin: SuperAdmin, repos: Repos) -> list[UserOut]:
    return [user_out(u) for u in await repos.users.list_pending()]


@router.post("/users/{user_id}/approve", response_model=UserOut)
async def approve_user(user_id: int, _admin: SuperAdmin, repos: Repos) -> UserOut:
    user = await repos.users.approve(user_id)
    if user is None:
        raise RecordNotFoundError("user not found")
    logger.info("User approved by super-admin  user_id=%s", user_id)
    return user_out(user)
