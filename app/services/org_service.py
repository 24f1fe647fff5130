"""Organization provisioning, ownership, plans, invites and dashboard stats."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.core.errors import (
    DuplicateRecordError,
    EntityValidationError,
    LimitExceededError,
    OwnerNotResolvedError,
    RecordNotFoundError,
)
from app.models.organization import (
    PLAN_MAX_USERS,
    Organization,
    OrganizationStats,
    SubscriptionPlan,
    parse_plan,
    validate_limits,
)
from app.models.user import ApplicationUser, Capabilities, UserStats
from app.repos.registry import Repositories

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=30)

# Organization columns that can never be cleared by an update.
_NOT_NULL = ("name", "subscription_plan", "max_users", "max_storage_gb")


async def create_organization_with_owner(
    repos: Repositories,
    *,
    name: str,
    owner_email: str,
    owner_name: str,
    plan: SubscriptionPlan | str = SubscriptionPlan.FREE,
    max_users: int | None = None,
    max_storage_gb: float | None = None,
) -> tuple[Organization, ApplicationUser]:
    """Create a tenant and its admin owner as one unit.

    The owner row needs the organization id and the organization needs the
    owner id, so the organization is inserted first with no owner, then
    the owner, then the link.  Any failure rolls back all three writes.
    """
    draft = Organization.new(
        name=name,
        subscription_plan=plan,
        max_users=max_users,
        max_storage_gb=max_storage_gb,
    )
    async with repos.transaction():
        org = await repos.organizations.add(draft)
        owner = await repos.users.add(
            ApplicationUser.new(
                email=owner_email,
                name=owner_name,
                organization_id=org.id,
                is_admin=True,
                can_add_people=True,
                can_organize_events=True,
                can_manage_media=True,
                pending=False,
            )
        )
        linked = await repos.organizations.update(org.id, owner_id=owner.id)
        if linked is None:
            raise RecordNotFoundError("organization vanished during creation")

    logger.info(
        "Organization created  organization_id=%s owner_id=%s plan=%s",
        linked.id,
        owner.id,
        linked.subscription_plan,
    )
    return linked, owner


async def resolve_owner(repos: Repositories, org: Organization) -> ApplicationUser:
    if org.owner_id is None:
        raise OwnerNotResolvedError("organization has no owner")
    owner = await repos.users.get_by_id(org.owner_id)
    if owner is None:
        raise OwnerNotResolvedError("owner user does not exist")
    if owner.organization_id != org.id:
        logger.warning(
            "Owner belongs to another organization  organization_id=%s owner_id=%s",
            org.id,
            owner.id,
        )
        raise OwnerNotResolvedError("owner belongs to another organization")
    return owner


async def change_plan(
    repos: Repositories,
    org_id: int,
    plan: SubscriptionPlan | str,
    *,
    max_users: int | None = None,
) -> Organization:
    parsed = parse_plan(plan)
    if max_users is None:
        max_users = PLAN_MAX_USERS[parsed]
    validate_limits(max_users=max_users)
    updated = await repos.organizations.update(
        org_id, subscription_plan=parsed, max_users=max_users
    )
    if updated is None:
        raise RecordNotFoundError("organization not found")
    logger.info(
        "Plan changed  organization_id=%s plan=%s max_users=%d",
        org_id,
        parsed,
        max_users,
    )
    return updated


async def update_organization(
    repos: Repositories, org_id: int, **changes: object
) -> Organization:
    nulled = sorted(k for k in _NOT_NULL if k in changes and changes[k] is None)
    if nulled:
        raise EntityValidationError(f"{', '.join(nulled)} cannot be null")
    if "name" in changes:
        name = str(changes["name"] or "").strip()
        if not name:
            raise EntityValidationError("organization name is required")
        changes["name"] = name
    if "subscription_plan" in changes:
        changes["subscription_plan"] = parse_plan(changes["subscription_plan"])  # type: ignore[arg-type]
    validate_limits(
        max_users=changes.get("max_users"),  # type: ignore[arg-type]
        max_storage_gb=changes.get("max_storage_gb"),  # type: ignore[arg-type]
    )
    if "owner_id" in changes and changes["owner_id"] is not None:
        owner = await repos.users.get_by_id(changes["owner_id"])  # type: ignore[arg-type]
        if owner is None or owner.organization_id != org_id:
            raise OwnerNotResolvedError("new owner must belong to the organization")
    updated = await repos.organizations.update(org_id, **changes)
    if updated is None:
        raise RecordNotFoundError("organization not found")
    return updated


async def delete_organization(repos: Repositories, org_id: int) -> None:
    """Delete a tenant together with everything it owns.

    Children are removed explicitly so the in-memory bundle behaves like
    the ON DELETE CASCADE foreign keys of the database schema.
    """
    async with repos.transaction():
        if await repos.organizations.get_by_id(org_id) is None:
            raise RecordNotFoundError("organization not found")
        for team in await repos.teams.list_by_organization(org_id):
            await repos.teams.delete_team(team.id)
        for event in await repos.events.list_by_organization(org_id):
            await repos.events.delete(event.id)
        for song in await repos.music.list_by_organization(org_id):
            await repos.music.delete(song.id)
        for stored in await repos.files.list_by_organization(org_id):
            await repos.files.delete(stored.id)
        for user in await repos.users.list_by_organization(org_id):
            await repos.users.delete(user.id)
        await repos.organizations.delete(org_id)
    logger.info("Organization deleted  organization_id=%s", org_id)


async def invite_user(
    repos: Repositories,
    org_id: int,
    *,
    email: str,
    name: str,
    capabilities: Capabilities = Capabilities(),
    receive_cancel_event_notification: bool = False,
) -> ApplicationUser:
    """Add a pending member; an admin approves before they can do anything."""
    org = await repos.organizations.get_by_id(org_id)
    if org is None:
        raise RecordNotFoundError("organization not found")

    draft = ApplicationUser.new(
        email=email,
        name=name,
        organization_id=org_id,
        is_admin=capabilities.is_admin,
        can_add_people=capabilities.can_add_people,
        can_organize_events=capabilities.can_organize_events,
        can_manage_media=capabilities.can_manage_media,
        receive_cancel_event_notification=receive_cancel_event_notification,
        pending=True,
    )
    if await repos.users.get_by_email(draft.email) is not None:
        raise DuplicateRecordError("email already exists")
    if await repos.users.count_by_organization(org_id) >= org.max_users:
        logger.warning(
            "Invite rejected: user limit reached  organization_id=%s max_users=%d",
            org_id,
            org.max_users,
        )
        raise LimitExceededError()

    user = await repos.users.add(draft)
    logger.info("User invited  organization_id=%s user_id=%s", org_id, user.id)
    return user


def _is_recent(created_at: datetime | None, now: datetime) -> bool:
    return created_at is not None and created_at >= now - RECENT_WINDOW


async def organization_stats(repos: Repositories, now: datetime) -> OrganizationStats:
    orgs = await repos.organizations.list_all()
    return OrganizationStats(
        total=len(orgs),
        active=sum(1 for o in orgs if o.owner_id is not None),
        free=sum(1 for o in orgs if o.subscription_plan == SubscriptionPlan.FREE),
        basic=sum(1 for o in orgs if o.subscription_plan == SubscriptionPlan.BASIC),
        premium=sum(1 for o in orgs if o.subscription_plan == SubscriptionPlan.PREMIUM),
        recent=sum(1 for o in orgs if _is_recent(o.created_at, now)),
    )


async def user_stats(repos: Repositories, now: datetime) -> UserStats:
    users = await repos.users.list_all()
    return UserStats(
        total=len(users),
        pending=sum(1 for u in users if u.pending),
        admins=sum(1 for u in users if u.is_admin),
        recent=sum(1 for u in users if _is_recent(u.created_at, now)),
    )
