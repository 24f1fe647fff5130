"""Map a provider-confirmed email to (user, organization, is_super_admin).

Resolution order:

  1. allow-listed email   synthetic super-admin profile, no store lookup
  2. application user     looked up by normalized email
  3. organization         the user's tenant, which must exist

Every failure is a distinct IdentityResolutionError subclass and is never
retried.  A TransientStoreError on a read is retried once, immediately;
a second failure propagates as "service unavailable".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from app.core.errors import (
    EntityValidationError,
    IdentityResolutionError,
    NoOrganizationError,
    OrganizationNotFoundError,
    TransientStoreError,
    UserNotFoundError,
)
from app.core.metrics import IDENTITY_RESOLUTIONS, STORE_RETRIES
from app.models.session import Identity, ResolvedIdentity
from app.models.user import ApplicationUser, normalize_email
from app.repos.org_repo import OrganizationRepo
from app.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdentityResolver:
    def __init__(
        self,
        users: UserRepo,
        organizations: OrganizationRepo,
        *,
        super_admin_emails: Iterable[str] = (),
    ) -> None:
        self._users = users
        self._organizations = organizations
        self._super_admins = frozenset(normalize_email(e) for e in super_admin_emails)

    def is_super_admin_email(self, email: str) -> bool:
        return normalize_email(email) in self._super_admins

    async def resolve_identity(
        self, email: str, identity: Identity | None = None
    ) -> ResolvedIdentity:
        normalized = normalize_email(email)
        if not normalized:
            raise EntityValidationError("email is required")

        if normalized in self._super_admins:
            IDENTITY_RESOLUTIONS.labels(outcome="super_admin").inc()
            logger.info("Identity resolved as super-admin  email=%s", normalized)
            return ResolvedIdentity(
                user=ApplicationUser.super_admin(
                    email=normalized,
                    name=identity.display_name if identity else None,
                    profile_url=identity.avatar_url if identity else None,
                ),
                organization=None,
                is_super_admin=True,
            )

        try:
            resolved = await self._resolve_tenant_user(normalized)
        except IdentityResolutionError as e:
            IDENTITY_RESOLUTIONS.labels(outcome=e.kind).inc()
            logger.warning("Identity resolution failed  email=%s reason=%s", normalized, e.kind)
            raise
        except TransientStoreError:
            IDENTITY_RESOLUTIONS.labels(outcome="unavailable").inc()
            logger.error("Identity resolution unavailable  email=%s", normalized)
            raise

        IDENTITY_RESOLUTIONS.labels(outcome="tenant_user").inc()
        logger.info(
            "Identity resolved  email=%s user_id=%s organization_id=%s",
            normalized,
            resolved.user.id,
            resolved.organization.id if resolved.organization else None,
        )
        return resolved

    async def _resolve_tenant_user(self, email: str) -> ResolvedIdentity:
        user = await _read_with_retry(self._users.get_by_email, email)
        if user is None:
            raise UserNotFoundError()

        org_id = user.organization_id
        if org_id is None or org_id <= 0:
            raise NoOrganizationError()

        organization = await _read_with_retry(self._organizations.get_by_id, org_id)
        if organization is None:
            raise OrganizationNotFoundError()

        return ResolvedIdentity(user=user, organization=organization, is_super_admin=False)


async def _read_with_retry(read: Callable[..., Awaitable[T]], *args: object) -> T:
    try:
        return await read(*args)
    except TransientStoreError:
        STORE_RETRIES.inc()
        logger.warning("Transient store error, retrying once  op=%s", read.__name__)
        return await read(*args)
