"""Request-scoped wiring: repositories, session manager, access guards.

SESSION COOKIE
--------------
Each browser is identified by an opaque ``sid`` cookie (HttpOnly,
SameSite=Lax), created on first contact.  The cookie is only a lookup key
into the SessionStore; it carries no identity on its own.

GUARDS
------
  require_session       any resolved, non-anonymous session (else 401)
  require_tenant_user   a tenant scope: the session's organization, or for
                        a super-admin an explicit ?organization_id=
  require_super_admin   revalidate(), then the super-admin flag
  require_capability    revalidate(), then the effective capability

Every route awaits session restoration before it runs, so a handler never
sees the Loading state or an optimistic Anonymous view.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request, Response

from app.core.config import SETTINGS
from app.core.errors import (
    AuthenticationError,
    EntityValidationError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from app.db.engine import async_session_factory, session_scope
from app.middleware.request_context import bind_session_context
from app.models.session import Session
from app.models.user import Capabilities
from app.repos.registry import Repositories, memory_store, pg_repositories
from app.services.identity_provider import IdentityProvider, identity_provider
from app.services.identity_resolver import IdentityResolver
from app.services.session_manager import SessionManager
from app.services.session_store import SessionStore, session_store

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sid"
_MAX_CLIENT_KEY_LENGTH = 128


# ---------------------------------------------------------------------------
# Infrastructure providers (overridable via app.dependency_overrides)
# ---------------------------------------------------------------------------


async def get_repositories() -> AsyncGenerator[Repositories, None]:
    if async_session_factory is None:
        yield memory_store
        return
    async with session_scope() as session:
        yield pg_repositories(session)


def get_identity_provider() -> IdentityProvider:
    return identity_provider


def get_session_store() -> SessionStore:
    return session_store


def get_super_admin_emails() -> tuple[str, ...]:
    return SETTINGS.super_admin_emails


def set_session_cookie(response: Response, client_key: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        client_key,
        max_age=SETTINGS.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=SETTINGS.is_prod,
    )


def get_client_key(request: Request, response: Response) -> str:
    key = request.cookies.get(SESSION_COOKIE)
    if key and len(key) <= _MAX_CLIENT_KEY_LENGTH:
        return key
    key = secrets.token_urlsafe(32)
    set_session_cookie(response, key)
    return key


# ---------------------------------------------------------------------------
# Session manager
# ---------------------------------------------------------------------------


async def get_session_manager(
    client_key: Annotated[str, Depends(get_client_key)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    store: Annotated[SessionStore, Depends(get_session_store)],
    super_admin_emails: Annotated[tuple[str, ...], Depends(get_super_admin_emails)],
) -> AsyncGenerator[SessionManager, None]:
    """Build the client's manager and block until its session is restored."""
    manager = SessionManager(
        client_key,
        resolver=IdentityResolver(
            repos.users, repos.organizations, super_admin_emails=super_admin_emails
        ),
        provider=provider,
        store=store,
    )
    bind_session_context(client_key=client_key)
    async with manager:
        _bind(manager.state, client_key)
        yield manager


def _bind(state: Session, client_key: str) -> None:
    bind_session_context(
        client_key=client_key,
        user_id=state.user.id if state.user else None,
        organization_id=state.organization.id if state.organization else None,
    )


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def require_session(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> Session:
    state = manager.state
    if state.user is None:
        raise AuthenticationError("sign-in required")
    return state


@dataclass(frozen=True, slots=True)
class TenantScope:
    """The organization a tenant route operates on, plus who is asking."""

    organization_id: int
    session: Session
    manager: SessionManager

    @property
    def user_id(self) -> int | None:
        return self.session.user.id if self.session.user else None

    def ensure_owns(self, organization_id: int | None, what: str = "record") -> None:
        # Rows of another tenant are reported as missing, not forbidden.
        if organization_id != self.organization_id:
            raise RecordNotFoundError(f"{what} not found")


async def _scope_for(
    state: Session,
    manager: SessionManager,
    repos: Repositories,
    organization_id: int | None,
) -> TenantScope:
    if state.user is None:
        raise AuthenticationError("sign-in required")

    if state.is_super_admin:
        if organization_id is None:
            raise EntityValidationError(
                "organization_id is required for super-admin requests"
            )
        if await repos.organizations.get_by_id(organization_id) is None:
            raise RecordNotFoundError("organization not found")
        return TenantScope(organization_id, state, manager)

    if state.organization is None:
        raise PermissionDeniedError("no organization in session")
    if organization_id is not None and organization_id != state.organization.id:
        logger.warning(
            "Cross-tenant access denied  requested_organization_id=%s",
            organization_id,
        )
        raise PermissionDeniedError()
    return TenantScope(state.organization.id, state, manager)


async def require_tenant_user(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    organization_id: Annotated[int | None, Query()] = None,
) -> TenantScope:
    return await _scope_for(manager.state, manager, repos, organization_id)


async def require_super_admin(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> Session:
    if manager.state.user is None:
        raise AuthenticationError("sign-in required")
    state = await manager.revalidate()
    _bind(state, manager.client_key)
    if not state.is_super_admin:
        logger.warning("Super-admin route denied")
        raise PermissionDeniedError()
    return state


def require_capability(*names: str):
    """Dependency factory: demand an effective capability on a fresh session.

    Usage: Depends(require_capability("can_manage_media"))
    With several names, holding any one of them is enough.  Pending users
    hold no capabilities, so they never pass.
    """
    unknown = set(names) - set(Capabilities.NAMES)
    if not names or unknown:
        raise ValueError(f"unknown capabilities {sorted(unknown)}")

    async def _guard(
        manager: Annotated[SessionManager, Depends(get_session_manager)],
        repos: Annotated[Repositories, Depends(get_repositories)],
        organization_id: Annotated[int | None, Query()] = None,
    ) -> TenantScope:
        if manager.state.user is None:
            raise AuthenticationError("sign-in required")
        state = await manager.revalidate()
        _bind(state, manager.client_key)
        scope = await _scope_for(state, manager, repos, organization_id)
        if not any(state.capabilities.allows(n) for n in names):
            logger.warning("Access denied: missing capability=%s", "|".join(names))
            raise PermissionDeniedError()
        return scope

    return _guard
