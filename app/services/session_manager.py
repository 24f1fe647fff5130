"""Per-client session lifecycle: login, OAuth, restore, revalidate, logout.

One SessionManager exists per client key (the ``sid`` cookie) for as long
as that client is being served.  It owns the in-memory Session triple
(user, organization, is_super_admin) and keeps the durable copy in the
SessionStore in step with it.

STATE MACHINE
-------------
  Loading ──start()/restore──> Anonymous | TenantUser | SuperAdmin
  Anonymous ──login ok──> TenantUser | SuperAdmin
  any ──login/OAuth/restore failure──> Anonymous (durable entry cleared)
  any ──logout | SIGNED_OUT | TOKEN_EXPIRED──> Anonymous

``loading`` is true from construction until ``start()`` returns, and
while any login, restore or revalidation is in flight.  It is always
reset in ``finally`` so a cancelled task never leaves it stuck.

CACHE IS SOFT, REVALIDATION IS HARD
-----------------------------------
``restore_session()`` trusts a well-formed cached entry (no provider or
database round trip) unless REVALIDATE_ON_RESTORE is set.
``revalidate()`` always re-checks the provider token and re-resolves the
identity; the API runs it before every privileged action, so a revoked
admin flag or a deleted user is caught there even if the cache is stale.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any

from app.core.config import SETTINGS
from app.core.errors import (
    AppError,
    AuthenticationError,
    EntityValidationError,
    IdentityResolutionError,
    TransientStoreError,
)
from app.core.metrics import LOGIN_ATTEMPTS, SESSION_RESTORES
from app.models.session import (
    AuthEvent,
    AuthEventType,
    AuthSession,
    Identity,
    OAuthFlow,
    PersistedSession,
    ResolvedIdentity,
    Session,
)
from app.models.user import normalize_email
from app.services import pkce_service
from app.services.identity_provider import IdentityProvider
from app.services.identity_resolver import IdentityResolver
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)

OAUTH_FLOW_TTL_SECONDS = 600


class SessionManager:
    def __init__(
        self,
        client_key: str,
        *,
        resolver: IdentityResolver,
        provider: IdentityProvider,
        store: SessionStore,
        session_ttl_seconds: int = SETTINGS.session_ttl_seconds,
        revalidate_on_restore: bool = SETTINGS.revalidate_on_restore,
        oauth_redirect_url: str = SETTINGS.oauth_redirect_url,
    ) -> None:
        self._client_key = client_key
        self._resolver = resolver
        self._provider = provider
        self._store = store
        self._session_ttl = session_ttl_seconds
        self._revalidate_on_restore = revalidate_on_restore
        self._oauth_redirect_url = oauth_redirect_url

        self._session = Session.anonymous()
        self._access_token: str | None = None
        self._started = False
        self._in_flight = 0
        self._unsubscribe: Callable[[], None] | None = None

    # --- lifecycle ---

    async def start(self) -> Session:
        """Subscribe to provider events and restore any persisted session."""
        if self._unsubscribe is None:
            self._unsubscribe = self._provider.subscribe(self.handle_auth_event)
        try:
            await self.restore_session()
        finally:
            self._started = True
        return self.state

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> SessionManager:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # --- observable state ---

    @property
    def client_key(self) -> str:
        return self._client_key

    @property
    def loading(self) -> bool:
        return not self._started or self._in_flight > 0

    @property
    def state(self) -> Session:
        if self.loading:
            return replace(self._session, loading=True)
        return self._session

    # --- operations ---

    async def login(self, email: str, password: str) -> Session:
        normalized = normalize_email(email)
        if not normalized:
            raise EntityValidationError("email is required")
        if not password:
            LOGIN_ATTEMPTS.labels(method="password", outcome="missing_password").inc()
            raise AuthenticationError("password is required")

        await self._authenticate(
            "password",
            lambda: self._provider.sign_in_with_password(normalized, password),
        )
        return self.state

    async def login_with_oauth(self, provider: str) -> str:
        """Start an OAuth sign-in; returns the provider URL to redirect to."""
        state = pkce_service.generate_state()
        redirect = self._provider.authorization_url(
            provider, self._oauth_redirect_url, state
        )
        await self._store.save_oauth_flow(
            self._client_key,
            OAuthFlow(
                provider=provider,
                state=redirect.state,
                code_verifier=redirect.code_verifier,
            ),
            OAUTH_FLOW_TTL_SECONDS,
        )
        logger.info("OAuth sign-in started  provider=%s", provider)
        return redirect.url

    async def complete_oauth(self, code: str, state: str | None) -> Session:
        flow = await self._store.pop_oauth_flow(self._client_key)
        if flow is None or not pkce_service.states_match(flow.state, state):
            LOGIN_ATTEMPTS.labels(method="oauth", outcome="state_mismatch").inc()
            logger.warning("OAuth callback rejected: missing flow or state mismatch")
            raise AuthenticationError("OAuth state mismatch")
        if not code:
            LOGIN_ATTEMPTS.labels(method="oauth", outcome="missing_code").inc()
            raise AuthenticationError("authorization code is required")

        await self._authenticate(
            "oauth", lambda: self._provider.exchange_code(code, flow.code_verifier)
        )
        return self.state

    async def logout(self) -> None:
        token, self._access_token = self._access_token, None
        had_session = self._session.user is not None
        self._session = Session.anonymous()
        if token is not None:
            try:
                await self._provider.sign_out(token)
            except AppError as e:
                logger.warning("Provider sign-out failed: %s", e)
        try:
            await self._store.clear(self._client_key)
        except TransientStoreError:
            if had_session:
                raise
            logger.warning("Could not clear session entry for anonymous client")
        if had_session:
            logger.info("Logged out")

    async def restore_session(self, access_token: str | None = None) -> Session:
        async with self._busy():
            if access_token is not None:
                await self._restore_from_provider(access_token)
            else:
                await self._restore_from_cache()
        return self.state

    async def revalidate(self) -> Session:
        """Hard check before a privileged action: provider token + fresh resolve."""
        if self._session.user is None or self._access_token is None:
            raise AuthenticationError("sign-in required")
        token = self._access_token
        async with self._busy():
            auth = await self._provider.get_session(token)
            if auth is None:
                logger.info("Revalidation failed: provider session gone")
                await self._clear()
                raise AuthenticationError("session expired")
            try:
                resolved = await self._resolver.resolve_identity(
                    auth.identity.email, auth.identity
                )
            except IdentityResolutionError:
                await self._clear()
                raise
            await self._commit(resolved, token)
        return self.state

    async def handle_auth_event(self, event: AuthEvent) -> None:
        held = self._access_token
        if held is None or held not in (event.access_token, event.previous_token):
            return
        logger.info("Auth event for current session  event=%s", event.type)
        if event.type in (AuthEventType.SIGNED_OUT, AuthEventType.TOKEN_EXPIRED):
            await self._clear()
        else:
            await self.restore_session(access_token=event.access_token)

    # --- internals ---

    @asynccontextmanager
    async def _busy(self) -> AsyncIterator[None]:
        self._in_flight += 1
        try:
            yield
        except BaseException:
            # Failed or cancelled mid-flight: never leave a half-resolved state.
            self._session = Session.anonymous()
            self._access_token = None
            raise
        finally:
            self._in_flight -= 1

    async def _authenticate(
        self, method: str, obtain: Callable[[], Awaitable[AuthSession]]
    ) -> None:
        async with self._busy():
            auth: AuthSession | None = None
            try:
                auth = await obtain()
                resolved = await self._resolver.resolve_identity(
                    auth.identity.email, auth.identity
                )
                await self._commit(resolved, auth.access_token)
            except Exception as e:
                outcome = e.kind if isinstance(e, AppError) else "error"
                LOGIN_ATTEMPTS.labels(method=method, outcome=outcome).inc()
                logger.warning("Login failed  method=%s reason=%s", method, outcome)
                await self._abandon(auth)
                raise
        LOGIN_ATTEMPTS.labels(method=method, outcome="success").inc()
        logger.info(
            "Login succeeded  method=%s email=%s user_id=%s super_admin=%s",
            method,
            self._session.user.email if self._session.user else None,
            self._session.user.id if self._session.user else None,
            self._session.is_super_admin,
        )

    async def _abandon(self, auth: AuthSession | None) -> None:
        """Best-effort cleanup after a failed sign-in."""
        if auth is not None:
            try:
                await self._provider.sign_out(auth.access_token)
            except AppError as e:
                logger.warning("Sign-out of abandoned provider session failed: %s", e)
        try:
            await self._clear()
        except TransientStoreError:
            logger.warning("Could not clear session entry after failed sign-in")

    async def _restore_from_provider(self, access_token: str) -> None:
        auth = await self._provider.get_session(access_token)
        if auth is None:
            SESSION_RESTORES.labels(source="anonymous").inc()
            await self._clear()
            return
        try:
            resolved = await self._resolver.resolve_identity(
                auth.identity.email, auth.identity
            )
        except IdentityResolutionError:
            await self._clear()
            raise
        await self._commit(resolved, access_token)
        SESSION_RESTORES.labels(source="provider").inc()

    async def _restore_from_cache(self) -> None:
        cached = await self._store.load(self._client_key)
        if cached is None:
            self._session = Session.anonymous()
            self._access_token = None
            SESSION_RESTORES.labels(source="anonymous").inc()
            return

        if not self._revalidate_on_restore:
            self._adopt(cached)
            SESSION_RESTORES.labels(source="cache").inc()
            return

        identity = Identity(
            email=cached.user.email,
            display_name=cached.user.name,
            avatar_url=cached.user.profile_url,
        )
        try:
            resolved = await self._resolver.resolve_identity(cached.user.email, identity)
        except TransientStoreError:
            logger.warning("Store unavailable on restore; using cached session")
            self._adopt(cached)
            SESSION_RESTORES.labels(source="stale_cache").inc()
            return
        except IdentityResolutionError:
            await self._clear()
            raise
        await self._commit(resolved, cached.access_token)
        SESSION_RESTORES.labels(source="revalidated").inc()

    def _adopt(self, cached: PersistedSession) -> None:
        self._session = cached.to_session()
        self._access_token = cached.access_token

    async def _commit(self, resolved: ResolvedIdentity, access_token: str) -> None:
        # Durable copy first: a failed write must not leave memory ahead of it.
        await self._store.save(
            self._client_key,
            PersistedSession(
                user=resolved.user,
                organization=resolved.organization,
                is_super_admin=resolved.is_super_admin,
                access_token=access_token,
            ),
            self._session_ttl,
        )
        self._session = Session.from_resolved(resolved)
        self._access_token = access_token

    async def _clear(self) -> None:
        self._session = Session.anonymous()
        self._access_token = None
        await self._store.clear(self._client_key)
