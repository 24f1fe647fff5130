"""Identity provider clients.

The identity provider is the external service that owns credentials and
vouches for an email address.  The application never stores passwords
itself; it asks the provider "who is this?" and then resolves the answer
to an ApplicationUser + Organization (see identity_resolver.py).

TWO IMPLEMENTATIONS
-------------------
  InMemoryIdentityProvider   dev and tests.  Accounts with argon2 hashes,
                             ES256 access tokens, PKCE-checked OAuth codes.
  GoTrueIdentityProvider     hosted auth (Supabase/GoTrue REST API), see
                             gotrue_provider.py.

AUTH EVENTS
-----------
Providers publish session changes (SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED,
TOKEN_EXPIRED) on an AuthEventBus.  A SessionManager subscribes while it
is alive and reacts only to events about the token it holds.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import jwt

from app.core.config import SETTINGS, Settings
from app.core.errors import AuthenticationError, DuplicateRecordError
from app.models.session import (
    AuthEvent,
    AuthEventType,
    AuthSession,
    Identity,
    OAuthRedirect,
)
from app.models.user import normalize_email, validate_email
from app.services import auth_service, pkce_service, token_service

logger = logging.getLogger(__name__)

AuthListener = Callable[[AuthEvent], Awaitable[None]]

SUPPORTED_OAUTH_PROVIDERS = ("google",)
AUTHORIZATION_CODE_TTL_SECONDS = 300


class IdentityProvider(Protocol):
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Raises AuthenticationError on bad credentials."""
        ...

    def authorization_url(
        self, provider: str, redirect_to: str, state: str
    ) -> OAuthRedirect:
        """Build the provider's authorize URL plus a fresh PKCE verifier."""
        ...

    async def exchange_code(self, code: str, code_verifier: str) -> AuthSession: ...

    async def get_session(self, access_token: str) -> AuthSession | None:
        """Confirm a token.  None when it is invalid, expired or revoked."""
        ...

    async def sign_out(self, access_token: str) -> None:
        """Revoke a token.  Idempotent."""
        ...

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register for auth events; returns the unsubscribe callable."""
        ...

    async def aclose(self) -> None:
        """Release network resources on shutdown."""
        ...


class AuthEventBus:
    """Fan-out of auth events to async listeners.

    Delivery is sequential and in subscription order.  A listener that
    raises is logged and skipped so one broken session cannot stop the
    others from hearing about a sign-out.
    """

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("Auth event listener failed  event=%s", event.type)

    def clear(self) -> None:
        self._listeners.clear()


def check_oauth_provider(provider: str) -> str:
    name = (provider or "").strip().lower()
    if name not in SUPPORTED_OAUTH_PROVIDERS:
        raise AuthenticationError(f"unsupported OAuth provider {provider!r}")
    return name


# ---------------------------------------------------------------------------
# In-memory provider
# ---------------------------------------------------------------------------


@dataclass
class _Account:
    email: str
    password_hash: str
    display_name: str | None = None
    avatar_url: str | None = None

    @property
    def identity(self) -> Identity:
        return Identity(
            email=self.email, display_name=self.display_name, avatar_url=self.avatar_url
        )


@dataclass(frozen=True, slots=True)
class _AuthorizationCode:
    email: str
    code_challenge: str
    expires_at: float


class InMemoryIdentityProvider:
    """Self-contained provider for dev and tests.

    OAuth is simulated in two steps: ``authorization_url`` records the
    PKCE challenge under the state, then ``issue_authorization_code``
    plays the part of the user approving consent at the provider.
    """

    def __init__(
        self, *, token_ttl_seconds: int = token_service.ACCESS_TOKEN_TTL_SECONDS
    ) -> None:
        self._token_ttl = token_ttl_seconds
        self._accounts: dict[str, _Account] = {}
        self._pending_challenges: dict[str, str] = {}  # state -> code_challenge
        self._codes: dict[str, _AuthorizationCode] = {}
        self._active: dict[str, dict[str, str]] = {}  # email -> {jti: token}
        self._revoked: dict[str, float] = {}  # jti -> exp
        self._events = AuthEventBus()

    # --- account management (not part of the IdentityProvider Protocol) ---

    def register_account(
        self,
        email: str,
        password: str,
        *,
        display_name: str | None = None,
        avatar_url: str | None = None,
    ) -> Identity:
        normalized = validate_email(email)
        if normalized in self._accounts:
            raise DuplicateRecordError("account already exists")
        account = _Account(
            email=normalized,
            password_hash=auth_service.hash_password(password),
            display_name=display_name,
            avatar_url=avatar_url,
        )
        self._accounts[normalized] = account
        logger.info("Identity account registered  email=%s", normalized)
        return account.identity

    def issue_authorization_code(self, state: str, email: str) -> str:
        """Approve a pending authorize request for ``email``; returns the code."""
        challenge = self._pending_challenges.pop(state, None)
        if challenge is None:
            raise AuthenticationError("unknown or already used OAuth state")
        account = self._accounts.get(normalize_email(email))
        if account is None:
            raise AuthenticationError("no such account")
        code = secrets.token_urlsafe(32)
        self._codes[code] = _AuthorizationCode(
            email=account.email,
            code_challenge=challenge,
            expires_at=time.time() + AUTHORIZATION_CODE_TTL_SECONDS,
        )
        return code

    async def revoke_session(self, email: str) -> int:
        """Revoke every live token of an account, emitting TOKEN_EXPIRED each."""
        normalized = normalize_email(email)
        tokens = self._active.pop(normalized, {})
        for jti, token in tokens.items():
            self._retire(normalized, jti, _expiry(token))
            await self._events.emit(
                AuthEvent(AuthEventType.TOKEN_EXPIRED, token, normalized)
            )
        logger.info("Sessions revoked  email=%s count=%d", normalized, len(tokens))
        return len(tokens)

    async def refresh_session(self, access_token: str) -> AuthSession:
        """Swap a live token for a new one, emitting TOKEN_REFRESHED."""
        claims = self._verify(access_token)
        if claims is None:
            raise AuthenticationError("session expired")
        account = self._accounts[claims["sub"]]
        self._retire(claims["sub"], claims["jti"], float(claims["exp"]))
        session = self._issue(account)
        await self._events.emit(
            AuthEvent(
                AuthEventType.TOKEN_REFRESHED,
                session.access_token,
                account.email,
                previous_token=access_token,
            )
        )
        return session

    def clear(self) -> None:
        self._accounts.clear()
        self._pending_challenges.clear()
        self._codes.clear()
        self._active.clear()
        self._revoked.clear()
        self._events.clear()

    # --- IdentityProvider ---

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self._accounts.get(normalize_email(email))
        if account is None or not auth_service.verify_password(
            password, account.password_hash
        ):
            raise AuthenticationError("invalid email or password")

        new_hash = auth_service.rehash_if_needed(password, account.password_hash)
        if new_hash is not None:
            account.password_hash = new_hash
            logger.info("Rehashed password  email=%s", account.email)

        session = self._issue(account)
        await self._events.emit(
            AuthEvent(AuthEventType.SIGNED_IN, session.access_token, account.email)
        )
        return session

    def authorization_url(
        self, provider: str, redirect_to: str, state: str
    ) -> OAuthRedirect:
        name = check_oauth_provider(provider)
        verifier = pkce_service.generate_code_verifier()
        challenge = pkce_service.compute_code_challenge(verifier)
        self._pending_challenges[state] = challenge
        query = urlencode(
            {
                "provider": name,
                "redirect_to": redirect_to,
                "state": state,
                "code_challenge": challenge,
                "code_challenge_method": "S256",
            }
        )
        return OAuthRedirect(
            url=f"memory://identity/authorize?{query}", state=state, code_verifier=verifier
        )

    async def exchange_code(self, code: str, code_verifier: str) -> AuthSession:
        issued = self._codes.pop(code, None)
        if issued is None or issued.expires_at < time.time():
            raise AuthenticationError("invalid or expired authorization code")
        if not pkce_service.verify_code_challenge(code_verifier, issued.code_challenge):
            logger.warning("PKCE verification failed  email=%s", issued.email)
            raise AuthenticationError("PKCE verification failed")
        account = self._accounts.get(issued.email)
        if account is None:
            raise AuthenticationError("no such account")
        session = self._issue(account)
        await self._events.emit(
            AuthEvent(AuthEventType.SIGNED_IN, session.access_token, account.email)
        )
        return session

    async def get_session(self, access_token: str) -> AuthSession | None:
        claims = self._verify(access_token)
        if claims is None:
            return None
        return AuthSession(
            access_token=access_token,
            identity=self._accounts[claims["sub"]].identity,
            expires_at=float(claims["exp"]),
        )

    async def sign_out(self, access_token: str) -> None:
        try:
            claims = token_service.decode_access_token(access_token, verify_exp=False)
        except jwt.InvalidTokenError:
            return
        # Retired tokens are no longer active, even once pruned from _revoked.
        if claims["jti"] not in self._active.get(claims["sub"], {}):
            return
        self._retire(claims["sub"], claims["jti"], float(claims["exp"]))
        await self._events.emit(
            AuthEvent(AuthEventType.SIGNED_OUT, access_token, claims["sub"])
        )

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    async def aclose(self) -> None:
        pass

    # --- internals ---

    def _issue(self, account: _Account) -> AuthSession:
        token = token_service.create_access_token(
            email=account.email,
            name=account.display_name,
            avatar_url=account.avatar_url,
            ttl_seconds=self._token_ttl,
        )
        claims = token_service.decode_access_token(token)
        self._active.setdefault(account.email, {})[claims["jti"]] = token
        return AuthSession(
            access_token=token,
            identity=account.identity,
            expires_at=float(claims["exp"]),
        )

    def _verify(self, access_token: str) -> dict | None:
        try:
            claims = token_service.decode_access_token(access_token)
        except jwt.ExpiredSignatureError:
            logger.debug("Expired access token rejected")
            return None
        except jwt.InvalidTokenError:
            logger.debug("Invalid access token rejected")
            return None
        if claims["jti"] in self._revoked or claims["sub"] not in self._accounts:
            return None
        return claims

    def _retire(self, email: str, jti: str, expires_at: float) -> None:
        """Deny ``jti`` until its exp; entries past their exp are dropped.

        An expired token already fails signature verification, so the
        revocation list only has to outlive each token's lifetime.
        """
        now = time.time()
        for stale in [j for j, exp in self._revoked.items() if exp <= now]:
            del self._revoked[stale]
        if expires_at > now:
            self._revoked[jti] = expires_at
        tokens = self._active.get(email)
        if tokens is not None:
            tokens.pop(jti, None)


def _expiry(token: str) -> float:
    return float(token_service.decode_access_token(token, verify_exp=False)["exp"])


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.identity_provider == "gotrue":
        # Local import: gotrue_provider imports AuthEventBus from this module.
        from app.services.gotrue_provider import GoTrueIdentityProvider

        if settings.auth_url is None or settings.auth_api_key is None:
            raise ValueError("IDENTITY_PROVIDER=gotrue requires AUTH_URL and AUTH_API_KEY")
        return GoTrueIdentityProvider(settings.auth_url, settings.auth_api_key)
    return InMemoryIdentityProvider()


# ---------------------------------------------------------------------------
# Module-level singleton, chosen by IDENTITY_PROVIDER
# ---------------------------------------------------------------------------

identity_provider: IdentityProvider = build_identity_provider(SETTINGS)


@asynccontextmanager
async def lifespan_identity_provider() -> AsyncIterator[None]:
    """Shutdown hook: close the provider's HTTP client."""
    try:
        yield
    finally:
        await identity_provider.aclose()
        logger.info("Identity provider closed")
