"""GoTrue (Supabase Auth) REST client.

Implements the IdentityProvider Protocol against a hosted auth service:

  POST /auth/v1/token?grant_type=password   email + password sign-in
  POST /auth/v1/token?grant_type=pkce       OAuth code + verifier exchange
  GET  /auth/v1/authorize                   browser redirect target
  GET  /auth/v1/user                        "who owns this token?"
  POST /auth/v1/logout                      revoke the token's session

ERROR MAPPING
-------------
  transport error, timeout, 5xx   ServiceUnavailableError (try again later)
  4xx                             AuthenticationError (bad credentials,
                                  bad code, expired token)
  401/403 on /user                "no session" (get_session returns None)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt

from app.core.errors import AuthenticationError, ServiceUnavailableError
from app.models.session import (
    AuthEvent,
    AuthEventType,
    AuthSession,
    Identity,
    OAuthRedirect,
)
from app.services import pkce_service
from app.services.identity_provider import (
    AuthEventBus,
    AuthListener,
    check_oauth_provider,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class GoTrueIdentityProvider:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"apikey": api_key},
            timeout=timeout,
            transport=transport,
        )
        self._events = AuthEventBus()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- IdentityProvider ---

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _parse_session(response.json())
        await self._events.emit(
            AuthEvent(
                AuthEventType.SIGNED_IN,
                session.access_token,
                session.identity.email,
            )
        )
        return session

    def authorization_url(
        self, provider: str, redirect_to: str, state: str
    ) -> OAuthRedirect:
        name = check_oauth_provider(provider)
        verifier = pkce_service.generate_code_verifier()
        # GoTrue keeps its own flow state; ours rides along on the redirect
        # URL so the callback can check it.
        separator = "&" if "?" in redirect_to else "?"
        query = urlencode(
            {
                "provider": name,
                "redirect_to": f"{redirect_to}{separator}{urlencode({'state': state})}",
                "code_challenge": pkce_service.compute_code_challenge(verifier),
                "code_challenge_method": "s256",
            }
        )
        return OAuthRedirect(
            url=f"{self._base_url}/auth/v1/authorize?{query}",
            state=state,
            code_verifier=verifier,
        )

    async def exchange_code(self, code: str, code_verifier: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )
        session = _parse_session(response.json())
        await self._events.emit(
            AuthEvent(
                AuthEventType.SIGNED_IN,
                session.access_token,
                session.identity.email,
            )
        )
        return session

    async def get_session(self, access_token: str) -> AuthSession | None:
        try:
            response = await self._request(
                "GET", "/auth/v1/user", headers=_bearer(access_token)
            )
        except AuthenticationError:
            return None
        return AuthSession(
            access_token=access_token,
            identity=_parse_identity(response.json()),
            expires_at=_token_expiry(access_token),
        )

    async def sign_out(self, access_token: str) -> None:
        try:
            await self._request("POST", "/auth/v1/logout", headers=_bearer(access_token))
        except AuthenticationError:
            # Already signed out or expired; logout is idempotent.
            logger.debug("Provider logout for an inactive token ignored")
            return
        await self._events.emit(AuthEvent(AuthEventType.SIGNED_OUT, access_token))

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    # --- internals ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable  path=%s error=%s", path, e)
            raise ServiceUnavailableError() from e
        if response.status_code >= 500:
            logger.warning(
                "Identity provider error  path=%s status=%d", path, response.status_code
            )
            raise ServiceUnavailableError()
        if response.status_code >= 400:
            logger.info(
                "Identity provider rejected request  path=%s status=%d",
                path,
                response.status_code,
            )
            raise AuthenticationError(_error_message(response))
        return response


def _bearer(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"identity provider returned {response.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"identity provider returned {response.status_code}"


def _parse_identity(user: dict[str, Any]) -> Identity:
    email = user.get("email")
    if not email:
        raise AuthenticationError("identity provider returned a user without email")
    metadata = user.get("user_metadata") or {}
    return Identity(
        email=email,
        display_name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url"),
    )


def _parse_session(body: dict[str, Any]) -> AuthSession:
    token = body.get("access_token")
    if not token or not isinstance(body.get("user"), dict):
        raise ServiceUnavailableError("malformed session from identity provider")
    if body.get("expires_at"):
        expires_at = float(body["expires_at"])
    else:
        expires_at = time.time() + float(body.get("expires_in") or 0)
    return AuthSession(
        access_token=token,
        identity=_parse_identity(body["user"]),
        expires_at=expires_at,
    )


def _token_expiry(access_token: str) -> float:
    # The provider already vouched for the token; only the exp claim is read.
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return 0.0
    return float(claims.get("exp", 0))
