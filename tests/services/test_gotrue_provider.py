"""GoTrue client against an httpx.MockTransport (no network)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.core.config import SETTINGS
from app.core.errors import AuthenticationError, ServiceUnavailableError
from app.models.session import AuthEvent, AuthEventType
from app.services import identity_provider as identity_provider_module
from app.services.gotrue_provider import GoTrueIdentityProvider
from app.services.identity_provider import (
    build_identity_provider,
    lifespan_identity_provider,
)
from app.services.token_service import create_access_token

BASE = "https://auth.example.org"

TOKEN = create_access_token(email="pastor@example.com", name="Pat", avatar_url=None)

USER = {
    "id": "8b1c",
    "email": "pastor@example.com",
    "user_metadata": {"full_name": "Pat Pastor", "avatar_url": "https://img/p.png"},
}


def _provider(handler) -> GoTrueIdentityProvider:
    return GoTrueIdentityProvider(BASE, "anon-key", transport=httpx.MockTransport(handler))


def _session_body() -> dict:
    return {"access_token": TOKEN, "expires_in": 3600, "user": USER}


def test_password_sign_in_posts_credentials_and_emits_signed_in() -> None:
    seen: list[httpx.Request] = []
    events: list[AuthEvent] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_session_body())

    async def scenario() -> None:
        provider = _provider(handler)

        async def listen(event: AuthEvent) -> None:
            events.append(event)

        provider.subscribe(listen)
        session = await provider.sign_in_with_password("pastor@example.com", "pw")
        await provider.aclose()

        assert session.access_token == TOKEN
        assert session.identity.display_name == "Pat Pastor"
        assert session.identity.avatar_url == "https://img/p.png"

    asyncio.run(scenario())

    request = seen[0]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content) == {"email": "pastor@example.com", "password": "pw"}
    assert [e.type for e in events] == [AuthEventType.SIGNED_IN]


def test_bad_credentials_map_to_authentication_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error_description": "Invalid login credentials"})

    async def scenario() -> None:
        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            await _provider(handler).sign_in_with_password("x@example.com", "nope")

    asyncio.run(scenario())


def test_server_error_maps_to_service_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    async def scenario() -> None:
        with pytest.raises(ServiceUnavailableError):
            await _provider(handler).sign_in_with_password("x@example.com", "pw")

    asyncio.run(scenario())


def test_transport_failure_maps_to_service_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario() -> None:
        with pytest.raises(ServiceUnavailableError):
            await _provider(handler).get_session(TOKEN)

    asyncio.run(scenario())


def test_malformed_session_body_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": TOKEN})

    async def scenario() -> None:
        with pytest.raises(ServiceUnavailableError, match="malformed session"):
            await _provider(handler).sign_in_with_password("x@example.com", "pw")

    asyncio.run(scenario())


def test_get_session_sends_bearer_and_reads_expiry_from_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == f"Bearer {TOKEN}"
        return httpx.Response(200, json=USER)

    async def scenario() -> None:
        session = await _provider(handler).get_session(TOKEN)
        assert session is not None
        assert session.identity.email == "pastor@example.com"
        assert session.expires_at > 0

    asyncio.run(scenario())


def test_get_session_returns_none_for_rejected_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    async def scenario() -> None:
        assert await _provider(handler).get_session("expired") is None

    asyncio.run(scenario())


def test_sign_out_is_idempotent_on_4xx() -> None:
    events: list[AuthEvent] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    async def scenario() -> None:
        provider = _provider(handler)

        async def listen(event: AuthEvent) -> None:
            events.append(event)

        provider.subscribe(listen)
        await provider.sign_out(TOKEN)

    asyncio.run(scenario())
    assert events == []


def test_sign_out_emits_signed_out() -> None:
    events: list[AuthEvent] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/logout"
        return httpx.Response(204)

    async def scenario() -> None:
        provider = _provider(handler)

        async def listen(event: AuthEvent) -> None:
            events.append(event)

        provider.subscribe(listen)
        await provider.sign_out(TOKEN)

    asyncio.run(scenario())
    assert [(e.type, e.access_token) for e in events] == [(AuthEventType.SIGNED_OUT, TOKEN)]


def test_code_exchange_sends_verifier() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["grant_type"] == "pkce"
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_session_body())

    async def scenario() -> None:
        await _provider(handler).exchange_code("code-1", "verifier-1")

    asyncio.run(scenario())
    assert seen == [{"auth_code": "code-1", "code_verifier": "verifier-1"}]


def test_authorization_url_carries_challenge_and_our_state() -> None:
    provider = _provider(lambda request: httpx.Response(500))
    redirect = provider.authorization_url(
        "google", "https://app.example.org/auth/callback", "state-123"
    )
    parsed = urlparse(redirect.url)
    query = parse_qs(parsed.query)

    assert parsed.netloc == "auth.example.org"
    assert parsed.path == "/auth/v1/authorize"
    assert query["provider"] == ["google"]
    assert query["code_challenge_method"] == ["s256"]
    assert query["redirect_to"] == ["https://app.example.org/auth/callback?state=state-123"]
    assert redirect.state == "state-123"
    assert redirect.code_verifier


def test_authorization_url_rejects_unknown_provider() -> None:
    provider = _provider(lambda request: httpx.Response(500))
    with pytest.raises(AuthenticationError):
        provider.authorization_url("myspace", "https://app/cb", "s")


# ---- construction and shutdown ----


def test_build_selects_gotrue_when_configured() -> None:
    settings = replace(SETTINGS, identity_provider="gotrue", auth_url=BASE, auth_api_key="k")
    provider = build_identity_provider(settings)
    assert isinstance(provider, GoTrueIdentityProvider)
    asyncio.run(provider.aclose())


@pytest.mark.parametrize("missing", [{"auth_url": None}, {"auth_api_key": None}])
def test_build_rejects_gotrue_without_credentials(missing: dict) -> None:
    settings = replace(
        SETTINGS,
        **{"identity_provider": "gotrue", "auth_url": BASE, "auth_api_key": "k", **missing},
    )
    with pytest.raises(ValueError, match="AUTH_URL and AUTH_API_KEY"):
        build_identity_provider(settings)


def test_app_shutdown_closes_the_http_client(monkeypatch: pytest.MonkeyPatch) -> None:
    provider = _provider(lambda request: httpx.Response(200, json={}))
    monkeypatch.setattr(identity_provider_module, "identity_provider", provider)

    async def scenario() -> None:
        async with lifespan_identity_provider():
            assert provider._client.is_closed is False

    asyncio.run(scenario())
    assert provider._client.is_closed is True
