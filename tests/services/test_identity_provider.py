from __future__ import annotations

import pytest

from app.core.errors import AuthenticationError, DuplicateRecordError, EntityValidationError
from app.models.session import AuthEvent, AuthEventType
from app.services import pkce_service, token_service
from app.services import identity_provider as identity_provider_module
from app.services.identity_provider import AuthEventBus, InMemoryIdentityProvider
from tests.conftest import run

EMAIL = "ana@church.org"
PASSWORD = "correct horse"


@pytest.fixture
def idp() -> InMemoryIdentityProvider:
    provider = InMemoryIdentityProvider()
    provider.register_account(EMAIL, PASSWORD, display_name="Ana")
    return provider


def _record(idp: InMemoryIdentityProvider) -> list[AuthEvent]:
    events: list[AuthEvent] = []

    async def listen(event: AuthEvent) -> None:
        events.append(event)

    idp.subscribe(listen)
    return events


# ---- accounts and password sign-in ----


def test_register_rejects_duplicates_and_bad_emails(idp: InMemoryIdentityProvider) -> None:
    with pytest.raises(DuplicateRecordError):
        idp.register_account("ANA@church.org", "x")
    with pytest.raises(EntityValidationError):
        idp.register_account("not-an-email", "x")


def test_sign_in_issues_a_verifiable_token(idp: InMemoryIdentityProvider) -> None:
    events = _record(idp)
    session = run(idp.sign_in_with_password(" Ana@Church.org ", PASSWORD))
    assert session.identity.email == EMAIL
    assert session.identity.display_name == "Ana"

    confirmed = run(idp.get_session(session.access_token))
    assert confirmed is not None
    assert confirmed.identity.email == EMAIL
    assert [e.type for e in events] == [AuthEventType.SIGNED_IN]


@pytest.mark.parametrize(("email", "password"), [(EMAIL, "wrong"), ("who@x.org", PASSWORD)])
def test_bad_credentials_are_rejected(
    idp: InMemoryIdentityProvider, email: str, password: str
) -> None:
    with pytest.raises(AuthenticationError):
        run(idp.sign_in_with_password(email, password))


def test_garbage_token_has_no_session(idp: InMemoryIdentityProvider) -> None:
    assert run(idp.get_session("not-a-jwt")) is None


def test_expired_token_has_no_session(idp: InMemoryIdentityProvider) -> None:
    token = token_service.create_access_token(email=EMAIL, ttl_seconds=-1)
    assert run(idp.get_session(token)) is None


# ---- sign-out, revocation, refresh ----


def test_sign_out_revokes_and_is_idempotent(idp: InMemoryIdentityProvider) -> None:
    session = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    events = _record(idp)
    run(idp.sign_out(session.access_token))
    run(idp.sign_out(session.access_token))
    run(idp.sign_out("garbage"))

    assert run(idp.get_session(session.access_token)) is None
    assert [e.type for e in events] == [AuthEventType.SIGNED_OUT]


def test_revoke_session_expires_every_live_token(idp: InMemoryIdentityProvider) -> None:
    first = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    second = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    events = _record(idp)

    assert run(idp.revoke_session(EMAIL)) == 2
    assert run(idp.get_session(first.access_token)) is None
    assert run(idp.get_session(second.access_token)) is None
    assert {e.access_token for e in events} == {first.access_token, second.access_token}
    assert all(e.type is AuthEventType.TOKEN_EXPIRED for e in events)


def test_sign_out_after_revoke_session_emits_nothing(idp: InMemoryIdentityProvider) -> None:
    session = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    run(idp.revoke_session(EMAIL))
    events = _record(idp)
    run(idp.sign_out(session.access_token))
    assert events == []


def test_revocations_are_forgotten_once_the_token_expires(
    idp: InMemoryIdentityProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    first = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    first_jti = token_service.decode_access_token(first.access_token)["jti"]
    run(idp.sign_out(first.access_token))
    assert first_jti in idp._revoked

    second = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    monkeypatch.setattr(identity_provider_module.time, "time", lambda: first.expires_at)
    events = _record(idp)
    run(idp.sign_out(second.access_token))
    run(idp.sign_out(first.access_token))

    assert first_jti not in idp._revoked
    assert [e.access_token for e in events] == [second.access_token]


def test_refresh_swaps_tokens(idp: InMemoryIdentityProvider) -> None:
    old = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    events = _record(idp)
    new = run(idp.refresh_session(old.access_token))

    assert new.access_token != old.access_token
    assert run(idp.get_session(old.access_token)) is None
    assert run(idp.get_session(new.access_token)) is not None
    assert events[0].type is AuthEventType.TOKEN_REFRESHED
    assert events[0].previous_token == old.access_token


def test_refresh_of_revoked_token_fails(idp: InMemoryIdentityProvider) -> None:
    old = run(idp.sign_in_with_password(EMAIL, PASSWORD))
    run(idp.sign_out(old.access_token))
    with pytest.raises(AuthenticationError):
        run(idp.refresh_session(old.access_token))


# ---- OAuth ----


def test_oauth_code_exchange_checks_pkce(idp: InMemoryIdentityProvider) -> None:
    redirect = idp.authorization_url("Google", "http://app/cb", "state-1")
    assert redirect.url.startswith("memory://identity/authorize?")
    code = idp.issue_authorization_code("state-1", EMAIL)

    session = run(idp.exchange_code(code, redirect.code_verifier))
    assert session.identity.email == EMAIL


def test_oauth_code_is_single_use(idp: InMemoryIdentityProvider) -> None:
    redirect = idp.authorization_url("google", "http://app/cb", "state-1")
    code = idp.issue_authorization_code("state-1", EMAIL)
    run(idp.exchange_code(code, redirect.code_verifier))
    with pytest.raises(AuthenticationError):
        run(idp.exchange_code(code, redirect.code_verifier))


def test_oauth_wrong_verifier_is_rejected(idp: InMemoryIdentityProvider) -> None:
    idp.authorization_url("google", "http://app/cb", "state-1")
    code = idp.issue_authorization_code("state-1", EMAIL)
    with pytest.raises(AuthenticationError, match="PKCE"):
        run(idp.exchange_code(code, pkce_service.generate_code_verifier()))


def test_oauth_state_can_only_be_approved_once(idp: InMemoryIdentityProvider) -> None:
    idp.authorization_url("google", "http://app/cb", "state-1")
    idp.issue_authorization_code("state-1", EMAIL)
    with pytest.raises(AuthenticationError):
        idp.issue_authorization_code("state-1", EMAIL)


def test_unsupported_oauth_provider(idp: InMemoryIdentityProvider) -> None:
    with pytest.raises(AuthenticationError, match="unsupported"):
        idp.authorization_url("github", "http://app/cb", "state-1")


# ---- event bus ----


def test_event_bus_isolates_failing_listeners() -> None:
    bus = AuthEventBus()
    heard: list[str] = []

    async def broken(event: AuthEvent) -> None:
        raise RuntimeError("boom")

    async def healthy(event: AuthEvent) -> None:
        heard.append(event.access_token)

    bus.subscribe(broken)
    unsubscribe = bus.subscribe(healthy)
    run(bus.emit(AuthEvent(AuthEventType.SIGNED_OUT, "tok")))
    assert heard == ["tok"]

    unsubscribe()
    unsubscribe()
    assert bus.listener_count == 1
