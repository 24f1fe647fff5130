from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import OWNER_EMAIL, add_member, seed_org, signed_in


@pytest.fixture
def owner() -> TestClient:
    seed_org(max_users=3)
    return signed_in(OWNER_EMAIL)


def _invite(client: TestClient, email: str, **extra):
    return client.post("/v1/users", json={"email": email, "name": "Invitee", **extra})


def test_invite_creates_pending_member(owner: TestClient) -> None:
    resp = _invite(owner, "Singer@Example.com", can_manage_media=True)
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "singer@example.com"
    assert body["pending"] is True
    assert body["can_manage_media"] is True
    assert len(owner.get("/v1/users").json()) == 2


def test_invite_duplicate_is_409(owner: TestClient) -> None:
    assert _invite(owner, OWNER_EMAIL).status_code == 409


def test_invite_bad_email_is_422(owner: TestClient) -> None:
    assert _invite(owner, "nobody").status_code == 422


def test_invite_past_the_user_limit_is_409(owner: TestClient) -> None:
    assert _invite(owner, "a@example.com").status_code == 201
    assert _invite(owner, "b@example.com").status_code == 201
    resp = _invite(owner, "c@example.com")
    assert resp.status_code == 409
    assert resp.json()["error"] == "limit_exceeded"


def test_get_user(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.get(f"/v1/users/{user_id}").json()["email"] == "a@example.com"
    assert owner.get("/v1/users/999").status_code == 404


def test_admin_updates_capabilities(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    resp = owner.patch(
        f"/v1/users/{user_id}", json={"can_organize_events": True, "name": " Ana "}
    )
    assert resp.status_code == 200
    assert resp.json()["can_organize_events"] is True
    assert resp.json()["name"] == "Ana"


def test_admin_update_rejects_blank_name_and_empty_body(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.patch(f"/v1/users/{user_id}", json={"name": "  "}).status_code == 422
    assert owner.patch(f"/v1/users/{user_id}", json={}).status_code == 422


def test_admin_update_rejects_taken_email(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.patch(f"/v1/users/{user_id}", json={"email": OWNER_EMAIL}).status_code == 409


def test_approve_member(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.post(f"/v1/users/{user_id}/approve").json()["pending"] is False


def test_delete_member(owner: TestClient) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.delete(f"/v1/users/{user_id}").status_code == 204
    assert owner.get(f"/v1/users/{user_id}").status_code == 404


def test_owner_cannot_be_deleted() -> None:
    org, owner_user = seed_org()
    add_member(org.id, "admin2@example.com", is_admin=True)
    admin2 = signed_in("admin2@example.com")
    resp = admin2.delete(f"/v1/users/{owner_user.id}")
    assert resp.status_code == 403


def test_member_edits_own_profile() -> None:
    org, _ = seed_org()
    add_member(org.id, "member@example.com")
    member = signed_in("member@example.com")
    resp = member.patch(
        "/v1/users/me",
        json={"phone_number": "555-0101", "country_dial_code": "+1", "birth_date": "1990-04-02"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["phone_number"] == "555-0101"
    assert body["birth_date"] == "1990-04-02"


def test_profile_edit_cannot_grant_capabilities() -> None:
    org, _ = seed_org()
    add_member(org.id, "member@example.com")
    member = signed_in("member@example.com")
    resp = member.patch("/v1/users/me", json={"is_admin": True, "name": "Sneaky"})
    assert resp.status_code == 200
    assert resp.json()["is_admin"] is False
    assert resp.json()["name"] == "Sneaky"


@pytest.mark.parametrize(
    "field",
    ["name", "email", "is_admin", "can_add_people", "receive_cancel_event_notification"],
)
def test_admin_update_rejects_null_for_required_fields(owner: TestClient, field: str) -> None:
    user_id = _invite(owner, "a@example.com").json()["id"]
    assert owner.patch(f"/v1/users/{user_id}", json={field: None}).status_code == 422
    assert owner.get("/v1/users").status_code == 200


def test_profile_edit_with_null_flag_leaves_the_profile_intact() -> None:
    org, _ = seed_org()
    add_member(org.id, "member@example.com")
    member = signed_in("member@example.com")
    resp = member.patch("/v1/users/me", json={"receive_cancel_event_notification": None})
    assert resp.status_code == 422

    assert member.get("/v1/users").status_code == 200
    signed_in("member@example.com")


def test_profile_edit_may_clear_optional_contact_fields() -> None:
    org, _ = seed_org()
    add_member(org.id, "member@example.com")
    member = signed_in("member@example.com")
    member.patch("/v1/users/me", json={"phone_number": "555-0101"})
    resp = member.patch("/v1/users/me", json={"phone_number": None})
    assert resp.status_code == 200
    assert resp.json()["phone_number"] is None
