"""Capability guards: effective permissions, checked against a fresh session."""

from __future__ import annotations

import pytest

from app.repos.registry import memory_store
from tests.conftest import OWNER_EMAIL, add_member, run, seed_org, signed_in


@pytest.fixture
def org():
    org, _ = seed_org()
    return org


def test_plain_member_can_read_but_not_write(org) -> None:
    add_member(org.id, "member@example.com")
    member = signed_in("member@example.com")

    assert member.get("/v1/events").status_code == 200
    assert member.get("/v1/music").status_code == 200
    resp = member.post("/v1/events", json={"title": "Picnic", "start_date": "2026-06-01"})
    assert resp.status_code == 403
    assert member.post("/v1/music", json={"title": "Song"}).status_code == 403
    assert member.post("/v1/teams", json={"name": "Choir"}).status_code == 403


@pytest.mark.parametrize(
    ("capability", "path", "payload"),
    [
        ("can_organize_events", "/v1/events", {"title": "Picnic", "start_date": "2026-06-01"}),
        ("can_manage_media", "/v1/music", {"title": "Song"}),
        ("can_organize_events", "/v1/teams", {"name": "Choir"}),
        ("can_add_people", "/v1/users", {"email": "new@example.com", "name": "New"}),
    ],
)
def test_each_capability_unlocks_its_area(org, capability: str, path: str, payload: dict) -> None:
    add_member(org.id, "helper@example.com", **{capability: True})
    helper = signed_in("helper@example.com")
    assert helper.post(path, json=payload).status_code == 201


def test_pending_member_holds_no_capabilities(org) -> None:
    add_member(org.id, "waiting@example.com", pending=True, can_manage_media=True, is_admin=True)
    waiting = signed_in("waiting@example.com")

    session = waiting.get("/auth/session").json()
    assert session["status"] == "tenant_user"
    assert session["user"]["pending"] is True
    assert not any(session["capabilities"].values())
    assert waiting.post("/v1/music", json={"title": "Song"}).status_code == 403
    assert waiting.get("/v1/users").status_code == 200


def test_revoked_capability_is_caught_before_the_write(org) -> None:
    media = add_member(org.id, "media@example.com", can_manage_media=True)
    client = signed_in("media@example.com")
    assert client.post("/v1/music", json={"title": "First"}).status_code == 201

    run(memory_store.users.update(media.id, can_manage_media=False))
    assert client.post("/v1/music", json={"title": "Second"}).status_code == 403
    # The refreshed session is what later reads see.
    assert client.get("/auth/session").json()["capabilities"]["can_manage_media"] is False


def test_removed_user_is_signed_out_on_next_privileged_call(org) -> None:
    media = add_member(org.id, "media@example.com", can_manage_media=True)
    client = signed_in("media@example.com")
    run(memory_store.users.delete(media.id))

    resp = client.post("/v1/music", json={"title": "Song"})
    assert resp.status_code == 403
    assert resp.json()["error"] == "user_not_found"
    assert client.get("/auth/session").json()["status"] == "anonymous"


def test_approval_takes_effect_on_the_next_guarded_call(org) -> None:
    waiting = add_member(org.id, "waiting@example.com", pending=True, can_manage_media=True)
    client = signed_in("waiting@example.com")
    assert client.post("/v1/music", json={"title": "Song"}).status_code == 403

    owner = signed_in(OWNER_EMAIL)
    assert owner.post(f"/v1/users/{waiting.id}/approve").status_code == 200
    assert client.post("/v1/music", json={"title": "Song"}).status_code == 201


def test_adder_cannot_invite_admins(org) -> None:
    add_member(org.id, "adder@example.com", can_add_people=True)
    adder = signed_in("adder@example.com")
    resp = adder.post(
        "/v1/users", json={"email": "boss@example.com", "name": "Boss", "is_admin": True}
    )
    assert resp.status_code == 403


def test_adder_cannot_manage_members(org) -> None:
    add_member(org.id, "adder@example.com", can_add_people=True)
    other = add_member(org.id, "other@example.com")
    adder = signed_in("adder@example.com")
    assert adder.delete(f"/v1/users/{other.id}").status_code == 403
    assert adder.patch(f"/v1/users/{other.id}", json={"name": "X"}).status_code == 403
