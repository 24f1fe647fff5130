"""Tenant scoping: every row a tenant user can reach belongs to its organization."""

from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.models.event import Event
from app.models.file import StoredFile
from app.models.music import Music
from app.models.team import Team
from app.repos.registry import memory_store
from tests.conftest import (
    OWNER_EMAIL,
    SUPER_ADMIN_EMAIL,
    register_super_admin,
    run,
    seed_org,
    signed_in,
)

OTHER_OWNER = "elder@other.org"


@pytest.fixture
def two_tenants():
    mine, _ = seed_org("Grace Chapel", OWNER_EMAIL)
    theirs, _ = seed_org("Other Church", OTHER_OWNER)
    event = run(
        memory_store.events.add(
            Event.new(organization_id=theirs.id, title="Their Retreat", start_date=date(2026, 5, 1))
        )
    )
    song = run(memory_store.music.add(Music.new(organization_id=theirs.id, title="Their Song")))
    stored = run(
        memory_store.files.add(
            StoredFile.new(
                organization_id=theirs.id,
                name="plan.pdf",
                file_type="pdf",
                size=10,
                url="https://cdn/plan.pdf",
            )
        )
    )
    team = run(memory_store.teams.add_team(Team.new(organization_id=theirs.id, name="Ushers")))
    return mine, theirs, {"events": event.id, "music": song.id, "files": stored.id, "teams": team.id}


@pytest.mark.parametrize("resource", ["events", "music", "files", "teams"])
def test_foreign_rows_are_not_found(two_tenants, resource: str) -> None:
    _, _, ids = two_tenants
    owner = signed_in(OWNER_EMAIL)
    resp = owner.get(f"/v1/{resource}/{ids[resource]}")
    assert resp.status_code == 404


@pytest.mark.parametrize("resource", ["events", "music", "files", "teams"])
def test_foreign_rows_cannot_be_deleted(two_tenants, resource: str) -> None:
    _, _, ids = two_tenants
    owner = signed_in(OWNER_EMAIL)
    assert owner.delete(f"/v1/{resource}/{ids[resource]}").status_code == 404
    other = signed_in(OTHER_OWNER)
    assert other.get(f"/v1/{resource}/{ids[resource]}").status_code == 200


@pytest.mark.parametrize("resource", ["events", "music", "files", "teams", "users"])
def test_lists_only_show_the_callers_organization(two_tenants, resource: str) -> None:
    mine, _, _ = two_tenants
    owner = signed_in(OWNER_EMAIL)
    rows = owner.get(f"/v1/{resource}").json()
    assert all(r["organization_id"] == mine.id for r in rows)


def test_foreign_user_is_not_found(two_tenants) -> None:
    elder = run(memory_store.users.get_by_email(OTHER_OWNER))
    owner = signed_in(OWNER_EMAIL)
    assert owner.get(f"/v1/users/{elder.id}").status_code == 404
    assert owner.delete(f"/v1/users/{elder.id}").status_code == 404


def test_tenant_cannot_pick_another_organization(two_tenants) -> None:
    mine, theirs, _ = two_tenants
    owner = signed_in(OWNER_EMAIL)
    assert owner.get("/v1/events", params={"organization_id": theirs.id}).status_code == 403
    assert owner.get("/v1/events", params={"organization_id": mine.id}).status_code == 200


def test_created_rows_land_in_the_callers_organization(two_tenants) -> None:
    mine, _, _ = two_tenants
    owner = signed_in(OWNER_EMAIL)
    resp = owner.post("/v1/music", json={"title": "Amazing Grace"})
    assert resp.status_code == 201
    assert resp.json()["organization_id"] == mine.id


def test_cannot_assign_a_foreign_member(two_tenants) -> None:
    elder = run(memory_store.users.get_by_email(OTHER_OWNER))
    owner = signed_in(OWNER_EMAIL)
    team_id = owner.post("/v1/teams", json={"name": "Worship"}).json()["id"]
    position_id = owner.post(f"/v1/teams/{team_id}/positions", json={"name": "Bass"}).json()["id"]
    resp = owner.post(
        f"/v1/teams/{team_id}/positions/{position_id}/assignments",
        json={"application_user_id": elder.id},
    )
    assert resp.status_code == 404


# ---- super-admin scope ----


def test_super_admin_must_name_an_organization(two_tenants) -> None:
    register_super_admin()
    root = signed_in(SUPER_ADMIN_EMAIL)
    resp = root.get("/v1/events")
    assert resp.status_code == 422
    assert "organization_id" in resp.json()["detail"]


def test_super_admin_can_work_inside_any_organization(two_tenants) -> None:
    _, theirs, ids = two_tenants
    register_super_admin()
    root = signed_in(SUPER_ADMIN_EMAIL)
    scoped = {"organization_id": theirs.id}

    events = root.get("/v1/events", params=scoped).json()
    assert [e["id"] for e in events] == [ids["events"]]

    created = root.post("/v1/music", params=scoped, json={"title": "Doxology"})
    assert created.status_code == 201
    assert created.json()["organization_id"] == theirs.id


def test_super_admin_with_unknown_organization_is_404(two_tenants) -> None:
    register_super_admin()
    root = signed_in(SUPER_ADMIN_EMAIL)
    assert root.get("/v1/events", params={"organization_id": 999}).status_code == 404


def test_super_admin_has_no_stored_profile(two_tenants) -> None:
    _, theirs, _ = two_tenants
    register_super_admin()
    root = signed_in(SUPER_ADMIN_EMAIL)
    resp = root.patch(
        "/v1/users/me", params={"organization_id": theirs.id}, json={"name": "Root"}
    )
    assert resp.status_code == 403
