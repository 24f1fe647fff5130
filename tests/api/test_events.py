from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from tests.conftest import OWNER_EMAIL, add_member, seed_org, signed_in


@pytest.fixture
def owner() -> TestClient:
    seed_org()
    return signed_in(OWNER_EMAIL)


def _event(client: TestClient, title: str = "Sunday Service", start: str = "2026-03-01", **extra):
    resp = client.post("/v1/events", json={"title": title, "start_date": start, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---- events ----


def test_create_records_the_creator(owner: TestClient) -> None:
    me = owner.get("/auth/session").json()["user"]["id"]
    body = _event(owner, location="Main Hall", start_time="10:30:00")
    assert body["created_by"] == me
    assert body["status"] == "Scheduled"
    assert body["start_time"] == "10:30:00"


def test_create_validates_dates_and_title(owner: TestClient) -> None:
    bad_range = {"title": "Camp", "start_date": "2026-07-10", "end_date": "2026-07-01"}
    assert owner.post("/v1/events", json=bad_range).status_code == 422
    blank = {"title": "  ", "start_date": "2026-07-10"}
    assert owner.post("/v1/events", json=blank).status_code == 422


def test_list_is_latest_first(owner: TestClient) -> None:
    _event(owner, "Early", "2026-01-01")
    _event(owner, "Late", "2026-12-01")
    assert [e["title"] for e in owner.get("/v1/events").json()] == ["Late", "Early"]


def test_filter_by_status(owner: TestClient) -> None:
    _event(owner, "On", status="Scheduled")
    _event(owner, "Off", status="Cancelled")
    cancelled = owner.get("/v1/events", params={"status": "Cancelled"}).json()
    assert [e["title"] for e in cancelled] == ["Off"]
    assert owner.get("/v1/events", params={"status": "Postponed"}).status_code == 422


def test_upcoming_lists_future_scheduled_events_soonest_first(owner: TestClient) -> None:
    today = datetime.now(UTC).date()
    _event(owner, "Past", str(today - timedelta(days=3)))
    _event(owner, "Later", str(today + timedelta(days=10)))
    _event(owner, "Soon", str(today + timedelta(days=1)))
    _event(owner, "Called off", str(today + timedelta(days=2)), status="Cancelled")
    upcoming = owner.get("/v1/events", params={"upcoming": True}).json()
    assert [e["title"] for e in upcoming] == ["Soon", "Later"]


def test_date_range(owner: TestClient) -> None:
    _event(owner, "Jan", "2026-01-15")
    _event(owner, "Feb", "2026-02-15")
    _event(owner, "Mar", "2026-03-15")
    ranged = owner.get("/v1/events", params={"start": "2026-02-01", "end": "2026-03-31"}).json()
    assert [e["title"] for e in ranged] == ["Feb", "Mar"]
    assert owner.get("/v1/events", params={"start": "2026-02-01"}).status_code == 422
    inverted = {"start": "2026-03-01", "end": "2026-02-01"}
    assert owner.get("/v1/events", params=inverted).status_code == 422


def test_update_and_delete(owner: TestClient) -> None:
    event_id = _event(owner)["id"]
    resp = owner.patch(f"/v1/events/{event_id}", json={"status": "Completed", "title": "Done"})
    assert resp.json()["status"] == "Completed"
    assert resp.json()["title"] == "Done"

    bad = owner.patch(f"/v1/events/{event_id}", json={"end_date": "2020-01-01"})
    assert bad.status_code == 422

    assert owner.delete(f"/v1/events/{event_id}").status_code == 204
    assert owner.get(f"/v1/events/{event_id}").status_code == 404


# ---- schedules ----


def test_schedule_lifecycle(owner: TestClient) -> None:
    event_id = _event(owner, "Conference")["id"]
    base = f"/v1/events/{event_id}/schedules"
    day2 = owner.post(base, json={"date": "2026-03-02", "start_time": "09:00:00"}).json()
    owner.post(base, json={"date": "2026-03-01", "description": "Opening"})

    assert [s["date"] for s in owner.get(base).json()] == ["2026-03-01", "2026-03-02"]

    resp = owner.put(
        f"{base}/{day2['id']}",
        json={"date": "2026-03-03", "start_time": "10:00:00", "end_time": "12:00:00"},
    )
    assert resp.json()["date"] == "2026-03-03"
    assert owner.delete(f"{base}/{day2['id']}").status_code == 204
    assert len(owner.get(base).json()) == 1


def test_schedule_rejects_inverted_times(owner: TestClient) -> None:
    event_id = _event(owner)["id"]
    resp = owner.post(
        f"/v1/events/{event_id}/schedules",
        json={"date": "2026-03-01", "start_time": "12:00:00", "end_time": "09:00:00"},
    )
    assert resp.status_code == 422


def test_schedule_of_another_event_is_not_found(owner: TestClient) -> None:
    first = _event(owner, "First")["id"]
    second = _event(owner, "Second")["id"]
    schedule = owner.post(f"/v1/events/{first}/schedules", json={"date": "2026-03-01"}).json()
    resp = owner.delete(f"/v1/events/{second}/schedules/{schedule['id']}")
    assert resp.status_code == 404


def test_deleting_an_event_removes_its_schedules(owner: TestClient) -> None:
    event_id = _event(owner)["id"]
    owner.post(f"/v1/events/{event_id}/schedules", json={"date": "2026-03-01"})
    owner.delete(f"/v1/events/{event_id}")
    assert owner.get(f"/v1/events/{event_id}/schedules").status_code == 404


# ---- blocks ----


def test_member_blocks_own_dates_only() -> None:
    org, owner_user = seed_org()
    member = add_member(org.id, "member@example.com")
    owner = signed_in(OWNER_EMAIL)
    event_id = _event(owner)["id"]
    client = signed_in("member@example.com")
    base = f"/v1/events/{event_id}/blocks"

    own = client.post(base, json={"application_user_id": member.id, "start_date": "2026-03-01"})
    assert own.status_code == 201
    assert own.json()["end_date"] == "2026-03-01"

    other = client.post(base, json={"application_user_id": owner_user.id, "start_date": "2026-03-01"})
    assert other.status_code == 403


def test_organizer_blocks_and_edits_for_anyone() -> None:
    org, _ = seed_org()
    member = add_member(org.id, "member@example.com")
    owner = signed_in(OWNER_EMAIL)
    event_id = _event(owner)["id"]
    base = f"/v1/events/{event_id}/blocks"

    block = owner.post(
        base,
        json={
            "application_user_id": member.id,
            "start_date": "2026-03-01",
            "end_date": "2026-03-05",
            "reason": "Travel",
        },
    ).json()
    resp = owner.put(
        f"{base}/{block['id']}",
        json={"application_user_id": member.id, "start_date": "2026-03-02", "end_date": "2026-03-04"},
    )
    assert resp.status_code == 200
    assert (resp.json()["start_date"], resp.json()["end_date"]) == ("2026-03-02", "2026-03-04")

    inverted = {"application_user_id": member.id, "start_date": "2026-03-09", "end_date": "2026-03-01"}
    assert owner.put(f"{base}/{block['id']}", json=inverted).status_code == 422

    assert owner.delete(f"{base}/{block['id']}").status_code == 204
    assert owner.get(base).json() == []


def test_block_for_unknown_member_is_not_found(owner: TestClient) -> None:
    event_id = _event(owner)["id"]
    resp = owner.post(
        f"/v1/events/{event_id}/blocks",
        json={"application_user_id": 999, "start_date": "2026-03-01"},
    )
    assert resp.status_code == 404


@pytest.mark.parametrize("field", ["title", "start_date", "status"])
def test_update_rejects_null_for_required_fields(owner: TestClient, field: str) -> None:
    event_id = _event(owner)["id"]
    assert owner.patch(f"/v1/events/{event_id}", json={field: None}).status_code == 422
    assert owner.get(f"/v1/events/{event_id}").json()["title"] == "Sunday Service"


def test_update_may_clear_optional_fields(owner: TestClient) -> None:
    event_id = _event(owner, location="Main Hall")["id"]
    resp = owner.patch(f"/v1/events/{event_id}", json={"location": None})
    assert resp.status_code == 200
    assert resp.json()["location"] is None
