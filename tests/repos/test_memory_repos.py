from __future__ import annotations

from datetime import date

import pytest

from app.core.errors import DuplicateRecordError, EntityValidationError
from app.models.event import Event, EventBlock, EventSchedule
from app.models.organization import Organization, SubscriptionPlan
from app.models.team import Team, TeamPosition
from app.models.user import ApplicationUser
from app.repos.memory_table import InMemoryTable, contains_ci
from app.repos.registry import Repositories, memory_repositories
from tests.conftest import run


@pytest.fixture
def repos() -> Repositories:
    return memory_repositories()


def _user(org_id: int | None, email: str) -> ApplicationUser:
    return ApplicationUser.new(email=email, name="Member", organization_id=org_id)


# ---- table ----


def test_insert_assigns_serial_ids_and_stamps() -> None:
    table: InMemoryTable[Organization] = InMemoryTable()
    first = table.insert(Organization.new(name="A"))
    second = table.insert(Organization.new(name="B"))
    assert (first.id, second.id) == (1, 2)
    assert first.created_at is not None
    assert first.created_at == first.updated_at


def test_update_refreshes_updated_at_and_rejects_immutable_fields() -> None:
    table: InMemoryTable[Organization] = InMemoryTable()
    org = table.insert(Organization.new(name="A"))
    updated = table.update(org.id, {"name": "B"})
    assert updated is not None
    assert updated.name == "B"
    assert updated.created_at == org.created_at
    assert updated.updated_at >= org.updated_at

    with pytest.raises(EntityValidationError):
        table.update(org.id, {"id": 99})
    with pytest.raises(EntityValidationError):
        table.update(org.id, {"colour": "red"})
    assert table.update(404, {"name": "C"}) is None


def test_contains_ci() -> None:
    assert contains_ci("Amazing Grace", "grace")
    assert not contains_ci(None, "grace")


# ---- transactions ----


def test_transaction_rolls_back_every_table(repos: Repositories) -> None:
    kept = run(repos.organizations.add(Organization.new(name="Kept")))

    async def failing() -> None:
        async with repos.transaction():
            org = await repos.organizations.add(Organization.new(name="Lost"))
            await repos.users.add(_user(org.id, "lost@x.org"))
            await repos.organizations.update(kept.id, name="Changed")
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run(failing())

    assert [o.name for o in run(repos.organizations.list_all())] == ["Kept"]
    assert run(repos.users.list_all()) == []
    # Ids are not burned by the rolled-back insert.
    assert run(repos.organizations.add(Organization.new(name="Next"))).id == 2


def test_transaction_commits_on_success(repos: Repositories) -> None:
    async def ok() -> None:
        async with repos.transaction():
            await repos.organizations.add(Organization.new(name="Kept"))

    run(ok())
    assert len(run(repos.organizations.list_all())) == 1


# ---- users ----


def test_email_is_unique_and_case_insensitive(repos: Repositories) -> None:
    run(repos.users.add(_user(1, "ana@x.org")))
    with pytest.raises(DuplicateRecordError):
        run(repos.users.add(_user(2, "ANA@x.org")))
    found = run(repos.users.get_by_email("  Ana@X.org "))
    assert found is not None


def test_update_normalizes_and_guards_email(repos: Repositories) -> None:
    ana = run(repos.users.add(_user(1, "ana@x.org")))
    run(repos.users.add(_user(1, "bia@x.org")))
    assert run(repos.users.update(ana.id, email=" ANA2@x.org ")).email == "ana2@x.org"
    with pytest.raises(DuplicateRecordError):
        run(repos.users.update(ana.id, email="bia@x.org"))


def test_pending_and_counts(repos: Repositories) -> None:
    waiting = run(repos.users.add(_user(1, "a@x.org")))
    run(repos.users.add(_user(2, "b@x.org")))
    assert run(repos.users.count_by_organization(1)) == 1
    assert len(run(repos.users.list_pending())) == 2
    run(repos.users.approve(waiting.id))
    assert [u.email for u in run(repos.users.list_pending())] == ["b@x.org"]


def test_user_delete_cascades_to_assignments_and_blocks(repos: Repositories) -> None:
    ana = run(repos.users.add(_user(1, "ana@x.org")))
    bia = run(repos.users.add(_user(1, "bia@x.org")))
    team = run(repos.teams.add_team(Team.new(organization_id=1, name="Worship")))
    vocals = run(
        repos.teams.add_position(TeamPosition.new(organization_team_id=team.id, name="Vocals"))
    )
    run(repos.teams.assign(ana.id, vocals.id))
    run(repos.teams.assign(bia.id, vocals.id))
    event = run(
        repos.events.add(Event.new(organization_id=1, title="Camp", start_date=date(2026, 7, 1)))
    )
    for user in (ana, bia):
        run(
            repos.events.add_block(
                EventBlock.new(
                    event_id=event.id, application_user_id=user.id, start_date=date(2026, 7, 1)
                )
            )
        )

    assert run(repos.users.delete(ana.id)) is True

    assert run(repos.teams.list_user_assignments(ana.id)) == []
    assert [a.application_user_id for a in run(repos.teams.list_assignments(vocals.id))] == [
        bia.id
    ]
    assert [b.application_user_id for b in run(repos.events.list_blocks(event.id))] == [bia.id]
    assert run(repos.users.delete(ana.id)) is False


def test_user_delete_cascade_rolls_back_with_the_transaction(repos: Repositories) -> None:
    ana = run(repos.users.add(_user(1, "ana@x.org")))
    team = run(repos.teams.add_team(Team.new(organization_id=1, name="Worship")))
    vocals = run(
        repos.teams.add_position(TeamPosition.new(organization_team_id=team.id, name="Vocals"))
    )
    run(repos.teams.assign(ana.id, vocals.id))

    async def delete_then_fail() -> None:
        async with repos.transaction():
            await repos.users.delete(ana.id)
            raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        run(delete_then_fail())
    assert run(repos.users.get_by_id(ana.id)) is not None
    assert len(run(repos.teams.list_user_assignments(ana.id))) == 1


# ---- organizations ----


def test_list_by_plan(repos: Repositories) -> None:
    run(repos.organizations.add(Organization.new(name="A")))
    run(repos.organizations.add(Organization.new(name="B", subscription_plan="Premium")))
    premium = run(repos.organizations.list_by_plan(SubscriptionPlan.PREMIUM))
    assert [o.name for o in premium] == ["B"]


# ---- events ----


def test_event_delete_cascades_to_children(repos: Repositories) -> None:
    event = run(
        repos.events.add(Event.new(organization_id=1, title="Camp", start_date=date(2026, 7, 1)))
    )
    schedule = run(
        repos.events.add_schedule(EventSchedule.new(event_id=event.id, date=date(2026, 7, 1)))
    )
    block = run(
        repos.events.add_block(
            EventBlock.new(event_id=event.id, application_user_id=5, start_date=date(2026, 7, 1))
        )
    )
    assert run(repos.events.delete(event.id)) is True
    assert run(repos.events.get_schedule(schedule.id)) is None
    assert run(repos.events.get_block(block.id)) is None
    assert run(repos.events.delete(event.id)) is False


def test_models_validate_on_construction() -> None:
    with pytest.raises(EntityValidationError):
        Event.new(organization_id=1, title="X", start_date=date(2026, 2, 2), end_date=date(2026, 2, 1))
    with pytest.raises(EntityValidationError):
        Organization.new(name="X", max_users=0)
    with pytest.raises(EntityValidationError):
        ApplicationUser.new(email="x@y.org", name=" ", organization_id=1)
