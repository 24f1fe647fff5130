from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import (
    TenantScope,
    get_repositories,
    require_capability,
    require_tenant_user,
)
from app.api.schemas import PatchIn
from app.core.errors import EntityValidationError, RecordNotFoundError
from app.models.team import PositionAssignment, Team, TeamPosition
from app.repos.registry import Repositories

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/teams", tags=["teams"])

Repos = Annotated[Repositories, Depends(get_repositories)]
Member = Annotated[TenantScope, Depends(require_tenant_user)]
Coordinator = Annotated[
    TenantScope, Depends(require_capability("is_admin", "can_organize_events"))
]


class TeamIn(BaseModel):
    name: str
    description: str | None = None


class TeamUpdateIn(PatchIn):
    not_null = frozenset({"name"})

    name: str | None = None
    description: str | None = None


class TeamOut(TeamIn):
    id: int
    organization_id: int


class PositionOut(TeamIn):
    id: int
    organization_team_id: int


class AssignmentIn(BaseModel):
    application_user_id: int


class AssignmentOut(BaseModel):
    id: int
    application_user_id: int
    team_position_id: int


def _team_out(t: Team) -> TeamOut:
    return TeamOut(
        id=t.id, organization_id=t.organization_id, name=t.name, description=t.description
    )


def _position_out(p: TeamPosition) -> PositionOut:
    return PositionOut(
        id=p.id,
        organization_team_id=p.organization_team_id,
        name=p.name,
        description=p.description,
    )


def _assignment_out(a: PositionAssignment) -> AssignmentOut:
    return AssignmentOut(
        id=a.id,
        application_user_id=a.application_user_id,
        team_position_id=a.team_position_id,
    )


def _renamed(changes: dict, what: str) -> dict:
    if not changes:
        raise EntityValidationError("no fields to update")
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise EntityValidationError(f"{what} name is required")
    return changes


async def _team(repos: Repositories, scope: TenantScope, team_id: int) -> Team:
    team = await repos.teams.get_team(team_id)
    if team is None:
        raise RecordNotFoundError("team not found")
    scope.ensure_owns(team.organization_id, "team")
    return team


async def _position(
    repos: Repositories, scope: TenantScope, team_id: int, position_id: int
) -> TeamPosition:
    await _team(repos, scope, team_id)
    position = await repos.teams.get_position(position_id)
    if position is None or position.organization_team_id != team_id:
        raise RecordNotFoundError("position not found")
    return position


# --- teams ---


@router.get("", response_model=list[TeamOut])
async def list_teams(scope: Member, repos: Repos) -> list[TeamOut]:
    teams = await repos.teams.list_by_organization(scope.organization_id)
    return [_team_out(t) for t in teams]


@router.post("", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
async def create_team(payload: TeamIn, scope: Coordinator, repos: Repos) -> TeamOut:
    draft = Team.new(organization_id=scope.organization_id, **payload.model_dump())
    return _team_out(await repos.teams.add_team(draft))


@router.get("/{team_id}", response_model=TeamOut)
async def get_team(team_id: int, scope: Member, repos: Repos) -> TeamOut:
    return _team_out(await _team(repos, scope, team_id))


@router.patch("/{team_id}", response_model=TeamOut)
async def update_team(
    team_id: int, payload: TeamUpdateIn, scope: Coordinator, repos: Repos
) -> TeamOut:
    await _team(repos, scope, team_id)
    changes = _renamed(payload.changes(), "team")
    updated = await repos.teams.update_team(team_id, **changes)
    if updated is None:
        raise RecordNotFoundError("team not found")
    return _team_out(updated)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(team_id: int, scope: Coordinator, repos: Repos) -> None:
    await _team(repos, scope, team_id)
    await repos.teams.delete_team(team_id)


# --- positions ---


@router.get("/{team_id}/positions", response_model=list[PositionOut])
async def list_positions(
    team_id: int, scope: Member, repos: Repos
) -> list[PositionOut]:
    await _team(repos, scope, team_id)
    return [_position_out(p) for p in await repos.teams.list_positions(team_id)]


@router.post(
    "/{team_id}/positions",
    response_model=PositionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_position(
    team_id: int, payload: TeamIn, scope: Coordinator, repos: Repos
) -> PositionOut:
    await _team(repos, scope, team_id)
    draft = TeamPosition.new(organization_team_id=team_id, **payload.model_dump())
    return _position_out(await repos.teams.add_position(draft))


@router.patch("/{team_id}/positions/{position_id}", response_model=PositionOut)
async def update_position(
    team_id: int,
    position_id: int,
    payload: TeamUpdateIn,
    scope: Coordinator,
    repos: Repos,
) -> PositionOut:
    await _position(repos, scope, team_id, position_id)
    changes = _renamed(payload.changes(), "position")
    updated = await repos.teams.update_position(position_id, **changes)
    if updated is None:
        raise RecordNotFoundError("position not found")
    return _position_out(updated)


@router.delete(
    "/{team_id}/positions/{position_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_position(
    team_id: int, position_id: int, scope: Coordinator, repos: Repos
) -> None:
    await _position(repos, scope, team_id, position_id)
    await repos.teams.delete_position(position_id)


# --- assignments ---


@router.get(
    "/{team_id}/positions/{position_id}/assignments",
    response_model=list[AssignmentOut],
)
async def list_assignments(
    team_id: int, position_id: int, scope: Member, repos: Repos
) -> list[AssignmentOut]:
    await _position(repos, scope, team_id, position_id)
    return [_assignment_out(a) for a in await repos.teams.list_assignments(position_id)]


@router.post(
    "/{team_id}/positions/{position_id}/assignments",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def assign(
    team_id: int,
    position_id: int,
    payload: AssignmentIn,
    scope: Coordinator,
    repos: Repos,
) -> AssignmentOut:
    await _position(repos, scope, team_id, position_id)
    member = await repos.users.get_by_id(payload.application_user_id)
    if member is None:
        raise RecordNotFoundError("user not found")
    scope.ensure_owns(member.organization_id, "user")
    assignment = await repos.teams.assign(member.id, position_id)
    logger.info(
        "Position assigned  position_id=%s user_id=%s", position_id, member.id
    )
    return _assignment_out(assignment)


@router.delete(
    "/{team_id}/positions/{position_id}/assignments/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unassign(
    team_id: int, position_id: int, user_id: int, scope: Coordinator, repos: Repos
) -> None:
    await _position(repos, scope, team_id, position_id)
    if not await repos.teams.unassign(user_id, position_id):
        raise RecordNotFoundError("assignment not found")
