from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.errors import EntityValidationError


def _required_name(name: str, what: str) -> str:
    name = (name or "").strip()
    if not name:
        raise EntityValidationError(f"{what} name is required")
    return name


@dataclass(frozen=True, slots=True)
class Team:
    id: int
    organization_id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def new(
        *, organization_id: int, name: str, description: str | None = None
    ) -> Team:
        return Team(
            id=0,
            organization_id=organization_id,
            name=_required_name(name, "team"),
            description=description,
        )


@dataclass(frozen=True, slots=True)
class TeamPosition:
    """A role within a team, e.g. "Vocals" in the worship team."""

    id: int
    organization_team_id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None

    @staticmethod
    def new(
        *, organization_team_id: int, name: str, description: str | None = None
    ) -> TeamPosition:
        return TeamPosition(
            id=0,
            organization_team_id=organization_team_id,
            name=_required_name(name, "position"),
            description=description,
        )


@dataclass(frozen=True, slots=True)
class PositionAssignment:
    id: int
    application_user_id: int
    team_position_id: int
    created_at: datetime | None = None
