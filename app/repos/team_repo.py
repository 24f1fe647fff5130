from __future__ import annotations

from typing import Any, Protocol

from app.core.errors import DuplicateRecordError
from app.models.team import PositionAssignment, Team, TeamPosition
from app.repos.memory_table import InMemoryTable, TableBackedRepo, newest_first


class TeamRepo(Protocol):
    async def list_by_organization(self, org_id: int) -> list[Team]: ...
    async def get_team(self, team_id: int) -> Team | None: ...
    async def add_team(self, team: Team) -> Team: ...
    async def update_team(self, team_id: int, **changes: Any) -> Team | None: ...
    async def delete_team(self, team_id: int) -> bool: ...

    async def list_positions(self, team_id: int) -> list[TeamPosition]: ...
    async def get_position(self, position_id: int) -> TeamPosition | None: ...
    async def add_position(self, position: TeamPosition) -> TeamPosition: ...
    async def update_position(
        self, position_id: int, **changes: Any
    ) -> TeamPosition | None: ...
    async def delete_position(self, position_id: int) -> bool: ...

    async def list_assignments(self, position_id: int) -> list[PositionAssignment]: ...
    async def list_user_assignments(self, user_id: int) -> list[PositionAssignment]: ...
    async def assign(self, user_id: int, position_id: int) -> PositionAssignment: ...
    async def unassign(self, user_id: int, position_id: int) -> bool: ...


class InMemoryTeamRepo(TableBackedRepo):
    def __init__(self) -> None:
        self._teams: InMemoryTable[Team] = InMemoryTable()
        self._positions: InMemoryTable[TeamPosition] = InMemoryTable()
        self._assignments: InMemoryTable[PositionAssignment] = InMemoryTable()

    # --- teams ---

    async def list_by_organization(self, org_id: int) -> list[Team]:
        return newest_first(
            [t for t in self._teams.values() if t.organization_id == org_id]
        )

    async def get_team(self, team_id: int) -> Team | None:
        return self._teams.get(team_id)

    async def add_team(self, team: Team) -> Team:
        return self._teams.insert(team)

    async def update_team(self, team_id: int, **changes: Any) -> Team | None:
        return self._teams.update(team_id, changes)

    async def delete_team(self, team_id: int) -> bool:
        if not self._teams.delete(team_id):
            return False
        for p in self._positions.values():
            if p.organization_team_id == team_id:
                await self.delete_position(p.id)
        return True

    # --- positions ---

    async def list_positions(self, team_id: int) -> list[TeamPosition]:
        return newest_first(
            [p for p in self._positions.values() if p.organization_team_id == team_id]
        )

    async def get_position(self, position_id: int) -> TeamPosition | None:
        return self._positions.get(position_id)

    async def add_position(self, position: TeamPosition) -> TeamPosition:
        return self._positions.insert(position)

    async def update_position(
        self, position_id: int, **changes: Any
    ) -> TeamPosition | None:
        return self._positions.update(position_id, changes)

    async def delete_position(self, position_id: int) -> bool:
        if not self._positions.delete(position_id):
            return False
        for a in self._assignments.values():
            if a.team_position_id == position_id:
                self._assignments.delete(a.id)
        return True

    # --- assignments ---

    async def list_assignments(self, position_id: int) -> list[PositionAssignment]:
        return [a for a in self._assignments.values() if a.team_position_id == position_id]

    async def list_user_assignments(self, user_id: int) -> list[PositionAssignment]:
        return [a for a in self._assignments.values() if a.application_user_id == user_id]

    async def assign(self, user_id: int, position_id: int) -> PositionAssignment:
        for a in await self.list_assignments(position_id):
            if a.application_user_id == user_id:
                raise DuplicateRecordError("user already holds this position")
        return self._assignments.insert(
            PositionAssignment(
                id=0, application_user_id=user_id, team_position_id=position_id
            )
        )

    async def unassign(self, user_id: int, position_id: int) -> bool:
        for a in await self.list_assignments(position_id):
            if a.application_user_id == user_id:
                return self._assignments.delete(a.id)
        return False

    def forget_user(self, user_id: int) -> None:
        for a in self._assignments.values():
            if a.application_user_id == user_id:
                self._assignments.delete(a.id)
