"""PostgreSQL implementation of TeamRepo (teams, positions, assignments)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    OrganizationTeamPositionRow,
    OrganizationTeamRow,
    TeamPositionRow,
)
from app.models.team import PositionAssignment, Team, TeamPosition
from app.repos.pg_common import delete_row, update_row
from app.repos.store_errors import translate_store_errors


@translate_store_errors
class PgTeamRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- teams ---

    async def list_by_organization(self, org_id: int) -> list[Team]:
        stmt = (
            select(OrganizationTeamRow)
            .where(OrganizationTeamRow.organization_id == org_id)
            .order_by(OrganizationTeamRow.created_at.desc(), OrganizationTeamRow.id.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_team(r) for r in rows]

    async def get_team(self, team_id: int) -> Team | None:
        row = await self._session.get(OrganizationTeamRow, team_id)
        return _row_to_team(row) if row is not None else None

    async def add_team(self, team: Team) -> Team:
        row = OrganizationTeamRow(
            organization_id=team.organization_id,
            name=team.name,
            description=team.description,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_team(row)

    async def update_team(self, team_id: int, **changes: Any) -> Team | None:
        row = await update_row(self._session, OrganizationTeamRow, team_id, changes)
        return _row_to_team(row) if row is not None else None

    async def delete_team(self, team_id: int) -> bool:
        return await delete_row(self._session, OrganizationTeamRow, team_id)

    # --- positions ---

    async def list_positions(self, team_id: int) -> list[TeamPosition]:
        stmt = (
            select(TeamPositionRow)
            .where(TeamPositionRow.organization_team_id == team_id)
            .order_by(TeamPositionRow.created_at.desc(), TeamPositionRow.id.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_position(r) for r in rows]

    async def get_position(self, position_id: int) -> TeamPosition | None:
        row = await self._session.get(TeamPositionRow, position_id)
        return _row_to_position(row) if row is not None else None

    async def add_position(self, position: TeamPosition) -> TeamPosition:
        row = TeamPositionRow(
            organization_team_id=position.organization_team_id,
            name=position.name,
            description=position.description,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_position(row)

    async def update_position(
        self, position_id: int, **changes: Any
    ) -> TeamPosition | None:
        row = await update_row(self._session, TeamPositionRow, position_id, changes)
        return _row_to_position(row) if row is not None else None

    async def delete_position(self, position_id: int) -> bool:
        return await delete_row(self._session, TeamPositionRow, position_id)

    # --- assignments ---

    async def list_assignments(self, position_id: int) -> list[PositionAssignment]:
        stmt = (
            select(OrganizationTeamPositionRow)
            .where(OrganizationTeamPositionRow.team_position_id == position_id)
            .order_by(OrganizationTeamPositionRow.id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]

    async def list_user_assignments(self, user_id: int) -> list[PositionAssignment]:
        stmt = (
            select(OrganizationTeamPositionRow)
            .where(OrganizationTeamPositionRow.application_user_id == user_id)
            .order_by(OrganizationTeamPositionRow.id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]

    async def assign(self, user_id: int, position_id: int) -> PositionAssignment:
        row = OrganizationTeamPositionRow(
            application_user_id=user_id, team_position_id=position_id
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_assignment(row)

    async def unassign(self, user_id: int, position_id: int) -> bool:
        stmt = delete(OrganizationTeamPositionRow).where(
            OrganizationTeamPositionRow.application_user_id == user_id,
            OrganizationTeamPositionRow.team_position_id == position_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[attr-defined]


def _row_to_team(row: OrganizationTeamRow) -> Team:
    return Team(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_position(row: TeamPositionRow) -> TeamPosition:
    return TeamPosition(
        id=row.id,
        organization_team_id=row.organization_team_id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
    )


def _row_to_assignment(row: OrganizationTeamPositionRow) -> PositionAssignment:
    return PositionAssignment(
        id=row.id,
        application_user_id=row.application_user_id,
        team_position_id=row.team_position_id,
        created_at=row.created_at,
    )
