"""PostgreSQL implementation of OrganizationRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import OrganizationRow
from app.models.organization import Organization, SubscriptionPlan
from app.repos.pg_common import delete_row, update_row
from app.repos.store_errors import translate_store_errors


@translate_store_errors
class PgOrganizationRepo:
    """Satisfies the OrganizationRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Organization]:
        stmt = select(OrganizationRow).order_by(
            OrganizationRow.created_at.desc(), OrganizationRow.id.desc()
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_org(r) for r in rows]

    async def get_by_id(self, org_id: int) -> Organization | None:
        row = await self._session.get(OrganizationRow, org_id)
        return _row_to_org(row) if row is not None else None

    async def list_by_plan(self, plan: SubscriptionPlan) -> list[Organization]:
        stmt = (
            select(OrganizationRow)
            .where(OrganizationRow.subscription_plan == plan.value)
            .order_by(OrganizationRow.created_at.desc(), OrganizationRow.id.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_org(r) for r in rows]

    async def add(self, org: Organization) -> Organization:
        row = OrganizationRow(
            name=org.name,
            owner_id=org.owner_id,
            subscription_plan=org.subscription_plan.value,
            max_users=org.max_users,
            max_storage_gb=org.max_storage_gb,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_org(row)

    async def update(self, org_id: int, **changes: Any) -> Organization | None:
        if "subscription_plan" in changes:
            changes["subscription_plan"] = SubscriptionPlan(
                changes["subscription_plan"]
            ).value
        row = await update_row(self._session, OrganizationRow, org_id, changes)
        return _row_to_org(row) if row is not None else None

    async def delete(self, org_id: int) -> bool:
        return await delete_row(self._session, OrganizationRow, org_id)


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        owner_id=row.owner_id,
        subscription_plan=SubscriptionPlan(row.subscription_plan),
        max_users=row.max_users,
        max_storage_gb=row.max_storage_gb,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
