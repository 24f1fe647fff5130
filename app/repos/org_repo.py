from __future__ import annotations

from typing import Any, Protocol

from app.models.organization import Organization, SubscriptionPlan
from app.repos.memory_table import InMemoryTable, TableBackedRepo, newest_first


class OrganizationRepo(Protocol):
    async def list_all(self) -> list[Organization]: ...
    async def get_by_id(self, org_id: int) -> Organization | None: ...
    async def list_by_plan(self, plan: SubscriptionPlan) -> list[Organization]: ...
    async def add(self, org: Organization) -> Organization: ...
    async def update(self, org_id: int, **changes: Any) -> Organization | None: ...
    async def delete(self, org_id: int) -> bool: ...


class InMemoryOrganizationRepo(TableBackedRepo):
    def __init__(self) -> None:
        self._table: InMemoryTable[Organization] = InMemoryTable()

    async def list_all(self) -> list[Organization]:
        return newest_first(self._table.values())

    async def get_by_id(self, org_id: int) -> Organization | None:
        return self._table.get(org_id)

    async def list_by_plan(self, plan: SubscriptionPlan) -> list[Organization]:
        return [o for o in await self.list_all() if o.subscription_plan == plan]

    async def add(self, org: Organization) -> Organization:
        return self._table.insert(org)

    async def update(self, org_id: int, **changes: Any) -> Organization | None:
        return self._table.update(org_id, changes)

    async def delete(self, org_id: int) -> bool:
        return self._table.delete(org_id)
