from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from app.core.errors import DuplicateRecordError
from app.models.user import ApplicationUser, normalize_email, validate_email
from app.repos.memory_table import InMemoryTable, TableBackedRepo, newest_first


class UserRepo(Protocol):
    async def list_all(self) -> list[ApplicationUser]: ...
    async def get_by_id(self, user_id: int) -> ApplicationUser | None: ...
    async def get_by_email(self, email: str) -> ApplicationUser | None: ...
    async def list_by_organization(self, org_id: int) -> list[ApplicationUser]: ...
    async def count_by_organization(self, org_id: int) -> int: ...
    async def list_pending(self) -> list[ApplicationUser]: ...
    async def add(self, user: ApplicationUser) -> ApplicationUser: ...
    async def update(self, user_id: int, **changes: Any) -> ApplicationUser | None: ...
    async def approve(self, user_id: int) -> ApplicationUser | None: ...
    async def delete(self, user_id: int) -> bool: ...


class UserDependent(Protocol):
    """In-memory repo holding rows that reference a user."""

    def forget_user(self, user_id: int) -> None: ...


class InMemoryUserRepo(TableBackedRepo):
    """``dependents`` drop their rows for a deleted user, like the
    ON DELETE CASCADE foreign keys on application_users.
    """

    def __init__(self, dependents: Iterable[UserDependent] = ()) -> None:
        self._table: InMemoryTable[ApplicationUser] = InMemoryTable()
        self._dependents = tuple(dependents)

    async def list_all(self) -> list[ApplicationUser]:
        return newest_first(self._table.values())

    async def get_by_id(self, user_id: int) -> ApplicationUser | None:
        return self._table.get(user_id)

    async def get_by_email(self, email: str) -> ApplicationUser | None:
        normalized = normalize_email(email)
        for user in self._table.values():
            if user.email == normalized:
                return user
        return None

    async def list_by_organization(self, org_id: int) -> list[ApplicationUser]:
        return [u for u in await self.list_all() if u.organization_id == org_id]

    async def count_by_organization(self, org_id: int) -> int:
        return sum(1 for u in self._table.values() if u.organization_id == org_id)

    async def list_pending(self) -> list[ApplicationUser]:
        return [u for u in await self.list_all() if u.pending]

    async def add(self, user: ApplicationUser) -> ApplicationUser:
        if await self.get_by_email(user.email) is not None:
            raise DuplicateRecordError("email already exists")
        return self._table.insert(user)

    async def update(self, user_id: int, **changes: Any) -> ApplicationUser | None:
        if "email" in changes:
            changes["email"] = validate_email(changes["email"])
            existing = await self.get_by_email(changes["email"])
            if existing is not None and existing.id != user_id:
                raise DuplicateRecordError("email already exists")
        return self._table.update(user_id, changes)

    async def approve(self, user_id: int) -> ApplicationUser | None:
        return self._table.update(user_id, {"pending": False})

    async def delete(self, user_id: int) -> bool:
        if not self._table.delete(user_id):
            return False
        for dependent in self._dependents:
            dependent.forget_user(user_id)
        return True
