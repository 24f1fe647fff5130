from __future__ import annotations

from typing import Any, Protocol

from app.models.file import StoredFile
from app.repos.memory_table import (
    InMemoryTable,
    TableBackedRepo,
    contains_ci,
    newest_first,
)


class FileRepo(Protocol):
    async def list_all(self) -> list[StoredFile]: ...
    async def list_by_organization(self, org_id: int) -> list[StoredFile]: ...
    async def get_by_id(self, file_id: int) -> StoredFile | None: ...
    async def list_by_type(self, org_id: int, file_type: str) -> list[StoredFile]: ...
    async def search_by_name(self, org_id: int, name: str) -> list[StoredFile]: ...
    async def list_larger_than(self, org_id: int, min_bytes: int) -> list[StoredFile]: ...
    async def storage_usage(self, org_id: int) -> int: ...
    async def add(self, stored: StoredFile) -> StoredFile: ...
    async def update(self, file_id: int, **changes: Any) -> StoredFile | None: ...
    async def delete(self, file_id: int) -> bool: ...


class InMemoryFileRepo(TableBackedRepo):
    def __init__(self) -> None:
        self._table: InMemoryTable[StoredFile] = InMemoryTable()

    def _in_org(self, org_id: int) -> list[StoredFile]:
        return [f for f in self._table.values() if f.organization_id == org_id]

    async def list_all(self) -> list[StoredFile]:
        return newest_first(self._table.values())

    async def list_by_organization(self, org_id: int) -> list[StoredFile]:
        return newest_first(self._in_org(org_id))

    async def get_by_id(self, file_id: int) -> StoredFile | None:
        return self._table.get(file_id)

    async def list_by_type(self, org_id: int, file_type: str) -> list[StoredFile]:
        wanted = file_type.strip().lower()
        return newest_first([f for f in self._in_org(org_id) if f.file_type == wanted])

    async def search_by_name(self, org_id: int, name: str) -> list[StoredFile]:
        matches = [f for f in self._in_org(org_id) if contains_ci(f.name, name)]
        return sorted(matches, key=lambda f: (f.name.lower(), f.id))

    async def list_larger_than(self, org_id: int, min_bytes: int) -> list[StoredFile]:
        large = [f for f in self._in_org(org_id) if f.size >= min_bytes]
        return sorted(large, key=lambda f: (-f.size, f.id))

    async def storage_usage(self, org_id: int) -> int:
        return sum(f.size for f in self._in_org(org_id))

    async def add(self, stored: StoredFile) -> StoredFile:
        return self._table.insert(stored)

    async def update(self, file_id: int, **changes: Any) -> StoredFile | None:
        return self._table.update(file_id, changes)

    async def delete(self, file_id: int) -> bool:
        return self._table.delete(file_id)
