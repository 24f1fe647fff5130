"""Dict-backed table used by every in-memory repository.

Mimics the parts of a relational table the repositories rely on:
serial integer ids, server-side ``created_at``/``updated_at`` stamps, and
update/delete by primary key.  ``snapshot``/``restore`` give the
in-memory repository bundle its all-or-nothing transactions.
"""

from __future__ import annotations

from dataclasses import fields, replace
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from app.core.errors import EntityValidationError

T = TypeVar("T")

_IMMUTABLE = frozenset({"id", "created_at", "updated_at"})


class InMemoryTable(Generic[T]):
    def __init__(self) -> None:
        self._rows: dict[int, T] = {}
        self._next_id = 1

    def insert(self, entity: T) -> T:
        now = datetime.now(UTC)
        stamps: dict[str, Any] = {"id": self._next_id}
        names = _field_names(entity)
        if "created_at" in names:
            stamps["created_at"] = now
        if "updated_at" in names:
            stamps["updated_at"] = now
        stored = replace(entity, **stamps)  # type: ignore[type-var]
        self._rows[self._next_id] = stored
        self._next_id += 1
        return stored

    def get(self, row_id: int) -> T | None:
        return self._rows.get(row_id)

    def values(self) -> list[T]:
        return list(self._rows.values())

    def update(self, row_id: int, changes: dict[str, Any]) -> T | None:
        current = self._rows.get(row_id)
        if current is None:
            return None
        names = _field_names(current)
        unknown = set(changes) - (names - _IMMUTABLE)
        if unknown:
            raise EntityValidationError(f"cannot update fields: {sorted(unknown)}")
        if "updated_at" in names:
            changes = {**changes, "updated_at": datetime.now(UTC)}
        updated = replace(current, **changes)  # type: ignore[type-var]
        self._rows[row_id] = updated
        return updated

    def delete(self, row_id: int) -> bool:
        return self._rows.pop(row_id, None) is not None

    def snapshot(self) -> tuple[dict[int, T], int]:
        return dict(self._rows), self._next_id

    def restore(self, snapshot: tuple[dict[int, T], int]) -> None:
        rows, next_id = snapshot
        self._rows = dict(rows)
        self._next_id = next_id

    def clear(self) -> None:
        self._rows.clear()
        self._next_id = 1


class TableBackedRepo:
    """Snapshot/restore/clear for repos built from one or more InMemoryTables."""

    def _tables(self) -> tuple[InMemoryTable[Any], ...]:
        return tuple(v for v in vars(self).values() if isinstance(v, InMemoryTable))

    def snapshot(self) -> list[tuple[dict[int, Any], int]]:
        return [t.snapshot() for t in self._tables()]

    def restore(self, snapshot: list[tuple[dict[int, Any], int]]) -> None:
        for table, snap in zip(self._tables(), snapshot, strict=True):
            table.restore(snap)

    def clear(self) -> None:
        for table in self._tables():
            table.clear()


_EPOCH = datetime.min.replace(tzinfo=UTC)


def newest_first(rows: list[T]) -> list[T]:
    # id breaks ties between rows stamped within the same clock tick
    return sorted(
        rows,
        key=lambda r: (getattr(r, "created_at", None) or _EPOCH, getattr(r, "id")),
        reverse=True,
    )


def contains_ci(haystack: str | None, needle: str) -> bool:
    """Case-insensitive substring match, the in-memory twin of SQL ILIKE."""
    return haystack is not None and needle.lower() in haystack.lower()


def _field_names(entity: object) -> set[str]:
    return {f.name for f in fields(entity)}  # type: ignore[arg-type]
