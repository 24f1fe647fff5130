"""Row-level helpers shared by the PostgreSQL repositories."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import delete, inspect, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import EntityValidationError

RowT = TypeVar("RowT")

_IMMUTABLE = frozenset({"id", "created_at", "updated_at"})


def _check_columns(row_cls: type, changes: dict[str, Any]) -> None:
    columns = {c.key for c in inspect(row_cls).column_attrs}
    unknown = set(changes) - (columns - _IMMUTABLE)
    if unknown:
        raise EntityValidationError(f"cannot update fields: {sorted(unknown)}")


async def update_row(
    session: AsyncSession, row_cls: type[RowT], row_id: int, changes: dict[str, Any]
) -> RowT | None:
    """UPDATE ... WHERE id = :id RETURNING *; None when no row matched."""
    _check_columns(row_cls, changes)
    if not changes:
        return await session.get(row_cls, row_id)
    stmt = (
        update(row_cls)
        .where(row_cls.id == row_id)  # type: ignore[attr-defined]
        .values(**changes)
        .returning(row_cls)
        .execution_options(synchronize_session="fetch")
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def delete_row(session: AsyncSession, row_cls: type, row_id: int) -> bool:
    stmt = delete(row_cls).where(row_cls.id == row_id)  # type: ignore[attr-defined]
    result = await session.execute(stmt)
    return result.rowcount > 0  # type: ignore[attr-defined]
