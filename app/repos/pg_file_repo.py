"""PostgreSQL implementation of FileRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import FileRow
from app.models.file import StoredFile
from app.repos.pg_common import delete_row, update_row
from app.repos.pg_music_repo import _escape_like
from app.repos.store_errors import translate_store_errors

_NEWEST_FIRST = (FileRow.created_at.desc(), FileRow.id.desc())


@translate_store_errors
class PgFileRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria: Any, order=_NEWEST_FIRST) -> list[StoredFile]:
        stmt = select(FileRow).where(*criteria).order_by(*order)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_file(r) for r in rows]

    async def list_all(self) -> list[StoredFile]:
        return await self._many()

    async def list_by_organization(self, org_id: int) -> list[StoredFile]:
        return await self._many(FileRow.organization_id == org_id)

    async def get_by_id(self, file_id: int) -> StoredFile | None:
        row = await self._session.get(FileRow, file_id)
        return _row_to_file(row) if row is not None else None

    async def list_by_type(self, org_id: int, file_type: str) -> list[StoredFile]:
        return await self._many(
            FileRow.organization_id == org_id,
            FileRow.type == file_type.strip().lower(),
        )

    async def search_by_name(self, org_id: int, name: str) -> list[StoredFile]:
        return await self._many(
            FileRow.organization_id == org_id,
            FileRow.name.ilike(f"%{_escape_like(name)}%", escape="\\"),
            order=(FileRow.name.asc(), FileRow.id.asc()),
        )

    async def list_larger_than(self, org_id: int, min_bytes: int) -> list[StoredFile]:
        return await self._many(
            FileRow.organization_id == org_id,
            FileRow.size >= min_bytes,
            order=(FileRow.size.desc(), FileRow.id.asc()),
        )

    async def storage_usage(self, org_id: int) -> int:
        stmt = select(func.coalesce(func.sum(FileRow.size), 0)).where(
            FileRow.organization_id == org_id
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, stored: StoredFile) -> StoredFile:
        row = FileRow(
            organization_id=stored.organization_id,
            name=stored.name,
            type=stored.file_type,
            size=stored.size,
            url=stored.url,
            uploaded_by=stored.uploaded_by,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_file(row)

    async def update(self, file_id: int, **changes: Any) -> StoredFile | None:
        if "file_type" in changes:
            changes["type"] = changes.pop("file_type")
        row = await update_row(self._session, FileRow, file_id, changes)
        return _row_to_file(row) if row is not None else None

    async def delete(self, file_id: int) -> bool:
        return await delete_row(self._session, FileRow, file_id)


def _row_to_file(row: FileRow) -> StoredFile:
    return StoredFile(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        file_type=row.type,
        size=row.size,
        url=row.url,
        uploaded_by=row.uploaded_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
