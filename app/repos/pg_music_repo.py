"""PostgreSQL implementation of MusicRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import MusicRow
from app.models.music import Music
from app.repos.pg_common import delete_row, update_row
from app.repos.store_errors import translate_store_errors

_NEWEST_FIRST = (MusicRow.created_at.desc(), MusicRow.id.desc())
_BY_TITLE = (MusicRow.title.asc(), MusicRow.id.asc())


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@translate_store_errors
class PgMusicRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria: Any, order=_NEWEST_FIRST) -> list[Music]:
        stmt = select(MusicRow).where(*criteria).order_by(*order)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_music(r) for r in rows]

    async def list_all(self) -> list[Music]:
        return await self._many()

    async def list_by_organization(self, org_id: int) -> list[Music]:
        return await self._many(MusicRow.organization_id == org_id)

    async def get_by_id(self, music_id: int) -> Music | None:
        row = await self._session.get(MusicRow, music_id)
        return _row_to_music(row) if row is not None else None

    async def search_by_artist(self, org_id: int, artist: str) -> list[Music]:
        return await self._many(
            MusicRow.organization_id == org_id,
            MusicRow.artist.ilike(f"%{_escape_like(artist)}%", escape="\\"),
            order=_BY_TITLE,
        )

    async def search_by_title(self, org_id: int, title: str) -> list[Music]:
        return await self._many(
            MusicRow.organization_id == org_id,
            MusicRow.title.ilike(f"%{_escape_like(title)}%", escape="\\"),
            order=_BY_TITLE,
        )

    async def list_with_lyrics(self, org_id: int) -> list[Music]:
        return await self._many(
            MusicRow.organization_id == org_id,
            MusicRow.lyrics.is_not(None),
            order=_BY_TITLE,
        )

    async def list_with_chords(self, org_id: int) -> list[Music]:
        return await self._many(
            MusicRow.organization_id == org_id,
            MusicRow.chords.is_not(None),
            order=_BY_TITLE,
        )

    async def add(self, music: Music) -> Music:
        row = MusicRow(
            organization_id=music.organization_id,
            title=music.title,
            artist=music.artist,
            key=music.key,
            bpm=music.bpm,
            lyrics=music.lyrics,
            chords=music.chords,
            reference_url=music.reference_url,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_music(row)

    async def update(self, music_id: int, **changes: Any) -> Music | None:
        row = await update_row(self._session, MusicRow, music_id, changes)
        return _row_to_music(row) if row is not None else None

    async def delete(self, music_id: int) -> bool:
        return await delete_row(self._session, MusicRow, music_id)


def _row_to_music(row: MusicRow) -> Music:
    return Music(
        id=row.id,
        organization_id=row.organization_id,
        title=row.title,
        artist=row.artist,
        key=row.key,
        bpm=row.bpm,
        lyrics=row.lyrics,
        chords=row.chords,
        reference_url=row.reference_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
