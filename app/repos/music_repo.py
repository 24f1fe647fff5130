from __future__ import annotations

from typing import Any, Protocol

from app.models.music import Music
from app.repos.memory_table import (
    InMemoryTable,
    TableBackedRepo,
    contains_ci,
    newest_first,
)


class MusicRepo(Protocol):
    async def list_all(self) -> list[Music]: ...
    async def list_by_organization(self, org_id: int) -> list[Music]: ...
    async def get_by_id(self, music_id: int) -> Music | None: ...
    async def search_by_artist(self, org_id: int, artist: str) -> list[Music]: ...
    async def search_by_title(self, org_id: int, title: str) -> list[Music]: ...
    async def list_with_lyrics(self, org_id: int) -> list[Music]: ...
    async def list_with_chords(self, org_id: int) -> list[Music]: ...
    async def add(self, music: Music) -> Music: ...
    async def update(self, music_id: int, **changes: Any) -> Music | None: ...
    async def delete(self, music_id: int) -> bool: ...


def _by_title(rows: list[Music]) -> list[Music]:
    return sorted(rows, key=lambda m: (m.title.lower(), m.id))


class InMemoryMusicRepo(TableBackedRepo):
    def __init__(self) -> None:
        self._table: InMemoryTable[Music] = InMemoryTable()

    def _in_org(self, org_id: int) -> list[Music]:
        return [m for m in self._table.values() if m.organization_id == org_id]

    async def list_all(self) -> list[Music]:
        return newest_first(self._table.values())

    async def list_by_organization(self, org_id: int) -> list[Music]:
        return newest_first(self._in_org(org_id))

    async def get_by_id(self, music_id: int) -> Music | None:
        return self._table.get(music_id)

    async def search_by_artist(self, org_id: int, artist: str) -> list[Music]:
        return _by_title([m for m in self._in_org(org_id) if contains_ci(m.artist, artist)])

    async def search_by_title(self, org_id: int, title: str) -> list[Music]:
        return _by_title([m for m in self._in_org(org_id) if contains_ci(m.title, title)])

    async def list_with_lyrics(self, org_id: int) -> list[Music]:
        return _by_title([m for m in self._in_org(org_id) if m.lyrics is not None])

    async def list_with_chords(self, org_id: int) -> list[Music]:
        return _by_title([m for m in self._in_org(org_id) if m.chords is not None])

    async def add(self, music: Music) -> Music:
        return self._table.insert(music)

    async def update(self, music_id: int, **changes: Any) -> Music | None:
        return self._table.update(music_id, changes)

    async def delete(self, music_id: int) -> bool:
        return self._table.delete(music_id)
