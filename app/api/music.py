from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import (
    TenantScope,
    get_repositories,
    require_capability,
    require_tenant_user,
)
from app.api.schemas import PatchIn
from app.core.errors import EntityValidationError, RecordNotFoundError
from app.models.music import Music
from app.repos.registry import Repositories

router = APIRouter(prefix="/v1/music", tags=["music"])

Repos = Annotated[Repositories, Depends(get_repositories)]
Member = Annotated[TenantScope, Depends(require_tenant_user)]
MediaManager = Annotated[TenantScope, Depends(require_capability("can_manage_media"))]


class MusicIn(BaseModel):
    title: str
    artist: str | None = None
    key: str | None = None
    bpm: int | None = None
    lyrics: str | None = None
    chords: str | None = None
    reference_url: str | None = None


class MusicUpdateIn(PatchIn):
    not_null = frozenset({"title"})

    title: str | None = None
    artist: str | None = None
    key: str | None = None
    bpm: int | None = None
    lyrics: str | None = None
    chords: str | None = None
    reference_url: str | None = None


class MusicOut(MusicIn):
    id: int
    organization_id: int
    created_at: datetime | None = None


def _music_out(m: Music) -> MusicOut:
    return MusicOut(
        id=m.id,
        organization_id=m.organization_id,
        title=m.title,
        artist=m.artist,
        key=m.key,
        bpm=m.bpm,
        lyrics=m.lyrics,
        chords=m.chords,
        reference_url=m.reference_url,
        created_at=m.created_at,
    )


async def _song(repos: Repositories, scope: TenantScope, music_id: int) -> Music:
    song = await repos.music.get_by_id(music_id)
    if song is None:
        raise RecordNotFoundError("music not found")
    scope.ensure_owns(song.organization_id, "music")
    return song


@router.get("", response_model=list[MusicOut])
async def list_music(
    scope: Member,
    repos: Repos,
    artist: str | None = None,
    title: str | None = None,
    has: Literal["lyrics", "chords"] | None = None,
) -> list[MusicOut]:
    org_id = scope.organization_id
    if artist:
        songs = await repos.music.search_by_artist(org_id, artist)
    elif title:
        songs = await repos.music.search_by_title(org_id, title)
    elif has == "lyrics":
        songs = await repos.music.list_with_lyrics(org_id)
    elif has == "chords":
        songs = await repos.music.list_with_chords(org_id)
    else:
        songs = await repos.music.list_by_organization(org_id)
    return [_music_out(m) for m in songs]


@router.post("", response_model=MusicOut, status_code=status.HTTP_201_CREATED)
async def create_music(payload: MusicIn, scope: MediaManager, repos: Repos) -> MusicOut:
    draft = Music.new(organization_id=scope.organization_id, **payload.model_dump())
    return _music_out(await repos.music.add(draft))


@router.get("/{music_id}", response_model=MusicOut)
async def get_music(music_id: int, scope: Member, repos: Repos) -> MusicOut:
    return _music_out(await _song(repos, scope, music_id))


@router.patch("/{music_id}", response_model=MusicOut)
async def update_music(
    music_id: int, payload: MusicUpdateIn, scope: MediaManager, repos: Repos
) -> MusicOut:
    await _song(repos, scope, music_id)
    changes = payload.changes()
    if not changes:
        raise EntityValidationError("no fields to update")
    if "title" in changes:
        changes["title"] = (changes["title"] or "").strip()
        if not changes["title"]:
            raise EntityValidationError("music title is required")
    if changes.get("bpm") is not None and changes["bpm"] <= 0:
        raise EntityValidationError("bpm must be positive")
    updated = await repos.music.update(music_id, **changes)
    if updated is None:
        raise RecordNotFoundError("music not found")
    return _music_out(updated)


@router.delete("/{music_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_music(music_id: int, scope: MediaManager, repos: Repos) -> None:
    await _song(repos, scope, music_id)
    await repos.music.delete(music_id)
