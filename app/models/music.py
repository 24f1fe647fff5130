from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.errors import EntityValidationError


@dataclass(frozen=True, slots=True)
class Music:
    id: int
    organization_id: int
    title: str
    artist: str | None = None
    key: str | None = None  # musical key, e.g. "G" or "F#m"
    bpm: int | None = None
    lyrics: str | None = None
    chords: str | None = None
    reference_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def new(
        *,
        organization_id: int,
        title: str,
        artist: str | None = None,
        key: str | None = None,
        bpm: int | None = None,
        lyrics: str | None = None,
        chords: str | None = None,
        reference_url: str | None = None,
    ) -> Music:
        title = (title or "").strip()
        if not title:
            raise EntityValidationError("music title is required")
        if bpm is not None and bpm <= 0:
            raise EntityValidationError("bpm must be positive")
        return Music(
            id=0,
            organization_id=organization_id,
            title=title,
            artist=artist,
            key=key,
            bpm=bpm,
            lyrics=lyrics,
            chords=chords,
            reference_url=reference_url,
        )
