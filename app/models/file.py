from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.errors import EntityValidationError


@dataclass(frozen=True, slots=True)
class StoredFile:
    """Metadata for an uploaded file; the bytes live in object storage."""

    id: int
    organization_id: int
    name: str
    file_type: str
    size: int  # bytes
    url: str
    uploaded_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def new(
        *,
        organization_id: int,
        name: str,
        file_type: str,
        size: int,
        url: str,
        uploaded_by: int | None = None,
    ) -> StoredFile:
        name = (name or "").strip()
        if not name:
            raise EntityValidationError("file name is required")
        if not url:
            raise EntityValidationError("file url is required")
        if size < 0:
            raise EntityValidationError("file size must not be negative")
        return StoredFile(
            id=0,
            organization_id=organization_id,
            name=name,
            file_type=(file_type or "").strip().lower(),
            size=size,
            url=url,
            uploaded_by=uploaded_by,
        )


@dataclass(frozen=True, slots=True)
class StorageUsage:
    usage: int  # bytes in use
    limit: int  # bytes allowed by the plan
    exceeded: bool

    @property
    def available(self) -> int:
        return max(self.limit - self.usage, 0)
