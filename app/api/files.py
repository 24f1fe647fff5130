"""File metadata and storage quota for the caller's organization.

Only metadata is handled here; clients upload the bytes to object storage
and then register the resulting URL.  Registration is refused with 413
when the file would push the organization past its plan's storage limit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from app.api.dependencies import (
    TenantScope,
    get_repositories,
    require_capability,
    require_tenant_user,
)
from app.api.schemas import PatchIn
from app.core.errors import EntityValidationError, RecordNotFoundError
from app.models.file import StoredFile
from app.repos.registry import Repositories
from app.services import storage_service

router = APIRouter(prefix="/v1/files", tags=["files"])

Repos = Annotated[Repositories, Depends(get_repositories)]
Member = Annotated[TenantScope, Depends(require_tenant_user)]
MediaManager = Annotated[TenantScope, Depends(require_capability("can_manage_media"))]


class FileIn(BaseModel):
    name: str
    file_type: str
    size: int
    url: str


class FileUpdateIn(PatchIn):
    not_null = frozenset({"name", "file_type"})

    name: str | None = None
    file_type: str | None = None


class FileOut(FileIn):
    id: int
    organization_id: int
    uploaded_by: int | None
    created_at: datetime | None = None


class StorageUsageOut(BaseModel):
    usage: int
    limit: int
    available: int
    exceeded: bool


def _file_out(f: StoredFile) -> FileOut:
    return FileOut(
        id=f.id,
        organization_id=f.organization_id,
        name=f.name,
        file_type=f.file_type,
        size=f.size,
        url=f.url,
        uploaded_by=f.uploaded_by,
        created_at=f.created_at,
    )


async def _file(repos: Repositories, scope: TenantScope, file_id: int) -> StoredFile:
    stored = await repos.files.get_by_id(file_id)
    if stored is None:
        raise RecordNotFoundError("file not found")
    scope.ensure_owns(stored.organization_id, "file")
    return stored


@router.get("", response_model=list[FileOut])
async def list_files(
    scope: Member,
    repos: Repos,
    name: str | None = None,
    file_type: Annotated[str | None, Query(alias="type")] = None,
    min_size: Annotated[int | None, Query(ge=0)] = None,
) -> list[FileOut]:
    org_id = scope.organization_id
    if name:
        files = await repos.files.search_by_name(org_id, name)
    elif file_type:
        files = await repos.files.list_by_type(org_id, file_type)
    elif min_size is not None:
        files = await repos.files.list_larger_than(org_id, min_size)
    else:
        files = await repos.files.list_by_organization(org_id)
    return [_file_out(f) for f in files]


@router.get("/usage", response_model=StorageUsageOut)
async def storage_usage(scope: Member, repos: Repos) -> StorageUsageOut:
    usage = await storage_service.check_storage_limit(repos, scope.organization_id)
    return StorageUsageOut(
        usage=usage.usage,
        limit=usage.limit,
        available=usage.available,
        exceeded=usage.exceeded,
    )


@router.post("", response_model=FileOut, status_code=status.HTTP_201_CREATED)
async def register_file(payload: FileIn, scope: MediaManager, repos: Repos) -> FileOut:
    draft = StoredFile.new(
        organization_id=scope.organization_id,
        uploaded_by=scope.user_id or None,
        **payload.model_dump(),
    )
    return _file_out(await storage_service.register_file(repos, draft))


@router.get("/{file_id}", response_model=FileOut)
async def get_file(file_id: int, scope: Member, repos: Repos) -> FileOut:
    return _file_out(await _file(repos, scope, file_id))


@router.patch("/{file_id}", response_model=FileOut)
async def update_file(
    file_id: int, payload: FileUpdateIn, scope: MediaManager, repos: Repos
) -> FileOut:
    await _file(repos, scope, file_id)
    changes = payload.changes()
    if not changes:
        raise EntityValidationError("no fields to update")
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise EntityValidationError("file name is required")
    if "file_type" in changes:
        changes["file_type"] = (changes["file_type"] or "").strip().lower()
    updated = await repos.files.update(file_id, **changes)
    if updated is None:
        raise RecordNotFoundError("file not found")
    return _file_out(updated)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(file_id: int, scope: MediaManager, repos: Repos) -> None:
    await _file(repos, scope, file_id)
    await repos.files.delete(file_id)
