"""Per-organization storage quota."""

from __future__ import annotations

import logging

from app.core.errors import OrganizationNotFoundError, StorageLimitExceededError
from app.models.file import StorageUsage, StoredFile
from app.repos.registry import Repositories

logger = logging.getLogger(__name__)


async def check_storage_limit(repos: Repositories, org_id: int) -> StorageUsage:
    org = await repos.organizations.get_by_id(org_id)
    if org is None:
        raise OrganizationNotFoundError()
    usage = await repos.files.storage_usage(org_id)
    limit = org.max_storage_bytes
    return StorageUsage(usage=usage, limit=limit, exceeded=usage >= limit)


async def register_file(repos: Repositories, stored: StoredFile) -> StoredFile:
    """Record an uploaded file's metadata if it fits in the remaining quota."""
    usage = await check_storage_limit(repos, stored.organization_id)
    if usage.usage + stored.size > usage.limit:
        logger.warning(
            "Upload rejected: storage limit  organization_id=%s size=%d available=%d",
            stored.organization_id,
            stored.size,
            usage.available,
        )
        raise StorageLimitExceededError()
    saved = await repos.files.add(stored)
    logger.info(
        "File registered  organization_id=%s file_id=%s size=%d",
        saved.organization_id,
        saved.id,
        saved.size,
    )
    return saved
