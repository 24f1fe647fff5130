"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200; the ``status`` field reports
    whether a dependency is degraded.  Returning 503 here would make the
    orchestrator restart a process that is merely missing its database.

  /ready (readiness):
    "Can this instance serve traffic?"  503 when PostgreSQL is configured
    but unreachable, since tenant data and session resolution need it.
    Redis is not critical: an unreachable session store surfaces as a
    per-request 503 and the instance can recover without being removed.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Response, status

from app.core.config import SETTINGS
from app.db import engine as db_engine
from app.db import redis as db_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    return "ok" if await db_engine.ping() else "degraded"


async def _check_redis() -> str:
    if db_redis.redis_pool is None:
        return "not_configured"
    try:
        await db_redis.redis_pool.ping()  # type: ignore[misc]
    except (aioredis.RedisError, OSError):
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"database": await _check_database(), "redis": await _check_redis()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "checks": checks,
        "identity_provider": SETTINGS.identity_provider,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
