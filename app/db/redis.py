"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a shared connection pool is
created, otherwise ``redis_pool`` is None and consumers fall back to their
in-memory implementations.

Redis holds the short-lived, per-browser state that must be shared across
API instances:

  session:<client_key>  the persisted Session (user, organization,
                        super-admin flag, provider token), TTL = session TTL
  oauth:<client_key>    a pending OAuth handshake (state + PKCE verifier),
                        TTL = 10 minutes, consumed exactly once

Durable tenant data (users, organizations, events) lives in PostgreSQL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
        socket_timeout=2.0,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for the Redis pool.

    An unreachable Redis is logged but does not abort startup; session
    reads then surface as TransientStoreError per request.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured; sessions are kept in memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected")
    except (aioredis.RedisError, OSError):
        logger.exception("Redis connection failed on startup")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
