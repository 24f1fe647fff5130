"""Durable per-browser session state.

Two kinds of entry are kept per client key (the ``sid`` cookie):

  session:<client_key>  PersistedSession, so a returning browser gets its
                        user/organization/super-admin triple back without
                        re-resolving (TTL = SESSION_TTL_SECONDS)
  oauth:<client_key>    the pending OAuthFlow (state + PKCE verifier)
                        between the redirect and the callback; read at
                        most once

Entries are JSON produced by a pydantic TypeAdapter over the dataclasses,
so decoding also validates the shape.  An entry that fails validation
(truncated write, older schema, tampering) is logged and reported as
absent; the caller then treats the browser as anonymous.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, TypeVar, runtime_checkable

import redis.asyncio as aioredis
from pydantic import TypeAdapter, ValidationError

from app.core.errors import TransientStoreError
from app.db.redis import redis_pool
from app.models.session import OAuthFlow, PersistedSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SESSION_ADAPTER = TypeAdapter(PersistedSession)
_FLOW_ADAPTER = TypeAdapter(OAuthFlow)


def encode_session(session: PersistedSession) -> str:
    return _SESSION_ADAPTER.dump_json(session).decode()


def decode_session(raw: str | bytes | None) -> PersistedSession | None:
    return _decode(_SESSION_ADAPTER, raw, "session")


def encode_flow(flow: OAuthFlow) -> str:
    return _FLOW_ADAPTER.dump_json(flow).decode()


def decode_flow(raw: str | bytes | None) -> OAuthFlow | None:
    return _decode(_FLOW_ADAPTER, raw, "oauth flow")


def _decode(adapter: TypeAdapter[T], raw: str | bytes | None, what: str) -> T | None:
    if raw is None:
        return None
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding malformed %s entry (%d errors)", what, e.error_count())
        return None


@runtime_checkable
class SessionStore(Protocol):
    async def load(self, client_key: str) -> PersistedSession | None: ...

    async def save(
        self, client_key: str, session: PersistedSession, ttl_seconds: int
    ) -> None: ...

    async def clear(self, client_key: str) -> None: ...

    async def save_oauth_flow(
        self, client_key: str, flow: OAuthFlow, ttl_seconds: int
    ) -> None: ...

    async def pop_oauth_flow(self, client_key: str) -> OAuthFlow | None: ...


class InMemorySessionStore:
    """Per-process store for tests and local dev.

    Holds the same JSON strings Redis would, with the expiry checked on read.
    """

    def __init__(self) -> None:
        # client_key -> (json, expires_at monotonic seconds)
        self._sessions: dict[str, tuple[str, float]] = {}
        self._flows: dict[str, tuple[str, float]] = {}

    async def load(self, client_key: str) -> PersistedSession | None:
        return decode_session(_live(self._sessions, client_key))

    async def save(
        self, client_key: str, session: PersistedSession, ttl_seconds: int
    ) -> None:
        self._sessions[client_key] = (
            encode_session(session),
            time.monotonic() + ttl_seconds,
        )

    async def clear(self, client_key: str) -> None:
        self._sessions.pop(client_key, None)

    async def save_oauth_flow(
        self, client_key: str, flow: OAuthFlow, ttl_seconds: int
    ) -> None:
        self._flows[client_key] = (encode_flow(flow), time.monotonic() + ttl_seconds)

    async def pop_oauth_flow(self, client_key: str) -> OAuthFlow | None:
        raw = _live(self._flows, client_key)
        self._flows.pop(client_key, None)
        return decode_flow(raw)

    def reset(self) -> None:
        self._sessions.clear()
        self._flows.clear()


def _live(entries: dict[str, tuple[str, float]], key: str) -> str | None:
    entry = entries.get(key)
    if entry is None:
        return None
    raw, expires_at = entry
    if expires_at <= time.monotonic():
        del entries[key]
        return None
    return raw


class RedisSessionStore:
    """Redis-backed store, shared by every API instance."""

    _SESSION_PREFIX = "session:"
    _OAUTH_PREFIX = "oauth:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def load(self, client_key: str) -> PersistedSession | None:
        raw = await self._call(self._redis.get(f"{self._SESSION_PREFIX}{client_key}"))
        return decode_session(raw)

    async def save(
        self, client_key: str, session: PersistedSession, ttl_seconds: int
    ) -> None:
        # SETEX writes value and TTL atomically; no key is left without expiry.
        await self._call(
            self._redis.setex(
                f"{self._SESSION_PREFIX}{client_key}",
                ttl_seconds,
                encode_session(session),
            )
        )

    async def clear(self, client_key: str) -> None:
        await self._call(self._redis.delete(f"{self._SESSION_PREFIX}{client_key}"))

    async def save_oauth_flow(
        self, client_key: str, flow: OAuthFlow, ttl_seconds: int
    ) -> None:
        await self._call(
            self._redis.setex(
                f"{self._OAUTH_PREFIX}{client_key}", ttl_seconds, encode_flow(flow)
            )
        )

    async def pop_oauth_flow(self, client_key: str) -> OAuthFlow | None:
        # GETDEL makes the flow single-use even with concurrent callbacks.
        raw = await self._call(self._redis.getdel(f"{self._OAUTH_PREFIX}{client_key}"))
        return decode_flow(raw)

    @staticmethod
    async def _call(pending):
        try:
            return await pending
        except (aioredis.RedisError, OSError) as e:
            logger.warning("Session store unavailable: %s", e)
            raise TransientStoreError() from e


# ---------------------------------------------------------------------------
# Module-level singleton, conditional on Redis availability
# ---------------------------------------------------------------------------

if redis_pool is not None:
    session_store: SessionStore = RedisSessionStore(redis_pool)
else:
    session_store = InMemorySessionStore()
