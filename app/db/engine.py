"""Async SQLAlchemy engine for the tenant database (PostgreSQL via asyncpg).

``engine`` and ``async_session_factory`` are None when DATABASE_URL is
unset; the API then serves every tenant from the in-memory repository
bundle (app/repos/registry.py) and /ready never reports the database.

Sessions are opened per request by ``session_scope()``.  Repositories only
flush; the scope owns the commit, so a request that raises halfway through
an organization's provisioning leaves nothing behind.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS, Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by app/db/tables.py and Alembic autogenerate."""


def _build_engine(settings: Settings) -> AsyncEngine | None:
    if not settings.database_url:
        return None
    return create_async_engine(
        settings.database_url,
        # SQL echo goes through the sqlalchemy.engine logger, quieted in setup_logging.
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


engine = _build_engine(SETTINGS)
async_session_factory = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine is not None
    else None
)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request: commit on success, roll back on error."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured; no database session")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping() -> bool:
    """Round-trip ``SELECT 1``; False when the database cannot be reached."""
    if engine is None:
        return False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Database ping failed", exc_info=True)
        return False
    return True


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the engine.

    An unreachable database is logged but does not abort startup; /ready
    reports it and tenant requests fail with 503 until it comes back.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured; tenants are served from memory")
        yield
        return

    if await ping():
        logger.info("Database connected  url=%s", engine.url.render_as_string())

    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
