"""Translate SQLAlchemy/driver exceptions into the app error taxonomy.

Applied to the PostgreSQL repositories so callers only ever see
``DuplicateRecordError``, ``EntityValidationError`` or
``TransientStoreError``.  After a connection failure the session is rolled
back, so a retry on the same session starts a fresh transaction.  Other
driver errors (bad SQL, type mismatches) are bugs and propagate unchanged.
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    PendingRollbackError,
    SQLAlchemyError,
)

from app.core.errors import (
    DuplicateRecordError,
    EntityValidationError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"

T = TypeVar("T")


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _translate(fn):
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await fn(*args, **kwargs)
        except IntegrityError as e:
            code = _sqlstate(e)
            if code == _FOREIGN_KEY_VIOLATION:
                raise EntityValidationError("referenced record does not exist") from e
            if code == _UNIQUE_VIOLATION or code is None:
                raise DuplicateRecordError() from e
            raise EntityValidationError(str(e.orig)) from e
        except (OperationalError, InterfaceError) as e:
            logger.warning("Store unavailable in %s: %s", fn.__qualname__, e.orig)
            await _reset_session(args)
            raise TransientStoreError() from e
        except DBAPIError as e:
            if not e.connection_invalidated:
                raise
            logger.warning("Store connection lost in %s: %s", fn.__qualname__, e.orig)
            await _reset_session(args)
            raise TransientStoreError() from e
        except PendingRollbackError as e:
            logger.warning("Store session needs rollback in %s", fn.__qualname__)
            await _reset_session(args)
            raise TransientStoreError() from e
        except (OSError, TimeoutError) as e:
            logger.warning("Store connection failed in %s: %s", fn.__qualname__, e)
            await _reset_session(args)
            raise TransientStoreError() from e

    return wrapper


async def _reset_session(args: tuple[Any, ...]) -> None:
    """Roll back the repository's session after a connection failure.

    A failed connection leaves the session's transaction invalid; every
    later call on it raises PendingRollbackError until it is rolled back.
    Rolling back here lets a retry on the same session start afresh.
    """
    session = getattr(args[0], "_session", None) if args else None
    if session is None:
        return
    try:
        await session.rollback()
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Rollback after store failure failed: %s", e)


def translate_store_errors(target: T) -> T:
    """Wrap a coroutine function, or every public coroutine method of a class."""
    if isinstance(target, type):
        for name, member in list(vars(target).items()):
            if not name.startswith("_") and inspect.iscoroutinefunction(member):
                setattr(target, name, _translate(member))
        return target
    return _translate(target)  # type: ignore[return-value]
