"""Request context middleware and logging filter.

Every request gets a request id (echoed from X-Request-ID or generated)
stored in a ContextVar, so any log line emitted while serving the request
can be correlated.  ContextVars (not thread-locals) are used because
concurrent requests share a thread under asyncio.

The session layer adds three more context values once it knows them:

  client_key       the opaque per-browser session key (``sid`` cookie)
  user_id          the resolved ApplicationUser id (0 for a super-admin)
  organization_id  the tenant the session is scoped to

``bind_session_context`` is called by the API dependencies after a
session is resolved; the filter copies all values onto each LogRecord.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
client_key_var: ContextVar[str] = ContextVar("client_key", default="-")
user_id_var: ContextVar[int | None] = ContextVar("user_id", default=None)
organization_id_var: ContextVar[int | None] = ContextVar(
    "organization_id", default=None
)


def bind_session_context(
    *,
    client_key: str | None = None,
    user_id: int | None = None,
    organization_id: int | None = None,
) -> None:
    """Attach session details to the current request's logging context."""
    if client_key is not None:
        client_key_var.set(client_key)
    user_id_var.set(user_id)
    organization_id_var.set(organization_id)


class _RequestContextFilter(logging.Filter):
    """Inject request/session context into every LogRecord.

    A filter (not a formatter) because only filters can add fields to the
    record before it is formatted.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        record.client_key = client_key_var.get("-")  # type: ignore[attr-defined]
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_var.get(None)  # type: ignore[attr-defined]
        if getattr(record, "organization_id", None) is None:
            record.organization_id = organization_id_var.get(None)  # type: ignore[attr-defined]
        return True


# Installed on the root handler chain once, even across module reloads.
root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, and log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        client_key_var.set("-")
        user_id_var.set(None)
        organization_id_var.set(None)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
