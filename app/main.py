from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.events import router as events_router
from app.api.files import router as files_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.music import router as music_router
from app.api.teams import router as teams_router
from app.api.users import router as users_router
from app.core.config import SETTINGS
from app.core.errors import (
    AppError,
    AuthenticationError,
    DuplicateRecordError,
    EntityValidationError,
    IdentityResolutionError,
    LimitExceededError,
    OwnerNotResolvedError,
    PermissionDeniedError,
    RecordNotFoundError,
    ServiceUnavailableError,
    StorageLimitExceededError,
)
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.services.identity_provider import lifespan_identity_provider

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

# Most specific class first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (IdentityResolutionError, status.HTTP_403_FORBIDDEN),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (EntityValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateRecordError, status.HTTP_409_CONFLICT),
    (OwnerNotResolvedError, status.HTTP_409_CONFLICT),
    (LimitExceededError, status.HTTP_409_CONFLICT),
    (StorageLimitExceededError, status.HTTP_413_CONTENT_TOO_LARGE),
)


def status_for(error: AppError) -> int:
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(error, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AppError)
    code = status_for(exc)
    body = {"error": exc.kind, "message": exc.user_message}
    # Outage details name internal hosts; keep them in the logs only.
    if code == status.HTTP_503_SERVICE_UNAVAILABLE:
        logger.error("Dependency unavailable  kind=%s detail=%s", exc.kind, exc)
    else:
        body["detail"] = str(exc)
    return JSONResponse(status_code=code, content=body)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one hook fails.
    async with lifespan_db():
        async with lifespan_redis():
            async with lifespan_identity_provider():
                yield


app = FastAPI(
    title="ministry-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(AppError, app_error_handler)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(users_router)
app.include_router(events_router)
app.include_router(music_router)
app.include_router(files_router)
app.include_router(teams_router)

logger.info(
    "ministry-service started  env=%s log_level=%s port=%d identity_provider=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.identity_provider,
    "on" if SETTINGS.is_dev else "off",
)
