from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
IdentityProviderName = Literal["memory", "gotrue"]

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")

DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 3600


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str) -> bool:
    raw = _getenv(name, default).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be true|false (got {raw!r})")


def _getlist(name: str, *, lower: bool = False) -> tuple[str, ...]:
    raw = _getenv(name, "")
    items = (part.strip() for part in raw.split(","))
    return tuple(item.lower() if lower else item for item in items if item)


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    port: int
    database_url: str | None
    redis_url: str | None
    log_json: bool = False
    identity_provider: IdentityProviderName = "memory"
    auth_url: str | None = None
    auth_api_key: str | None = None
    oauth_redirect_url: str = "http://localhost:5173/auth/callback"
    # Lower-cased emails that resolve to the super-admin ("admin master") role.
    super_admin_emails: tuple[str, ...] = ()
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    revalidate_on_restore: bool = False
    cors_origins: tuple[str, ...] = ("http://localhost:5173",)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    provider_raw = _getenv("IDENTITY_PROVIDER", "memory").lower()
    ttl_raw = _getenv("SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS))

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    if provider_raw not in ("memory", "gotrue"):
        raise ValueError(
            f"IDENTITY_PROVIDER must be memory|gotrue (got {provider_raw!r})"
        )

    try:
        session_ttl = int(ttl_raw)
    except ValueError:
        raise ValueError(
            f"SESSION_TTL_SECONDS must be an integer (got {ttl_raw!r})"
        ) from None
    if session_ttl <= 0:
        raise ValueError(f"SESSION_TTL_SECONDS must be positive (got {session_ttl})")

    auth_url = _getenv("AUTH_URL", "").rstrip("/") or None
    auth_api_key = _getenv("AUTH_API_KEY", "") or None
    if provider_raw == "gotrue" and (auth_url is None or auth_api_key is None):
        raise ValueError("IDENTITY_PROVIDER=gotrue requires AUTH_URL and AUTH_API_KEY")

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", "false"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        identity_provider=provider_raw,
        auth_url=auth_url,
        auth_api_key=auth_api_key,
        oauth_redirect_url=_getenv(
            "OAUTH_REDIRECT_URL", "http://localhost:5173/auth/callback"
        ),
        super_admin_emails=_getlist("SUPER_ADMIN_EMAILS", lower=True),
        session_ttl_seconds=session_ttl,
        revalidate_on_restore=_getbool("REVALIDATE_ON_RESTORE", "false"),
        cors_origins=_getlist("CORS_ORIGINS") or ("http://localhost:5173",),
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
