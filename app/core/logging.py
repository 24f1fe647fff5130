"""Logging configuration for ministry-service.

Two output modes, chosen by LOG_JSON:

  text (default)  one line per record for a terminal.  When a session has
                  been resolved for the request, the tenant is appended:

      2026-03-01T10:00:00.123+0000 WARNING  app.api.events  Event not found  org=3 user=11

  json            JSON Lines for log aggregation.  Every context field the
                  request-context filter attached becomes a top-level key,
                  so one tenant's activity can be filtered out of the stream.

Secrets never reach the log stream: passwords, provider access tokens and
OAuth code verifiers are not passed to any logger call.  Emails and
numeric user ids are logged so support can trace a failed login.
"""

from __future__ import annotations

import json
import logging
import sys

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "client_key",
    "user_id",
    "organization_id",
    "status_code",
    "duration_ms",
)

_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)

_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _context_of(record: logging.LogRecord) -> dict[str, object]:
    """Context fields that are set on ``record``; "-" means unbound."""
    found: dict[str, object] = {}
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None and value != "-":
            found[key] = value
    return found


def _iso_millis(formatter: logging.Formatter, record: logging.LogRecord) -> str:
    base = logging.Formatter.formatTime(formatter, record, _DATEFMT)
    # Splice .mmm in front of the +HHMM offset.
    return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"


class _ContainerFormatter(logging.Formatter):
    """Single-line text format.

    WARNING and above get ``[file:line]`` so the failing guard is easy to
    find; exc_info is rendered below the line as usual.
    """

    _FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s%(tenant)s"

    def __init__(self) -> None:
        super().__init__(self._FMT, datefmt=_DATEFMT)
        self._located = logging.PercentStyle(self._FMT + "  [%(filename)s:%(lineno)d]")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(self, record)

    def formatMessage(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        tags = [
            f"{label}={context[key]}"
            for key, label in (("organization_id", "org"), ("user_id", "user"))
            if key in context
        ]
        record.tenant = "  " + " ".join(tags) if tags else ""  # type: ignore[attr-defined]
        if record.levelno >= logging.WARNING:
            return self._located.format(record)
        return self._style.format(record)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(self, record)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context_of(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Route every logger to stdout at ``level_name`` (debug/info/warning/error).

    Unknown level names fall back to INFO.  HTTP-client, server and SQL
    loggers never go below WARNING, even at debug.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
