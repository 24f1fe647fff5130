from __future__ import annotations

import json
import logging
import sys

from app.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging
from app.middleware.request_context import (
    _RequestContextFilter,
    bind_session_context,
    client_key_var,
    request_id_var,
)


def _record(level: int = logging.INFO, msg: str = "hello", args: tuple = ()) -> logging.LogRecord:
    return logging.LogRecord(
        name="app.services.session_manager",
        level=level,
        pathname="session_manager.py",
        lineno=7,
        msg=msg,
        args=args,
        exc_info=None,
    )


# ---- setup_logging ----


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_sql_and_http_clients_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_uses_json_formatter_when_asked() -> None:
    setup_logging("info", json_format=True)
    handler = logging.getLogger().handlers[0]
    assert isinstance(handler.formatter, _JsonFormatter)
    setup_logging("info")


# ---- container format ----


def test_container_format_has_no_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "session_manager.py:7" not in output
    assert "hello" in output


def test_container_format_adds_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING))
    assert "[session_manager.py:7]" in output


def test_container_format_appends_tenant_when_bound() -> None:
    record = _record()
    record.organization_id = 3  # type: ignore[attr-defined]
    record.user_id = 11  # type: ignore[attr-defined]
    assert _ContainerFormatter().format(record).endswith("hello  org=3 user=11")

    assert _ContainerFormatter().format(_record()).endswith("  hello")


# ---- JSON format ----


def test_json_format_is_one_parseable_object() -> None:
    output = _JsonFormatter().format(_record(msg="Login failed  method=%s", args=("password",)))
    parsed = json.loads(output)
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "app.services.session_manager"
    assert parsed["message"] == "Login failed  method=password"


def test_json_format_carries_tenant_context() -> None:
    record = _record()
    record.request_id = "req-1"  # type: ignore[attr-defined]
    record.client_key = "sid-abc"  # type: ignore[attr-defined]
    record.user_id = 4  # type: ignore[attr-defined]
    record.organization_id = 2  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "req-1"
    assert parsed["client_key"] == "sid-abc"
    assert parsed["user_id"] == 4
    assert parsed["organization_id"] == 2


def test_json_format_omits_unset_context() -> None:
    record = _record()
    record.client_key = "-"  # type: ignore[attr-defined]
    parsed = json.loads(_JsonFormatter().format(record))
    assert "client_key" not in parsed
    assert "organization_id" not in parsed


def test_json_format_includes_exception() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record(logging.ERROR)
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)
    assert "ValueError: boom" in json.loads(output)["exception"]


# ---- context filter ----


def test_context_filter_copies_bound_session_onto_records() -> None:
    req_token = request_id_var.set("req-9")
    key_token = client_key_var.set("-")
    try:
        bind_session_context(client_key="sid-xyz", user_id=11, organization_id=3)
        record = _record()
        assert _RequestContextFilter().filter(record) is True
        assert record.request_id == "req-9"  # type: ignore[attr-defined]
        assert record.client_key == "sid-xyz"  # type: ignore[attr-defined]
        assert record.user_id == 11  # type: ignore[attr-defined]
        assert record.organization_id == 3  # type: ignore[attr-defined]
    finally:
        bind_session_context()
        request_id_var.reset(req_token)
        client_key_var.reset(key_token)
