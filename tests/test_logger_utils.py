# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import io
import json
import logging
from typing import Any

import pytest

from mcpkit.utils.logger import (
    ColoredFormatter,
    MCPKitHandler,
    PlainFormatter,
    StructuredJSONFormatter,
    get_logger,
    setup_logger,
)


def _capture_json(**kwargs: Any) -> dict[str, Any]:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        StructuredJSONFormatter(
            kwargs.pop("json_serializer", json.dumps),
            datefmt=None,
            payload_transformer=kwargs.pop("payload_transformer", None),
        )
    )

    logger = logging.getLogger("mcpkit.test.json")
    logger.handlers = [handler]
    logger.setLevel(logging.INFO)
    logger.propagate = False
    try:
        logger.info("bound listener", extra=kwargs.pop("extra", {"context": {"port": 8080}}))
        handler.flush()
    finally:
        logger.handlers = []
        logger.propagate = True

    return json.loads(stream.getvalue().strip())


def test_setup_logger_installs_single_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCPKIT_LOG_JSON", "0")
    setup_logger(force=True)
    setup_logger()

    handlers = [h for h in logging.getLogger().handlers if isinstance(h, MCPKitHandler)]

    assert len(handlers) == 1
    assert handlers[0].level == logging.NOTSET


def test_setup_logger_honours_json_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCPKIT_LOG_JSON", "1")
    setup_logger(force=True)

    try:
        handler = next(h for h in logging.getLogger().handlers if isinstance(h, MCPKitHandler))
        assert isinstance(handler.formatter, StructuredJSONFormatter)
    finally:
        monkeypatch.setenv("MCPKIT_LOG_JSON", "0")
        setup_logger(force=True)


def test_setup_logger_plain_when_no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCPKIT_LOG_JSON", "0")
    monkeypatch.setenv("NO_COLOR", "1")
    setup_logger(force=True)

    handler = next(h for h in logging.getLogger().handlers if isinstance(h, MCPKitHandler))

    assert type(handler.formatter) is PlainFormatter


def test_get_logger_level_is_scoped_to_named_logger() -> None:
    parent = get_logger("mcpkit.test.scope")
    child = get_logger("mcpkit.test.scope.verbose", level="debug")

    assert child.level == logging.DEBUG
    assert parent.level == logging.NOTSET
    assert get_logger().name == "mcpkit"


def test_json_payload_includes_context() -> None:
    payload = _capture_json()

    assert payload["logger"] == "mcpkit.test.json"
    assert payload["level"] == "info"
    assert payload["message"] == "bound listener"
    assert payload["context"] == {"port": 8080}


def test_json_payload_collects_extra_fields() -> None:
    payload = _capture_json(extra={"duration_ms": 1.5})

    assert payload["context"] == {"duration_ms": 1.5}


def test_payload_transformer_applied() -> None:
    payload = _capture_json(
        payload_transformer=lambda data: {**data, "context": {"transformed": data.get("context", {})}},
    )

    assert payload["context"] == {"transformed": {"port": 8080}}


def test_plain_formatter_appends_duration_suffix() -> None:
    formatter = PlainFormatter("%(message)s")
    record = logging.LogRecord("demo", logging.INFO, __file__, 0, "done", args=(), exc_info=None)
    record.duration_ms = 12.3456

    rendered = formatter.format(record)

    assert rendered == "done [12.35 ms]"


def test_plain_formatter_without_duration() -> None:
    formatter = PlainFormatter("%(message)s")
    record = logging.LogRecord("demo", logging.INFO, __file__, 0, "done", args=(), exc_info=None)

    assert formatter.format(record) == "done"


def test_colored_formatter_appends_duration_suffix() -> None:
    formatter = ColoredFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("demo", logging.INFO, __file__, 0, "done", args=(), exc_info=None)
    record.duration_ms = 7.0

    rendered = formatter.format(record)

    assert "[7.00 ms]" in rendered
    assert "\033[" in rendered
    assert record.levelname == "INFO"
