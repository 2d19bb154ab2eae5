# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Logging utilities for mcpkit.

Built on the standard library's :mod:`logging`.  :func:`setup_logger` attaches
a single :class:`MCPKitHandler` to the root logger; :func:`get_logger` hands out
named loggers and can set a level on just that logger, which is how a server
built with ``enable_debug_logging`` turns on its own debug output without
touching anything else.

Records carrying a ``duration_ms`` attribute (for example listener binding)
are rendered with a ``[12.35 ms]`` suffix in plain and colored output.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, ClassVar, Final


RESET: Final[str] = "\033[0m"
DEBUG_COLOR: Final[str] = "\033[36m"
INFO_COLOR: Final[str] = "\033[32m"
WARNING_COLOR: Final[str] = "\033[33m"
ERROR_COLOR: Final[str] = "\033[1;31m"
CRITICAL_COLOR: Final[str] = "\033[1;35m"
LOGGER_COLOR: Final[str] = "\033[94m"
DURATION_COLOR: Final[str] = "\033[90m"

DEFAULT_LOGGER_NAME: Final[str] = "mcpkit"
ENV_LOG_LEVEL: Final[str] = "MCPKIT_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "MCPKIT_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]
PayloadTransformer = Callable[[dict[str, Any]], dict[str, Any]]

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "context", "taskName"}


def _duration_suffix(record: logging.LogRecord) -> str:
    duration = getattr(record, "duration_ms", None)
    if duration is None:
        return ""
    return f" [{float(duration):.2f} ms]"


class PlainFormatter(logging.Formatter):
    """Uncolored formatter that appends the ``duration_ms`` suffix."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _duration_suffix(record)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level and logger name with ANSI escapes.

    Override ``LEVEL_COLORS`` to customize colors per level.
    """

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": DEBUG_COLOR,
        "INFO": INFO_COLOR,
        "WARNING": WARNING_COLOR,
        "ERROR": ERROR_COLOR,
        "CRITICAL": CRITICAL_COLOR,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{name}{RESET}"
        try:
            rendered = super().format(record)
        finally:
            record.levelname, record.name = levelname, name

        suffix = _duration_suffix(record)
        if suffix:
            rendered += f"{DURATION_COLOR}{suffix}{RESET}"
        return rendered


class MCPKitHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler installed by :func:`setup_logger`.

    It does not filter by level itself; loggers decide, so a single logger can
    be made more verbose than its parents.
    """


class StructuredJSONFormatter(logging.Formatter):
    """Serialize records as JSON through a pluggable serializer."""

    def __init__(
        self,
        serializer: JsonSerializer,
        *,
        datefmt: str | None = None,
        payload_transformer: PayloadTransformer | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer
        self._transformer = payload_transformer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context: dict[str, Any] = {}
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict):
            context.update(explicit)
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in context:
                context[key] = value
        if context:
            payload["context"] = context

        if self._transformer is not None:
            payload = self._transformer(payload)
        return self._serializer(payload)


def _json_dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _env_flag(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _installed_handlers(root: logging.Logger) -> list[MCPKitHandler]:
    return [handler for handler in root.handlers if isinstance(handler, MCPKitHandler)]


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    payload_transformer: PayloadTransformer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach the mcpkit handler to the root logger.

    Args:
        level: Root level.  Falls back to ``MCPKIT_LOG_LEVEL``, then ``INFO``.
        use_json: Emit JSON.  Defaults to ``MCPKIT_LOG_JSON``.
        use_color: Emit ANSI colors.  Defaults to on unless ``NO_COLOR`` is set
            or JSON output is selected.
        json_serializer: Converts the payload dict into a string (e.g. ``orjson``).
        payload_transformer: Adjusts the payload before serialization.
        fmt: Format string for plain and colored output.
        datefmt: Date format.
        force: Replace a previously installed mcpkit handler.
    """
    root = logging.getLogger()
    installed = _installed_handlers(root)
    if installed and not force:
        return
    for handler in installed:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(_resolve_level(level))

    json_output = _env_flag(ENV_LOG_JSON) if use_json is None else use_json
    if use_color is None:
        use_color = not json_output and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if json_output:
        formatter = StructuredJSONFormatter(
            json_serializer or _json_dumps, datefmt=datefmt, payload_transformer=payload_transformer
        )
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = PlainFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = MCPKitHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str | None = None, *, level: int | str | None = None) -> logging.Logger:
    """Return a named logger, installing the mcpkit handler on first use.

    Args:
        name: Logger name.  Defaults to ``DEFAULT_LOGGER_NAME``.
        level: When given, applied to this logger only.
    """
    if not _installed_handlers(logging.getLogger()):
        setup_logger()
    logger = logging.getLogger(name or DEFAULT_LOGGER_NAME)
    if level is not None:
        logger.setLevel(_resolve_level(level))
    return logger


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "MCPKitHandler",
    "PlainFormatter",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
