# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Server and transport configuration values.

``ServerConfig`` describes the protocol server a factory builds, and
``TransportConfig`` is the closed set of transport shapes the factory can
dispatch on.  All values are frozen: they are constructed once, handed to
:mod:`mcpkit.server.factory`, and never updated afterwards.

The same field name can mean different things across variants.  ``endpoint``
is the SSE stream path for :class:`SseTransportConfig` but the request path
for :class:`StreamableHttpTransportConfig`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, TypeAlias, Union, get_args

from mcp import types
from starlette.middleware import Middleware


DEFAULT_FALLBACK_PORT_COUNT = 3


def default_fallback_ports(port: int, count: int = DEFAULT_FALLBACK_PORT_COUNT) -> tuple[int, ...]:
    """Return the ports tried after *port* when none are configured explicitly."""
    return tuple(port + offset for offset in range(1, count + 1))


def _freeze_ports(ports: Iterable[int]) -> tuple[int, ...]:
    return tuple(int(port) for port in ports)


@dataclass(frozen=True, slots=True, kw_only=True)
class ServerConfig:
    """Settings for the protocol server built by :func:`~mcpkit.server.factory.create_server`.

    ``max_connections``, ``request_timeout`` and ``enable_metrics`` are carried
    for the server layer; the transports do not enforce them.
    """

    name: str
    version: str
    capabilities: types.ServerCapabilities = field(default_factory=types.ServerCapabilities)
    enable_debug_logging: bool = False
    max_connections: int = 100
    request_timeout: timedelta = timedelta(seconds=30)
    enable_metrics: bool = False

    def __hash__(self) -> int:
        # pydantic models are unhashable; their canonical JSON stands in.
        return hash(
            (
                self.name,
                self.version,
                self.capabilities.model_dump_json(exclude_none=True),
                self.enable_debug_logging,
                self.max_connections,
                self.request_timeout,
                self.enable_metrics,
            )
        )

    def with_overrides(self, **changes: Any) -> ServerConfig:
        """Return a copy with *changes* applied.  Unknown fields raise ``TypeError``."""
        return replace(self, **changes)

    @classmethod
    def simple(cls, *, name: str, version: str, enable_debug_logging: bool = False) -> ServerConfig:
        """Tools, resources and prompts enabled; everything else at defaults."""
        return cls(
            name=name,
            version=version,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(),
                resources=types.ResourcesCapability(),
                prompts=types.PromptsCapability(),
            ),
            enable_debug_logging=enable_debug_logging,
        )

    @classmethod
    def production(
        cls, *, name: str, version: str, capabilities: types.ServerCapabilities | None = None
    ) -> ServerConfig:
        """Preset for long-running deployments: list-changed notifications, logging, metrics."""
        if capabilities is None:
            capabilities = types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=True),
                resources=types.ResourcesCapability(listChanged=True),
                prompts=types.PromptsCapability(listChanged=True),
                logging=types.LoggingCapability(),
            )
        return cls(
            name=name,
            version=version,
            capabilities=capabilities,
            enable_debug_logging=False,
            max_connections=1000,
            request_timeout=timedelta(seconds=60),
            enable_metrics=True,
        )


@dataclass(frozen=True, slots=True)
class StdioTransportConfig:
    """Serve over the process' ``stdin``/``stdout``."""


@dataclass(frozen=True, slots=True, kw_only=True)
class SseTransportConfig:
    """Serve over the legacy HTTP+SSE transport."""

    endpoint: str = "/sse"
    """Path clients open the event stream on."""

    messages_endpoint: str = "/message"
    """Path clients POST messages to."""

    host: str = "localhost"
    port: int = 8080
    fallback_ports: tuple[int, ...] = ()
    """Tried in order when ``port`` cannot be bound."""

    auth_token: str | None = None
    """Bearer token every request must present, if set."""

    middleware: tuple[Middleware, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fallback_ports", _freeze_ports(self.fallback_ports))
        object.__setattr__(self, "middleware", tuple(self.middleware))


@dataclass(frozen=True, slots=True, kw_only=True)
class StreamableHttpTransportConfig:
    """Serve over the Streamable HTTP transport."""

    host: str = "localhost"
    port: int = 8080
    endpoint: str = "/messages"
    """Path that accepts GET/POST/DELETE requests."""

    messages_endpoint: str = "/message"
    """Accepted for symmetry with SSE; the Streamable HTTP binding serves everything on ``endpoint``."""

    fallback_ports: tuple[int, ...] = ()
    auth_token: str | None = None
    is_json_response_enabled: bool = False
    """Answer POSTs with a JSON body instead of an SSE stream."""

    middleware: tuple[Middleware, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fallback_ports", _freeze_ports(self.fallback_ports))
        object.__setattr__(self, "middleware", tuple(self.middleware))

    @classmethod
    def on_port(
        cls, port: int, *, fallback_ports: Iterable[int] | None = None, **overrides: Any
    ) -> StreamableHttpTransportConfig:
        """Build a config for *port*, defaulting fallbacks to the next three ports."""
        ports = default_fallback_ports(port) if fallback_ports is None else fallback_ports
        return cls(port=port, fallback_ports=tuple(ports), **overrides)


TransportConfig: TypeAlias = Union[StdioTransportConfig, SseTransportConfig, StreamableHttpTransportConfig]

TRANSPORT_CONFIG_VARIANTS: tuple[type, ...] = get_args(TransportConfig)


__all__ = [
    "DEFAULT_FALLBACK_PORT_COUNT",
    "TRANSPORT_CONFIG_VARIANTS",
    "ServerConfig",
    "SseTransportConfig",
    "StdioTransportConfig",
    "StreamableHttpTransportConfig",
    "TransportConfig",
    "default_fallback_ports",
]
