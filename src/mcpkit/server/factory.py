# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Construct servers and transports from configuration values.

Public entry points return a :data:`~mcpkit.result.Result`; they never raise
for construction, startup or connection faults.  The raising primitives
(:func:`build_transport`, :func:`_create_transport`) are what those entry points
wrap.

Dispatch over :data:`~mcpkit.config.TransportConfig` is an exhaustive ``match``
closed with :func:`typing.assert_never`, so a type checker rejects a new
variant that is not handled here.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import assert_never

from .core import MCPServer
from .transports import (
    InMemoryServerTransport,
    ServerTransport,
    SseServerTransport,
    StdioServerTransport,
    StreamableHttpServerConfig,
    StreamableHttpServerTransport,
    TransportStartError,
)
from ..config import (
    ServerConfig,
    SseTransportConfig,
    StdioTransportConfig,
    StreamableHttpTransportConfig,
    TransportConfig,
    default_fallback_ports,
)
from ..result import Failure, Result, Success, catching, catching_async


# //////////////////////////////////////////////////////////////////
# Servers
# //////////////////////////////////////////////////////////////////


def create_server(config: ServerConfig) -> MCPServer:
    """Build a protocol server from *config*.

    ``enable_debug_logging`` sets this server's logger to ``DEBUG``; other
    loggers and the root logger are left alone.
    """
    return MCPServer(
        config.name,
        version=config.version,
        capabilities=config.capabilities,
        request_timeout=config.request_timeout,
        log_level=logging.DEBUG if config.enable_debug_logging else None,
    )


async def create_and_start(
    config: ServerConfig, transport_config: TransportConfig
) -> Result[MCPServer, Exception]:
    """Build a server, resolve its transport and connect the two.

    Any failure along the way comes back as :class:`~mcpkit.result.Failure`; a
    transport created before a failed ``connect`` is closed again.
    """

    async def assemble() -> MCPServer:
        server = create_server(config)
        transport = await _create_transport(transport_config, logger=server.logger.getChild("transport"))
        try:
            server.connect(transport)
        except Exception:
            transport.close()
            raise
        return server

    return await catching_async(assemble)


# //////////////////////////////////////////////////////////////////
# Transport dispatch
# //////////////////////////////////////////////////////////////////


def _streamable_http_server_config(config: StreamableHttpTransportConfig) -> StreamableHttpServerConfig:
    return StreamableHttpServerConfig(
        host=config.host,
        port=config.port,
        endpoint=config.endpoint,
        fallback_ports=config.fallback_ports,
        is_json_response_enabled=config.is_json_response_enabled,
        auth_token=config.auth_token,
    )


def build_transport(config: TransportConfig, *, logger: logging.Logger | None = None) -> ServerTransport:
    """Construct the transport described by *config* without starting it."""
    match config:
        case StdioTransportConfig():
            return StdioServerTransport(logger=logger)
        case SseTransportConfig():
            return SseServerTransport(
                endpoint=config.endpoint,
                messages_endpoint=config.messages_endpoint,
                host=config.host,
                port=config.port,
                fallback_ports=config.fallback_ports,
                auth_token=config.auth_token,
                middleware=config.middleware,
                logger=logger,
            )
        case StreamableHttpTransportConfig():
            return StreamableHttpServerTransport(
                _streamable_http_server_config(config), middleware=config.middleware, logger=logger
            )
        case _:
            assert_never(config)


async def _create_transport(config: TransportConfig, *, logger: logging.Logger | None = None) -> ServerTransport:
    """Construct the transport for *config* and wait until it is available.

    Stdio and SSE return without suspending.  Streamable HTTP awaits
    :meth:`StreamableHttpServerTransport.start` first.
    """
    match config:
        case StdioTransportConfig() | SseTransportConfig():
            return build_transport(config, logger=logger)
        case StreamableHttpTransportConfig():
            transport = StreamableHttpServerTransport(
                _streamable_http_server_config(config), middleware=config.middleware, logger=logger
            )
            try:
                await transport.start()
            except BaseException:
                transport.close()
                raise
            return transport
        case _:
            assert_never(config)


async def create_transport(config: TransportConfig) -> Result[ServerTransport, Exception]:
    """Resolve *config* into an available transport."""
    return await catching_async(lambda: _create_transport(config))


# //////////////////////////////////////////////////////////////////
# Per-binding helpers
# //////////////////////////////////////////////////////////////////


def create_stdio_transport() -> Result[StdioServerTransport, Exception]:
    return catching(StdioServerTransport)


def create_in_memory_transport() -> Result[InMemoryServerTransport, Exception]:
    return catching(InMemoryServerTransport)


def create_sse_transport(config: SseTransportConfig) -> Result[SseServerTransport, Exception]:
    """Construct an SSE transport.  The listener is bound when it is served."""
    return catching(
        lambda: SseServerTransport(
            endpoint=config.endpoint,
            messages_endpoint=config.messages_endpoint,
            host=config.host,
            port=config.port,
            fallback_ports=config.fallback_ports,
            auth_token=config.auth_token,
            middleware=config.middleware,
        )
    )


def _streamable_http_transport(
    port: int,
    *,
    endpoint: str,
    host: str,
    fallback_ports: Iterable[int] | None,
    is_json_response_enabled: bool,
    session_id: str | None,
    auth_token: str | None,
) -> StreamableHttpServerTransport:
    config = StreamableHttpServerConfig(
        host=host,
        port=port,
        endpoint=endpoint,
        fallback_ports=default_fallback_ports(port) if fallback_ports is None else tuple(fallback_ports),
        is_json_response_enabled=is_json_response_enabled,
        auth_token=auth_token,
    )
    return StreamableHttpServerTransport(config, session_id=session_id)


def create_streamable_http_transport(
    port: int,
    *,
    endpoint: str = "/mcp",
    host: str = "localhost",
    fallback_ports: Iterable[int] | None = None,
    is_json_response_enabled: bool = False,
    session_id: str | None = None,
    auth_token: str | None = None,
) -> Result[StreamableHttpServerTransport, Exception]:
    """Construct a Streamable HTTP transport without starting it.

    Fallback ports default to the three ports after *port*.
    """
    return catching(
        lambda: _streamable_http_transport(
            port,
            endpoint=endpoint,
            host=host,
            fallback_ports=fallback_ports,
            is_json_response_enabled=is_json_response_enabled,
            session_id=session_id,
            auth_token=auth_token,
        )
    )


async def create_streamable_http_transport_async(
    port: int,
    *,
    endpoint: str = "/mcp",
    host: str = "localhost",
    fallback_ports: Iterable[int] | None = None,
    is_json_response_enabled: bool = False,
    session_id: str | None = None,
    auth_token: str | None = None,
) -> Result[StreamableHttpServerTransport, Exception]:
    """Construct a Streamable HTTP transport and wait for its listener."""
    transport: StreamableHttpServerTransport | None = None
    try:
        transport = _streamable_http_transport(
            port,
            endpoint=endpoint,
            host=host,
            fallback_ports=fallback_ports,
            is_json_response_enabled=is_json_response_enabled,
            session_id=session_id,
            auth_token=auth_token,
        )
        await transport.start()
    except Exception as exc:
        if transport is not None:
            transport.close()
        error = TransportStartError(f"Failed to create StreamableHTTP transport: {exc}")
        error.__cause__ = exc
        return Failure(error)
    return Success(transport)


__all__ = [
    "build_transport",
    "create_and_start",
    "create_in_memory_transport",
    "create_server",
    "create_sse_transport",
    "create_stdio_transport",
    "create_streamable_http_transport",
    "create_streamable_http_transport_async",
    "create_transport",
]
