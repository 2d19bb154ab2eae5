# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""mcpkit: server-side transports and factory for the Model Context Protocol."""

from __future__ import annotations

from .config import (
    TRANSPORT_CONFIG_VARIANTS,
    ServerConfig,
    SseTransportConfig,
    StdioTransportConfig,
    StreamableHttpTransportConfig,
    TransportConfig,
)
from .result import Failure, Result, Success
from .server import (
    MCPServer,
    ServerConnectionError,
    create_and_start,
    create_in_memory_transport,
    create_server,
    create_sse_transport,
    create_stdio_transport,
    create_streamable_http_transport,
    create_streamable_http_transport_async,
    create_transport,
)
from .server.transports import (
    InMemoryServerTransport,
    ServerTransport,
    SseServerTransport,
    StdioServerTransport,
    StreamableHttpServerTransport,
    TransportConstructionError,
    TransportError,
    TransportStartError,
)


__all__ = [
    "TRANSPORT_CONFIG_VARIANTS",
    "Failure",
    "InMemoryServerTransport",
    "MCPServer",
    "Result",
    "ServerConfig",
    "ServerConnectionError",
    "ServerTransport",
    "SseServerTransport",
    "SseTransportConfig",
    "StdioServerTransport",
    "StdioTransportConfig",
    "StreamableHttpServerTransport",
    "StreamableHttpTransportConfig",
    "Success",
    "TransportConfig",
    "TransportConstructionError",
    "TransportError",
    "TransportStartError",
    "create_and_start",
    "create_in_memory_transport",
    "create_server",
    "create_sse_transport",
    "create_stdio_transport",
    "create_streamable_http_transport",
    "create_streamable_http_transport_async",
    "create_transport",
]
