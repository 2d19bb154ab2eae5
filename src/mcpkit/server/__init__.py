# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Public server-side surface for mcpkit.

The server facade lives in :mod:`mcpkit.server.core`, the factory functions in
:mod:`mcpkit.server.factory` and the bindings in :mod:`mcpkit.server.transports`.
"""

from __future__ import annotations

from .core import MCPServer, ServerConnectionError
from .factory import (
    build_transport,
    create_and_start,
    create_in_memory_transport,
    create_server,
    create_sse_transport,
    create_stdio_transport,
    create_streamable_http_transport,
    create_streamable_http_transport_async,
    create_transport,
)


__all__ = [
    "MCPServer",
    "ServerConnectionError",
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
