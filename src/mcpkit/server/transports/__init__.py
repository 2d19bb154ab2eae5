# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Transport bindings for mcpkit servers.

Every binding implements :class:`ServerTransport`.  The in-memory transport is
self-contained; the network bindings wrap the reference SDK's transport
primitives so applications can swap them without touching the server class.
"""

from __future__ import annotations

from .base import ServerTransport, TransportConstructionError, TransportError, TransportStartError
from .channel import (
    BroadcastChannel,
    ChannelClosedError,
    ChannelReader,
    ChannelSink,
    ChannelStream,
    CloseSignal,
    Subscription,
)
from .in_memory import InMemoryServerTransport
from .sse import SseServerTransport
from .stdio import StdioServerTransport
from .streamable_http import StreamableHttpServerConfig, StreamableHttpServerTransport


__all__ = [
    "BroadcastChannel",
    "ChannelClosedError",
    "ChannelReader",
    "ChannelSink",
    "ChannelStream",
    "CloseSignal",
    "InMemoryServerTransport",
    "ServerTransport",
    "SseServerTransport",
    "StdioServerTransport",
    "StreamableHttpServerConfig",
    "StreamableHttpServerTransport",
    "Subscription",
    "TransportConstructionError",
    "TransportError",
    "TransportStartError",
]
