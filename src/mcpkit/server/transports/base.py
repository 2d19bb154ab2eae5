"""Transport contract for :mod:`mcpkit.server`.

Every binding (in-memory, stdio, SSE, Streamable HTTP) implements
:class:`ServerTransport`.  The server facade only ever talks to this surface,
so a new binding plugs in without touching :class:`~mcpkit.server.core.MCPServer`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .channel import ChannelReader, CloseSignal


class TransportError(RuntimeError):
    """Base class for transport construction and startup failures."""


class TransportConstructionError(TransportError):
    """Raised while building a transport from invalid parameters."""


class TransportStartError(TransportError):
    """Raised when a network binding cannot start listening."""


class ServerTransport(ABC):
    """Duplex channel carrying opaque messages between a server and its peer.

    Lifecycle: constructed -> (network bindings) starting -> active -> closed.
    ``closed`` is terminal.  Messages sent by one side arrive at the other side
    in the order they were sent; nothing is promised across directions.
    """

    @property
    @abstractmethod
    def on_message(self) -> ChannelReader[Any]:
        """Messages received from the peer, in arrival order, until close."""

    @property
    @abstractmethod
    def on_close(self) -> CloseSignal:
        """Fires exactly once when the transport closes.

        A peer-raised fault is recorded as the signal's failure.
        """

    @property
    @abstractmethod
    def is_closed(self) -> bool: ...

    @abstractmethod
    def send(self, message: Any) -> None:
        """Queue *message* for the peer.  Dropped without error after close."""

    @abstractmethod
    def close(self) -> None:
        """Tear the transport down.  Only the first call has any effect."""

    async def serve(self) -> None:
        """Drive the binding's I/O until the transport closes.

        The default suits transports with no I/O of their own: it simply waits
        for :attr:`on_close` to settle.
        """
        await self.on_close.settled()


def validate_port(port: int, *, label: str = "port") -> int:
    if not isinstance(port, int) or isinstance(port, bool) or not 0 <= port <= 65535:
        raise TransportConstructionError(f"{label} must be an integer between 0 and 65535 (got {port!r})")
    return port


def validate_path(path: str, *, label: str = "endpoint") -> str:
    if not isinstance(path, str) or not path.startswith("/"):
        raise TransportConstructionError(f"{label} must be an absolute path starting with '/' (got {path!r})")
    return path


__all__ = [
    "ServerTransport",
    "TransportConstructionError",
    "TransportError",
    "TransportStartError",
    "validate_path",
    "validate_port",
]
