# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""In-process transport pairing a server with a co-located client.

Useful for tests and for embedding a server in the same process as its client.
No network stack is involved; three broadcast channels carry the traffic:

* *inbound* – written by the client through :attr:`InMemoryServerTransport.inbound_sink`.
* *internal* – a forward of inbound, read by the server through ``on_message``.
* *outbound* – written by the server through ``send``, read by the client through
  :attr:`InMemoryServerTransport.outbound_stream`.

Neither end owns the pairing: closing from either side tears down the whole
transport.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
import math
from typing import TYPE_CHECKING, Any

import anyio

from .base import ServerTransport
from .channel import BroadcastChannel, ChannelReader, ChannelSink, CloseSignal
from ...utils import get_logger


if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream


class InMemoryServerTransport(ServerTransport):
    """Duplex in-memory binding of the :class:`ServerTransport` contract."""

    TRANSPORT = ("in-memory", "In-Memory")

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or get_logger("mcpkit.transport.in_memory")
        self._messages: BroadcastChannel[Any] = BroadcastChannel("in_memory.internal")
        self._outbound: BroadcastChannel[Any] = BroadcastChannel("in_memory.outbound")
        self._inbound: BroadcastChannel[Any] = BroadcastChannel("in_memory.inbound")
        self._close_signal = CloseSignal()
        self._is_closed = False

        self._logger.debug("Initializing in-memory transport")
        self._inbound.listen(self._forward_inbound, on_error=self._on_inbound_error, on_done=self._on_inbound_done)

    # //////////////////////////////////////////////////////////////////
    # Client-facing view
    # //////////////////////////////////////////////////////////////////

    @property
    def outbound_stream(self) -> ChannelReader[Any]:
        """Messages sent by the server.  The client listens here."""
        return self._outbound.reader

    @property
    def inbound_sink(self) -> ChannelSink[Any]:
        """Where the client writes messages for the server."""
        return self._inbound.sink

    @asynccontextmanager
    async def client_streams(
        self,
    ) -> AsyncIterator[tuple[MemoryObjectReceiveStream[Any], MemoryObjectSendStream[Any]]]:
        """Yield ``(read_stream, write_stream)`` for a client session.

        The pair matches what :class:`mcp.client.session.ClientSession` expects.
        Leaving the context closes the inbound sink, which the server observes
        as a graceful disconnect.
        """
        read_writer, read_stream = anyio.create_memory_object_stream[Any](math.inf)
        write_stream, write_reader = anyio.create_memory_object_stream[Any](math.inf)
        outbound = self.outbound_stream.stream()

        async def pump_outbound() -> None:
            async with read_writer:
                async for message in outbound:
                    try:
                        await read_writer.send(message)
                    except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                        return

        async def pump_inbound() -> None:
            async with write_reader:
                async for message in write_reader:
                    self.inbound_sink.add(message)

        async with anyio.create_task_group() as tg:
            tg.start_soon(pump_outbound)
            tg.start_soon(pump_inbound)
            try:
                yield read_stream, write_stream
            finally:
                tg.cancel_scope.cancel()
                outbound.close()
                write_stream.close()
                self.inbound_sink.close()

    # //////////////////////////////////////////////////////////////////
    # ServerTransport
    # //////////////////////////////////////////////////////////////////

    @property
    def on_message(self) -> ChannelReader[Any]:
        return self._messages.reader

    @property
    def on_close(self) -> CloseSignal:
        return self._close_signal

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def send(self, message: Any) -> None:
        if self._is_closed:
            self._logger.debug("Attempted to send message on closed transport")
            return

        self._logger.debug("Sending message to client: %r", message)
        if not self._outbound.is_closed:
            self._outbound.add(message)

    def close(self) -> None:
        if self._is_closed:
            return
        self._is_closed = True

        self._logger.debug("Closing in-memory transport")
        self._messages.close()
        self._outbound.close()
        self._inbound.close()

        self._close_signal.complete()

    # //////////////////////////////////////////////////////////////////
    # Inbound wiring
    # //////////////////////////////////////////////////////////////////

    def _forward_inbound(self, message: Any) -> None:
        if self._messages.is_closed:
            return
        self._logger.debug("Received message from client: %r", message)
        self._messages.add(message)

    def _on_inbound_error(self, error: BaseException) -> None:
        self._logger.debug("Inbound stream error: %r", error)
        self._close_signal.fail(error)
        self.close()

    def _on_inbound_done(self) -> None:
        self._logger.debug("Inbound stream done")
        self.close()


__all__ = ["InMemoryServerTransport"]
