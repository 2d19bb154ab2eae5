# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Adapter between the reference SDK's stream pairs and :class:`ServerTransport`.

The SDK transports (``stdio_server``, ``SseServerTransport.connect_sse``,
``StreamableHTTPServerTransport.connect``) hand out an anyio
``(read_stream, write_stream)`` pair.  :class:`StreamBridgeTransport` publishes
everything read from the pair on ``on_message`` and drains ``send`` calls into
the write side, so network bindings satisfy the same contract as the
in-memory transport.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

import anyio

from .base import ServerTransport
from .channel import BroadcastChannel, ChannelReader, CloseSignal


if TYPE_CHECKING:
    from anyio.abc import ObjectReceiveStream, ObjectSendStream
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream


class StreamBridgeTransport(ServerTransport):
    """Base for bindings whose wire I/O is delegated to the reference SDK."""

    def __init__(self, *, label: str, logger: logging.Logger) -> None:
        self._label = label
        self._logger = logger
        self._inbound: BroadcastChannel[Any] = BroadcastChannel(f"{label}.inbound")
        self._close_signal = CloseSignal()
        self._is_closed = False
        self._outbound_send: MemoryObjectSendStream[Any]
        self._outbound_receive: MemoryObjectReceiveStream[Any]
        self._outbound_send, self._outbound_receive = anyio.create_memory_object_stream[Any](math.inf)
        self._serve_scope: anyio.CancelScope | None = None

    @property
    def on_message(self) -> ChannelReader[Any]:
        return self._inbound.reader

    @property
    def on_close(self) -> CloseSignal:
        return self._close_signal

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def send(self, message: Any) -> None:
        if self._is_closed:
            self._logger.debug("Attempted to send message on closed %s transport", self._label)
            return
        self._outbound_send.send_nowait(message)

    def close(self) -> None:
        if self._is_closed:
            return
        self._is_closed = True

        self._logger.debug("Closing %s transport", self._label)
        self._inbound.close()
        self._outbound_send.close()
        self._on_closing()
        if self._serve_scope is not None:
            self._serve_scope.cancel()

        self._close_signal.complete()

    def _on_closing(self) -> None:
        """Hook for subclasses to release binding-specific resources."""

    def _fail(self, error: BaseException) -> None:
        self._logger.debug("%s transport failed: %r", self._label, error)
        self._close_signal.fail(error)
        self.close()

    async def _bridge(
        self, read_stream: ObjectReceiveStream[Any], write_stream: ObjectSendStream[Any]
    ) -> None:
        """Pump *read_stream* into ``on_message`` and queued sends into *write_stream*.

        Returns when the peer finishes sending or stops accepting messages; the
        transport is closed at that point.  A failure raised by *read_stream* is
        recorded on ``on_close``.
        """
        error: Exception | None = None
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._drain_outbound, write_stream, tg.cancel_scope)
            error = await self._pump_inbound(read_stream)
            tg.cancel_scope.cancel()

        if error is not None:
            self._fail(error)
        else:
            self.close()

    async def _pump_inbound(self, read_stream: ObjectReceiveStream[Any]) -> Exception | None:
        try:
            async for message in read_stream:
                if self._inbound.is_closed:
                    break
                self._inbound.add(message)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            self._logger.debug("%s peer went away", self._label)
        except Exception as exc:
            return exc
        return None

    async def _drain_outbound(self, write_stream: ObjectSendStream[Any], scope: anyio.CancelScope) -> None:
        try:
            async for message in self._outbound_receive:
                await write_stream.send(message)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            self._logger.debug("%s peer stopped accepting messages", self._label)
            scope.cancel()


__all__ = ["StreamBridgeTransport"]
