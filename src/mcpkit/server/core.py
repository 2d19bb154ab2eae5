# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Protocol server facade that runs over any :class:`ServerTransport`.

Method dispatch, capability negotiation and the JSON-RPC session are owned by
the reference SDK's low-level ``Server``.  :class:`MCPServer` adds the seam
this package is about: :meth:`MCPServer.connect` attaches a transport, and
:meth:`MCPServer.run_connected` runs the SDK session over it until the
transport closes.
"""

from __future__ import annotations

from datetime import timedelta
import logging
import math
from typing import TYPE_CHECKING, Any, Callable, Mapping

import anyio
from mcp import types
from mcp.server.lowlevel.server import NotificationOptions, Server
from mcp.server.lowlevel.server import lifespan as default_lifespan
from mcp.shared.message import SessionMessage

from .transports.base import ServerTransport
from ..utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

    from .transports.channel import Subscription


class ServerConnectionError(RuntimeError):
    """Raised when a server cannot be attached to a transport."""


class MCPServer(Server[Any, Any]):
    """Low-level SDK server bound to a single :class:`ServerTransport`."""

    def __init__(
        self,
        name: str,
        *,
        version: str | None = None,
        capabilities: types.ServerCapabilities | None = None,
        instructions: str | None = None,
        request_timeout: timedelta | None = None,
        lifespan: Callable[[Server[Any, Any]], Any] = default_lifespan,
        log_level: int | None = None,
    ) -> None:
        super().__init__(name, version=version, instructions=instructions, lifespan=lifespan)
        self._declared_capabilities = capabilities
        self.request_timeout = request_timeout
        self._logger = get_logger(f"mcpkit.server.{name}", level=log_level)

        self._transport: ServerTransport | None = None
        self._subscription: Subscription | None = None
        self._read_send: MemoryObjectSendStream[SessionMessage | Exception] | None = None
        self._read_receive: MemoryObjectReceiveStream[SessionMessage | Exception] | None = None

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def transport(self) -> ServerTransport | None:
        return self._transport

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and not self._transport.is_closed

    def get_capabilities(
        self, notification_options: NotificationOptions, experimental_capabilities: Mapping[str, Mapping[str, Any]]
    ) -> types.ServerCapabilities:
        if self._declared_capabilities is not None:
            return self._declared_capabilities.model_copy(deep=True)
        experimental_dict = {key: dict(value) for key, value in experimental_capabilities.items()}
        return super().get_capabilities(notification_options, experimental_dict)

    # //////////////////////////////////////////////////////////////////
    # Transport attachment
    # //////////////////////////////////////////////////////////////////

    def connect(self, transport: ServerTransport) -> None:
        """Attach *transport*.  Messages received from now on are queued for the session."""
        if self._transport is not None:
            raise ServerConnectionError(f"Server {self.name!r} is already connected to a transport")
        if transport.is_closed:
            raise ServerConnectionError(f"Cannot connect server {self.name!r} to a closed transport")

        read_send, read_receive = anyio.create_memory_object_stream[SessionMessage | Exception](math.inf)

        def on_error(error: BaseException) -> None:
            if isinstance(error, Exception):
                read_send.send_nowait(error)
                return
            self._logger.debug("Dropping non-Exception fault from %s: %r", type(transport).__name__, error)

        self._subscription = transport.on_message.listen(
            read_send.send_nowait, on_error=on_error, on_done=read_send.close
        )
        transport.on_close.add_done_callback(self._on_transport_closed)
        self._read_send = read_send
        self._read_receive = read_receive
        self._transport = transport
        self._logger.info("Connected %s to %s", self.name, type(transport).__name__)

    def disconnect(self) -> None:
        """Close the connected transport, if any."""
        if self._transport is not None:
            self._transport.close()

    async def run_connected(self, *, raise_exceptions: bool = False, stateless: bool = False) -> None:
        """Run the protocol session over the connected transport until it closes."""
        transport = self._transport
        read_stream = self._read_receive
        if transport is None or read_stream is None:
            raise ServerConnectionError(f"Server {self.name!r} has no transport; call connect() first")

        write_send, write_receive = anyio.create_memory_object_stream[SessionMessage](0)
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._forward_outgoing, write_receive, transport)
                tg.start_soon(transport.serve)
                await self.run(
                    read_stream,
                    write_send,
                    self.create_initialization_options(),
                    raise_exceptions=raise_exceptions,
                    stateless=stateless,
                )
                tg.cancel_scope.cancel()
        finally:
            transport.close()

    async def _forward_outgoing(
        self, write_receive: MemoryObjectReceiveStream[SessionMessage], transport: ServerTransport
    ) -> None:
        async with write_receive:
            async for message in write_receive:
                transport.send(message)

    def _on_transport_closed(self, error: BaseException | None) -> None:
        if error is not None:
            self._logger.warning("Transport for %s closed with error: %r", self.name, error)
        else:
            self._logger.debug("Transport for %s closed", self.name)
        if self._read_send is not None:
            self._read_send.close()


__all__ = ["MCPServer", "ServerConnectionError"]
