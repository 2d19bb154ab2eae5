# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""HTTP+SSE transport adapter.

Clients open an event stream with ``GET <endpoint>`` and POST messages to
``<messages_endpoint>?session_id=...``.  Framing is delegated to the SDK's
``SseServerTransport``.  One transport instance carries one peer: a second
stream request while a session is active is refused with ``409``, and the
transport closes when the active stream ends.

Construction completes synchronously.  The listener is bound when
:meth:`serve` runs, not by the factory.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import TYPE_CHECKING

import anyio
from mcp.server.sse import SseServerTransport as SdkSseServerTransport
from mcp.server.transport_security import TransportSecuritySettings
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from ._asgi import HTTPTransportBase
from .base import validate_path
from ...utils import get_logger


if TYPE_CHECKING:
    from starlette.middleware import Middleware
    from starlette.routing import BaseRoute
    from starlette.types import Receive, Scope, Send


class SseServerTransport(HTTPTransportBase):
    """Serve a single peer over the HTTP+SSE transport."""

    TRANSPORT = ("sse", "SSE")

    def __init__(
        self,
        *,
        endpoint: str = "/sse",
        messages_endpoint: str = "/message",
        host: str = "localhost",
        port: int = 8080,
        fallback_ports: Iterable[int] = (),
        auth_token: str | None = None,
        middleware: Iterable[Middleware] = (),
        security_settings: TransportSecuritySettings | None = None,
        log_level: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._endpoint_path = validate_path(endpoint)
        self._messages_path = validate_path(messages_endpoint, label="messages_endpoint")
        super().__init__(
            label="sse",
            host=host,
            port=port,
            fallback_ports=fallback_ports,
            auth_token=auth_token,
            middleware=middleware,
            security_settings=security_settings,
            log_level=log_level,
            logger=logger or get_logger("mcpkit.transport.sse"),
        )
        self._sdk_transport = SdkSseServerTransport(self._messages_path, security_settings=security_settings)
        self._session_active = False

    @property
    def endpoint(self) -> str:
        return self._endpoint_path

    @property
    def messages_endpoint(self) -> str:
        return self._messages_path

    @property
    def session_active(self) -> bool:
        return self._session_active

    def _build_routes(self) -> Iterable[BaseRoute]:
        return [
            Route(self._endpoint_path, self._endpoint(self._handle_stream), methods=["GET"]),
            Route(self._messages_path, self._endpoint(self._sdk_transport.handle_post_message), methods=["POST"]),
        ]

    async def _handle_stream(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.is_closed or self._session_active:
            reason = "transport closed" if self.is_closed else "an SSE session is already active"
            await PlainTextResponse(reason, status_code=409)(scope, receive, send)
            return

        self._session_active = True
        self._logger.debug("SSE client connected")
        try:
            with anyio.CancelScope() as scope_guard:
                self._serve_scope = scope_guard
                async with self._sdk_transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
                    await self._bridge(read_stream, write_stream)
        finally:
            self._serve_scope = None
            self._session_active = False
            self._logger.debug("SSE client disconnected")


__all__ = ["SseServerTransport"]
