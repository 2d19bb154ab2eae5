# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Streamable HTTP transport adapter.

Unlike the other bindings, this transport has an explicit asynchronous
:meth:`StreamableHttpServerTransport.start` step that binds the listener
(trying the primary port, then each fallback port).  The factory awaits it
before reporting the transport as available.  Request framing, session
headers and the JSON-vs-SSE response mode are handled by the SDK's
``StreamableHTTPServerTransport``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import anyio
from mcp.server.streamable_http import StreamableHTTPServerTransport as SdkStreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings
from starlette.routing import Route

from ._asgi import HTTPTransportBase
from .base import TransportStartError, validate_path
from ...utils import get_logger


if TYPE_CHECKING:
    from anyio.abc import TaskGroup, TaskStatus
    from starlette.middleware import Middleware
    from starlette.routing import BaseRoute


@dataclass(frozen=True, slots=True, kw_only=True)
class StreamableHttpServerConfig:
    """Binding parameters derived from a ``StreamableHttpTransportConfig``."""

    host: str = "localhost"
    port: int = 8080
    endpoint: str = "/mcp"
    fallback_ports: tuple[int, ...] = ()
    is_json_response_enabled: bool = False
    auth_token: str | None = None


class StreamableHttpServerTransport(HTTPTransportBase):
    """Serve a single peer session over Streamable HTTP."""

    TRANSPORT = ("streamable-http", "Streamable HTTP", "shttp", "sHTTP")
    ALLOWED_METHODS = ("GET", "POST", "DELETE")

    def __init__(
        self,
        config: StreamableHttpServerConfig,
        *,
        session_id: str | None = None,
        middleware: Iterable[Middleware] = (),
        security_settings: TransportSecuritySettings | None = None,
        log_level: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._endpoint_path = validate_path(config.endpoint)
        super().__init__(
            label="streamable_http",
            host=config.host,
            port=config.port,
            fallback_ports=config.fallback_ports,
            auth_token=config.auth_token,
            middleware=middleware,
            security_settings=security_settings,
            log_level=log_level,
            logger=logger or get_logger("mcpkit.transport.streamable_http"),
        )
        self._session_id = session_id or uuid4().hex
        self._sdk_transport = SdkStreamableHTTPServerTransport(
            mcp_session_id=self._session_id,
            is_json_response_enabled=config.is_json_response_enabled,
            security_settings=security_settings,
        )
        self._started = False

    @property
    def config(self) -> StreamableHttpServerConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        return self._endpoint_path

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Bind the listener.  Raises :class:`TransportStartError` if no port is free."""
        if self.is_closed:
            raise TransportStartError("Cannot start a closed Streamable HTTP transport")
        if self._started:
            return

        await anyio.lowlevel.checkpoint()
        self._bind_listener()
        self._started = True

    async def serve(self, **uvicorn_options: Any) -> None:
        if not self._started and not self.is_closed:
            await self.start()
        await super().serve(**uvicorn_options)

    def _build_routes(self) -> Iterable[BaseRoute]:
        handler = self._endpoint(self._sdk_transport.handle_request)
        return [Route(self._endpoint_path, handler, methods=list(self.ALLOWED_METHODS))]

    async def _open_session(self, tg: TaskGroup) -> None:
        await tg.start(self._run_session)

    async def _run_session(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.CancelScope() as scope:
            self._serve_scope = scope
            async with self._sdk_transport.connect() as (read_stream, write_stream):
                task_status.started()
                await self._bridge(read_stream, write_stream)
        self._serve_scope = None

    def _on_closing(self) -> None:
        self._logger.debug("Releasing Streamable HTTP session %s", self._session_id)
        super()._on_closing()


__all__ = ["StreamableHttpServerConfig", "StreamableHttpServerTransport"]
