# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared ASGI transport primitives.

Building blocks for bindings that expose a server over HTTP.  Concrete
subclasses supply their Starlette routes; this base handles listener binding
(primary port, then each fallback port in order), the bearer-token guard and
user middleware, and running ``uvicorn`` on the bound socket.

The listener is bound by this module rather than by ``uvicorn`` so a bind
failure surfaces as :class:`~mcpkit.server.transports.base.TransportStartError`
before any request handling starts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
import logging
import socket
import time
from typing import TYPE_CHECKING, Any

import anyio
from starlette.applications import Starlette
from uvicorn import Config, Server

from ._bridge import StreamBridgeTransport
from .base import TransportConstructionError, TransportStartError, validate_port
from ..authorization import bearer_token_middleware


if TYPE_CHECKING:
    from anyio.abc import TaskGroup
    from starlette.middleware import Middleware
    from starlette.routing import BaseRoute
    from starlette.types import Receive, Scope, Send


ASGIHandler = Callable[["Scope", "Receive", "Send"], Awaitable[None]]


@dataclass(slots=True)
class ASGIEndpoint:
    """ASGI adapter that forwards matching scopes to an SDK handler."""

    handler: ASGIHandler
    transport_label: str
    allowed_scopes: tuple[str, ...]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope.get("type")
        if scope_type not in self.allowed_scopes:
            allowed = ", ".join(self.allowed_scopes)
            message = f"{self.transport_label} only handles ASGI scopes: {allowed} (got {scope_type!r})."
            raise TypeError(message)

        await self.handler(scope, receive, send)


class HTTPTransportBase(StreamBridgeTransport, ABC):
    """Template for bindings that serve one peer over HTTP."""

    TRANSPORT: tuple[str, ...] = ("http", "HTTP")
    ALLOWED_SCOPES: tuple[str, ...] = ("http",)
    DEFAULT_LOG_LEVEL: str = "info"
    GRACEFUL_SHUTDOWN_SECONDS: int = 5

    def __init__(
        self,
        *,
        label: str,
        host: str,
        port: int,
        fallback_ports: Iterable[int] = (),
        auth_token: str | None = None,
        middleware: Iterable[Middleware] = (),
        security_settings: object | None = None,
        log_level: str | None = None,
        logger: logging.Logger,
    ) -> None:
        self._host = host
        self._port = validate_port(port)
        self._fallback_ports = tuple(validate_port(p, label="fallback port") for p in fallback_ports)
        if auth_token is not None and not auth_token:
            raise TransportConstructionError("auth_token must be a non-empty string when set")
        self._auth_token = auth_token
        self._middleware = tuple(middleware)
        self._security_settings = security_settings
        self._log_level = log_level or self.DEFAULT_LOG_LEVEL
        self._listener: socket.socket | None = None
        self._uvicorn: Server | None = None
        super().__init__(label=label, logger=logger)

    # //////////////////////////////////////////////////////////////////
    # Configuration
    # //////////////////////////////////////////////////////////////////

    @property
    def transport_display_name(self) -> str:
        return self.TRANSPORT[1] if len(self.TRANSPORT) > 1 else self.TRANSPORT[0]

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def fallback_ports(self) -> tuple[int, ...]:
        return self._fallback_ports

    @property
    def auth_token(self) -> str | None:
        return self._auth_token

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        return self._middleware

    @property
    def security_settings(self) -> object | None:
        """Return the SDK transport-security configuration, if any."""
        return self._security_settings

    @property
    def is_listening(self) -> bool:
        return self._listener is not None

    @property
    def bound_port(self) -> int | None:
        """The port actually bound, once listening."""
        if self._listener is None:
            return None
        return int(self._listener.getsockname()[1])

    def candidate_ports(self) -> tuple[int, ...]:
        """Primary port followed by each distinct fallback port."""
        seen: list[int] = []
        for candidate in (self._port, *self._fallback_ports):
            if candidate not in seen:
                seen.append(candidate)
        return tuple(seen)

    # //////////////////////////////////////////////////////////////////
    # Listener and application
    # //////////////////////////////////////////////////////////////////

    def _bind_listener(self) -> socket.socket:
        if self._listener is not None:
            return self._listener

        started = time.perf_counter()
        failures: list[str] = []
        for candidate in self.candidate_ports():
            try:
                listener = socket.create_server((self._host, candidate))
            except OSError as exc:
                self._logger.debug("Port %s unavailable on %s: %s", candidate, self._host, exc)
                failures.append(f"{candidate} ({exc.strerror or exc})")
                continue

            self._listener = listener
            self._logger.info(
                "%s transport listening on http://%s:%s",
                self.transport_display_name,
                self._host,
                self.bound_port,
                extra={"duration_ms": (time.perf_counter() - started) * 1000},
            )
            return listener

        tried = ", ".join(failures)
        raise TransportStartError(
            f"Could not bind {self.transport_display_name} transport on {self._host}; tried ports {tried}"
        )

    def _release_listener(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()

    def build_app(self) -> Starlette:
        """Assemble the Starlette application served for this transport."""
        middleware = [*bearer_token_middleware(self._auth_token), *self._middleware]
        return Starlette(routes=list(self._build_routes()), middleware=middleware)

    def _endpoint(self, handler: ASGIHandler) -> ASGIEndpoint:
        return ASGIEndpoint(
            handler=handler, transport_label=self.transport_display_name, allowed_scopes=self.ALLOWED_SCOPES
        )

    # //////////////////////////////////////////////////////////////////
    # Serving
    # //////////////////////////////////////////////////////////////////

    async def serve(self, **uvicorn_options: Any) -> None:
        """Serve HTTP on the bound listener until the transport closes."""
        if self.is_closed:
            return

        listener = self._bind_listener()
        config = Config(
            app=self.build_app(),
            log_level=self._log_level,
            lifespan="off",
            timeout_graceful_shutdown=self.GRACEFUL_SHUTDOWN_SECONDS,
            **uvicorn_options,
        )
        server = Server(config)
        self._uvicorn = server
        try:
            async with anyio.create_task_group() as tg:
                await self._open_session(tg)
                await server.serve(sockets=[listener])
                tg.cancel_scope.cancel()
        finally:
            self._uvicorn = None
            self._release_listener()
            self.close()

    async def _open_session(self, tg: TaskGroup) -> None:
        """Hook run before ``uvicorn`` starts accepting requests."""

    def _on_closing(self) -> None:
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
        else:
            self._release_listener()

    @abstractmethod
    def _build_routes(self) -> Iterable[BaseRoute]: ...


__all__ = ["ASGIEndpoint", "HTTPTransportBase"]
