# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Static bearer-token guard for the HTTP transports.

When a transport is configured with an ``auth_token``, every request must carry
``Authorization: Bearer <token>``.  Requests without it are answered with
``401`` and a ``WWW-Authenticate`` challenge before they reach the SDK
handlers.  Token issuance and validation against an authorization server are
out of scope here.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from starlette.datastructures import Headers
from starlette.middleware import Middleware
from starlette.responses import JSONResponse

from ..utils import get_logger


if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


def _raw_header_bytes(value: str) -> bytes:
    # Starlette decodes header values as latin-1.
    return value.encode("latin-1", "replace")


class BearerTokenMiddleware:
    """Pure ASGI middleware comparing the bearer token in constant time.

    Written as a raw ASGI callable rather than ``BaseHTTPMiddleware`` so the
    long-lived SSE responses stream through untouched.
    """

    def __init__(self, app: ASGIApp, *, token: str, realm: str = "mcp") -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        self.app = app
        self._token = token.encode()
        self._realm = realm
        self._logger = get_logger("mcpkit.authorization")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        auth_header = headers.get("authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            response = self._challenge_response("missing bearer token")
        elif not secrets.compare_digest(_raw_header_bytes(auth_header[7:].strip()), self._token):
            self._logger.warning("authorization failed", extra={"event": "auth.token.reject", "path": scope.get("path")})
            response = self._challenge_response("invalid bearer token")
        else:
            await self.app(scope, receive, send)
            return

        await response(scope, receive, send)

    def _challenge_response(self, reason: str) -> JSONResponse:
        challenge = f'Bearer realm="{self._realm}", error="invalid_token"'
        payload = {"error": "unauthorized", "detail": reason}
        return JSONResponse(payload, status_code=401, headers={"WWW-Authenticate": challenge})


def bearer_token_middleware(token: str | None) -> list[Middleware]:
    """Return the middleware stack entry guarding *token*, or nothing when unset."""
    if token is None:
        return []
    return [Middleware(BearerTokenMiddleware, token=token)]


__all__ = ["BearerTokenMiddleware", "bearer_token_middleware"]
