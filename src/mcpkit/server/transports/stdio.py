# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""STDIO transport built on the reference MCP SDK.

Framing (newline-delimited JSON-RPC over ``stdin``/``stdout``) is handled by
the SDK's ``stdio_server`` helper; this module only adapts its stream pair to
the :class:`~mcpkit.server.transports.base.ServerTransport` contract.
"""

from __future__ import annotations

import logging
from typing import Any

import anyio
from mcp.server.stdio import stdio_server

from ._bridge import StreamBridgeTransport
from ...utils import get_logger


def get_stdio_server():
    """Return the SDK's stdio context manager.

    Separated into a helper so tests can patch it with in-memory streams.
    """
    return stdio_server


class StdioServerTransport(StreamBridgeTransport):
    """Serve a single peer over the process' standard streams.

    Construction is immediate and performs no I/O; :meth:`serve` attaches to
    ``stdin``/``stdout`` and pumps until either side finishes.
    """

    TRANSPORT = ("stdio", "STDIO", "Standard IO")

    def __init__(
        self,
        *,
        stdin: anyio.AsyncFile[str] | None = None,
        stdout: anyio.AsyncFile[str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(label="stdio", logger=logger or get_logger("mcpkit.transport.stdio"))
        self._stdin = stdin
        self._stdout = stdout

    async def serve(self) -> None:
        if self.is_closed:
            return

        stdio_ctx: Any = get_stdio_server()
        with anyio.CancelScope() as scope:
            self._serve_scope = scope
            async with stdio_ctx(self._stdin, self._stdout) as (read_stream, write_stream):
                self._logger.debug("Serving over STDIO")
                await self._bridge(read_stream, write_stream)
        self._serve_scope = None


__all__ = ["StdioServerTransport"]
