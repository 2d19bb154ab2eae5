# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import logging

import anyio
from mcp import types
from mcp.server.lowlevel.server import NotificationOptions
import pytest

from mcpkit.server import MCPServer, ServerConnectionError
from mcpkit.server.transports import InMemoryServerTransport


def test_connect_attaches_transport() -> None:
    server = MCPServer("connect-basic")
    transport = InMemoryServerTransport()

    server.connect(transport)

    assert server.transport is transport
    assert server.is_connected


def test_connect_twice_is_rejected() -> None:
    server = MCPServer("connect-twice")
    server.connect(InMemoryServerTransport())

    with pytest.raises(ServerConnectionError, match="already connected"):
        server.connect(InMemoryServerTransport())


def test_connect_to_closed_transport_is_rejected() -> None:
    server = MCPServer("connect-closed")
    transport = InMemoryServerTransport()
    transport.close()

    with pytest.raises(ServerConnectionError, match="closed transport"):
        server.connect(transport)
    assert server.transport is None


def test_disconnect_closes_transport() -> None:
    server = MCPServer("connect-disconnect")
    transport = InMemoryServerTransport()
    server.connect(transport)

    server.disconnect()

    assert transport.is_closed
    assert not server.is_connected


def test_declared_capabilities_are_advertised() -> None:
    capabilities = types.ServerCapabilities(tools=types.ToolsCapability(listChanged=True))
    server = MCPServer("connect-capabilities", capabilities=capabilities)

    advertised = server.get_capabilities(NotificationOptions(), {})

    assert advertised == capabilities
    assert advertised is not capabilities


@pytest.mark.anyio
async def test_run_connected_requires_transport() -> None:
    server = MCPServer("connect-missing")

    with pytest.raises(ServerConnectionError, match="connect"):
        await server.run_connected()


@pytest.mark.anyio
async def test_run_connected_returns_when_transport_closes() -> None:
    server = MCPServer("connect-run")
    transport = InMemoryServerTransport()
    server.connect(transport)

    with anyio.fail_after(5):
        async with anyio.create_task_group() as tg:
            tg.start_soon(server.run_connected)
            await anyio.wait_all_tasks_blocked()
            transport.inbound_sink.close()

    assert transport.is_closed
    assert transport.on_close.error is None


def test_exception_faults_are_queued_for_the_session() -> None:
    server = MCPServer("connect-fault")
    transport = InMemoryServerTransport()
    server.connect(transport)
    failure = ValueError("malformed frame")

    transport.on_message._channel.add_error(failure)  # noqa: SLF001

    assert server._read_receive.receive_nowait() is failure  # noqa: SLF001


def test_non_exception_faults_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    server = MCPServer("connect-base-fault")
    transport = InMemoryServerTransport()
    server.connect(transport)
    caplog.set_level(logging.DEBUG, logger=server.logger.name)

    transport.on_message._channel.add_error(KeyboardInterrupt())  # noqa: SLF001

    assert "Dropping non-Exception fault" in caplog.text
    with pytest.raises(anyio.WouldBlock):
        server._read_receive.receive_nowait()  # noqa: SLF001
