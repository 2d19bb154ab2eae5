# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""End-to-end sessions over real sockets for the HTTP bindings."""

from __future__ import annotations

from collections.abc import Callable

import anyio
import httpx
from mcp import types
from mcp.client.session import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client
import pytest

from mcpkit.config import ServerConfig, SseTransportConfig, StreamableHttpTransportConfig
from mcpkit.server import MCPServer, create_and_start
from mcpkit.server.transports import SseServerTransport, StreamableHttpServerTransport, TransportStartError


async def _wait_until(predicate: Callable[[], bool]) -> None:
    while not predicate():
        await anyio.sleep(0.01)


async def _start(name: str, transport_config) -> MCPServer:
    result = await create_and_start(ServerConfig.simple(name=name, version="0.9.0"), transport_config)
    server = result.unwrap()

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [types.Tool(name="ping", description="Ping", inputSchema={"type": "object"})]

    return server


@pytest.mark.anyio
async def test_streamable_http_round_trip() -> None:
    server = await _start("live-shttp", StreamableHttpTransportConfig(host="127.0.0.1", port=0))
    transport = server.transport
    assert isinstance(transport, StreamableHttpServerTransport)
    url = f"http://127.0.0.1:{transport.bound_port}/messages"

    with anyio.fail_after(20):
        async with anyio.create_task_group() as tg:
            tg.start_soon(server.run_connected)
            async with streamablehttp_client(url) as (read_stream, write_stream, _):
                async with ClientSession(read_stream, write_stream) as session:
                    init = await session.initialize()
                    tools = await session.list_tools()
            server.disconnect()

    assert init.serverInfo.name == "live-shttp"
    assert [tool.name for tool in tools.tools] == ["ping"]
    assert transport.is_closed
    assert not transport.is_listening


@pytest.mark.anyio
async def test_sse_round_trip_and_second_stream_refused() -> None:
    server = await _start("live-sse", SseTransportConfig(host="127.0.0.1", port=0))
    transport = server.transport
    assert isinstance(transport, SseServerTransport)
    assert not transport.is_listening

    with anyio.fail_after(20):
        async with anyio.create_task_group() as tg:
            tg.start_soon(server.run_connected)
            await _wait_until(lambda: transport.is_listening)
            base_url = f"http://127.0.0.1:{transport.bound_port}"

            async with sse_client(f"{base_url}/sse") as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    init = await session.initialize()
                    tools = await session.list_tools()

                    async with httpx.AsyncClient(base_url=base_url) as client:
                        second = await client.get("/sse")
            server.disconnect()

    assert init.serverInfo.name == "live-sse"
    assert [tool.name for tool in tools.tools] == ["ping"]
    assert second.status_code == 409
    assert second.text == "an SSE session is already active"
    assert transport.is_closed
    assert not transport.is_listening


@pytest.mark.anyio
async def test_close_stops_running_server() -> None:
    server = await _start("live-close", StreamableHttpTransportConfig(host="127.0.0.1", port=0))
    transport = server.transport
    assert isinstance(transport, StreamableHttpServerTransport)

    with anyio.fail_after(20):
        async with anyio.create_task_group() as tg:
            tg.start_soon(server.run_connected)
            await _wait_until(lambda: transport._uvicorn is not None and transport._uvicorn.started)  # noqa: SLF001
            transport.close()

    assert transport.on_close.is_completed
    assert transport.on_close.error is None
    assert not transport.is_listening
    assert not server.is_connected


@pytest.mark.anyio
async def test_sse_bind_failure_surfaces_when_serving(occupied_port: int) -> None:
    transport = SseServerTransport(host="127.0.0.1", port=occupied_port)

    with pytest.raises(TransportStartError, match=str(occupied_port)):
        await transport.serve()

    assert not transport.is_listening
    transport.close()
    assert transport.on_close.is_completed
