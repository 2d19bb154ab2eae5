from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import socket

import httpx
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def httpx_async_client():
    @asynccontextmanager
    async def factory(app) -> AsyncIterator[httpx.AsyncClient]:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client

    return factory


@pytest.fixture
def occupied_port():
    """A loopback port held by a listening socket for the duration of the test."""
    with socket.create_server(("127.0.0.1", 0)) as sock:
        yield sock.getsockname()[1]
