"""Shared fixtures for HTTP-level tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

ClientFactory = Callable[[web.Application], Awaitable[TestClient]]


@pytest.fixture
async def client_factory() -> AsyncIterator[ClientFactory]:
    clients: list[TestClient] = []

    async def make(app: web.Application) -> TestClient:
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield make

    for client in clients:
        await client.close()
