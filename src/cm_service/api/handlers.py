"""Business handlers served behind the logging, metrics and timeout chain."""

from __future__ import annotations

from aiohttp import web


async def handle_test(_: web.Request) -> web.Response:
    # Placeholder until the service grows real endpoints.
    return web.Response(text="test")


async def not_found_handler(request: web.Request) -> web.StreamResponse:
    raise web.HTTPNotFound(text=f"404 page not found: {request.path}")
