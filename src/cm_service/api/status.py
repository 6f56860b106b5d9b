"""Supervisory endpoints: health, good-to-go, build info and metrics.

These handlers are mounted without the business middleware chain so they
stay cheap and reachable while business handlers are saturated.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import CollectorRegistry

from cm_service.buildinfo import BuildInfo
from cm_service.health import HealthService
from cm_service.observability.metrics import (
    prometheus_content_type,
    render_prometheus_metrics,
)

HEALTH_PATH = "/__health"
GTG_PATH = "/__gtg"
BUILD_INFO_PATH = "/__build-info"
METRICS_PATH = "/__metrics"

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def create_status_routes(
    health_service: HealthService,
    *,
    build_info: BuildInfo,
    registry: CollectorRegistry | None = None,
) -> list[web.RouteDef]:
    """Build route definitions for the supervisory endpoints."""

    async def health(_: web.Request) -> web.Response:
        report = await health_service.health()
        return web.json_response(report.to_dict(), headers=_NO_CACHE_HEADERS)

    async def gtg(_: web.Request) -> web.Response:
        status = await health_service.gtg()
        if status.good_to_go:
            return web.Response(text="OK", headers=_NO_CACHE_HEADERS)
        return web.Response(
            status=503,
            text=status.message or "Service Unavailable",
            headers=_NO_CACHE_HEADERS,
        )

    async def build_info_handler(_: web.Request) -> web.Response:
        return web.json_response(build_info.to_dict())

    routes = [
        web.get(HEALTH_PATH, health),
        web.get(GTG_PATH, gtg),
        web.get(BUILD_INFO_PATH, build_info_handler),
    ]

    if registry is not None:

        async def metrics(_: web.Request) -> web.Response:
            response = web.Response(body=render_prometheus_metrics(registry=registry))
            response.headers["Content-Type"] = prometheus_content_type()
            return response

        routes.append(web.get(METRICS_PATH, metrics))

    return routes
