"""aiohttp application assembly: supervisory routes plus wrapped business routes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from aiohttp import web
from prometheus_client import CollectorRegistry

from cm_service.api.handlers import handle_test, not_found_handler
from cm_service.api.status import create_status_routes
from cm_service.buildinfo import BuildInfo
from cm_service.health import HealthService
from cm_service.observability.http import (
    DEFAULT_HANDLER_TIMEOUT_SECONDS,
    Handler,
    build_service_chain,
)
from cm_service.observability.metrics import HttpMetricsRecorder, NoopHttpMetricsRecorder

CATCH_ALL_PATH = "/{tail:.*}"


@dataclass(slots=True, frozen=True)
class ServiceRoute:
    """A business endpoint served through the middleware chain."""

    method: str
    path: str
    handler: Handler


DEFAULT_SERVICE_ROUTES: tuple[ServiceRoute, ...] = (
    ServiceRoute("GET", "/test", handle_test),
)


def create_application(
    health_service: HealthService,
    *,
    logger: logging.Logger,
    metrics: HttpMetricsRecorder | None = None,
    registry: CollectorRegistry | None = None,
    build_info: BuildInfo | None = None,
    handler_timeout_seconds: float = DEFAULT_HANDLER_TIMEOUT_SECONDS,
    service_routes: Sequence[ServiceRoute] = DEFAULT_SERVICE_ROUTES,
) -> web.Application:
    """Build the service application.

    Supervisory endpoints are registered first and bypass logging, metrics and
    the handler timeout. Every other request, including unmatched paths, runs
    through the business middleware chain.
    """
    recorder = NoopHttpMetricsRecorder() if metrics is None else metrics
    app = web.Application()

    app.add_routes(
        create_status_routes(
            health_service,
            build_info=BuildInfo.from_env() if build_info is None else build_info,
            registry=registry,
        )
    )

    def wrap(handler: Handler) -> Handler:
        return build_service_chain(
            handler,
            logger=logger,
            metrics=recorder,
            timeout_seconds=handler_timeout_seconds,
        )

    for route in service_routes:
        app.router.add_route(route.method, route.path, wrap(route.handler))

    app.router.add_route("*", CATCH_ALL_PATH, wrap(not_found_handler))
    return app
