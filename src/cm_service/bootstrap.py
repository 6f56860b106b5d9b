"""Application bootstrap wiring: settings in, a ready-to-serve lifecycle out."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any

from aiohttp import web
from prometheus_client import CollectorRegistry

from cm_service.api import create_application
from cm_service.buildinfo import BuildInfo
from cm_service.config import AppSettings
from cm_service.health import Check, HealthService, ServiceIdentity, new_health_service
from cm_service.observability.metrics import PrometheusHttpMetricsRecorder
from cm_service.runtime import ServerLifecycle

REQUEST_LOGGER_NAME = "cm_service.requests"


@dataclass(slots=True)
class Service:
    """Every long-lived object of a running service."""

    settings: AppSettings
    health: HealthService
    registry: CollectorRegistry
    app: web.Application
    lifecycle: ServerLifecycle


def build_service(
    settings: AppSettings,
    *,
    registry: CollectorRegistry | None = None,
    build_info: BuildInfo | None = None,
    checks: Iterable[Check] | None = None,
) -> Service:
    """Assemble health checks, router, middleware chain and lifecycle."""
    identity = ServiceIdentity(
        system_code=settings.service.system_code,
        name=settings.service.name,
        description=settings.service.description,
    )
    health = new_health_service(
        identity,
        checks=checks,
        check_timeout_seconds=settings.server.health_check_timeout_seconds,
    )

    resolved_registry = CollectorRegistry() if registry is None else registry
    app = create_application(
        health,
        logger=logging.getLogger(REQUEST_LOGGER_NAME),
        metrics=PrometheusHttpMetricsRecorder(registry=resolved_registry),
        registry=resolved_registry,
        build_info=build_info,
        handler_timeout_seconds=settings.server.handler_timeout_seconds,
    )
    lifecycle = ServerLifecycle(
        app,
        host=settings.server.host,
        port=settings.server.port,
        grace_period_seconds=settings.server.shutdown_grace_period_seconds,
        keepalive_timeout_seconds=settings.server.keepalive_timeout_seconds,
    )
    return Service(
        settings=settings,
        health=health,
        registry=resolved_registry,
        app=app,
        lifecycle=lifecycle,
    )


async def run_service(
    settings: AppSettings,
    *,
    shutdown_trigger: Awaitable[Any] | None = None,
) -> None:
    """Build the service and serve until the trigger (or a termination signal)."""
    service = build_service(settings)
    await service.lifecycle.serve(shutdown_trigger)
