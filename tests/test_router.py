"""Tests for the application router: supervisory routes and the wrapped business chain."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter

import pytest
from aiohttp import web
from prometheus_client import CollectorRegistry

from cm_service.api import ServiceRoute, create_application
from cm_service.buildinfo import BuildInfo
from cm_service.health import Check, HealthService, ServiceIdentity, new_health_service
from cm_service.observability.metrics import PrometheusHttpMetricsRecorder

_REQUEST_LOGGER = "tests.router.requests"
IDENTITY = ServiceIdentity(system_code="cm-service", name="cm-service")
BUILD_INFO = BuildInfo(version="1.2.3", repository="repo", revision="abc123")


async def _cache_unreachable() -> str:
    raise RuntimeError("cache unreachable")


def _app(
    health: HealthService | None = None,
    *,
    registry: CollectorRegistry | None = None,
    routes: list[ServiceRoute] | None = None,
    timeout: float = 5.0,
) -> web.Application:
    resolved_registry = CollectorRegistry() if registry is None else registry
    kwargs = {} if routes is None else {"service_routes": routes}
    return create_application(
        new_health_service(IDENTITY) if health is None else health,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=PrometheusHttpMetricsRecorder(registry=resolved_registry),
        registry=resolved_registry,
        build_info=BUILD_INFO,
        handler_timeout_seconds=timeout,
        **kwargs,
    )


async def test_health_endpoint_returns_report(client_factory) -> None:
    client = await client_factory(_app())

    response = await client.get("/__health")
    payload = await response.json()

    assert response.status == 200
    assert response.headers["Cache-Control"].startswith("no-cache")
    assert payload["systemCode"] == "cm-service"
    assert payload["ok"] is True
    assert [check["id"] for check in payload["checks"]] == ["sample-check"]


async def test_health_endpoint_is_200_even_when_checks_fail(client_factory) -> None:
    health = HealthService(identity=IDENTITY)
    health.register(Check(id="cache", name="Cache", checker=_cache_unreachable))
    client = await client_factory(_app(health))

    response = await client.get("/__health")
    payload = await response.json()

    assert response.status == 200
    assert payload["ok"] is False
    assert payload["checks"][0]["checkOutput"] == "cache unreachable"


async def test_gtg_endpoint(client_factory) -> None:
    healthy = await client_factory(_app())
    response = await healthy.get("/__gtg")
    assert response.status == 200
    assert await response.text() == "OK"

    health = HealthService(identity=IDENTITY)
    health.register(Check(id="cache", name="Cache", checker=_cache_unreachable))
    unhealthy = await client_factory(_app(health))
    response = await unhealthy.get("/__gtg")
    assert response.status == 503
    assert await response.text() == "cache unreachable"


async def test_build_info_endpoint(client_factory) -> None:
    client = await client_factory(_app())

    response = await client.get("/__build-info")

    assert response.status == 200
    assert await response.json() == {
        "version": "1.2.3",
        "repository": "repo",
        "revision": "abc123",
        "builder": "",
        "dateTime": "",
    }


async def test_business_route_goes_through_chain(client_factory) -> None:
    registry = CollectorRegistry()
    client = await client_factory(_app(registry=registry))

    response = await client.get("/test")

    assert response.status == 200
    assert await response.text() == "test"
    assert response.headers["X-Request-Id"].startswith("tid_")
    assert registry.get_sample_value(
        "cm_service_http_requests_total",
        {"method": "GET", "route": "/test", "status": "200"},
    ) == 1.0


async def test_supervisory_routes_bypass_chain(
    client_factory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=_REQUEST_LOGGER)
    registry = CollectorRegistry()
    client = await client_factory(_app(registry=registry))

    for path in ("/__health", "/__gtg", "/__build-info", "/__metrics"):
        response = await client.get(path)
        assert response.status == 200, path
        assert "X-Request-Id" not in response.headers

    assert [r for r in caplog.records if r.name == _REQUEST_LOGGER] == []
    assert registry.get_sample_value(
        "cm_service_http_requests_total",
        {"method": "GET", "route": "/__health", "status": "200"},
    ) is None


async def test_unmatched_paths_are_not_found_through_chain(client_factory) -> None:
    registry = CollectorRegistry()
    client = await client_factory(_app(registry=registry))

    response = await client.get("/does/not/exist")
    posted = await client.post("/__health")

    assert response.status == 404
    assert posted.status == 404
    assert response.headers["X-Request-Id"].startswith("tid_")
    assert registry.get_sample_value(
        "cm_service_http_requests_total",
        {"method": "GET", "route": "/{tail}", "status": "404"},
    ) == 1.0


async def test_supervisory_routes_answer_while_business_handler_is_blocked(
    client_factory,
) -> None:
    entered = asyncio.Event()
    release = asyncio.Event()

    async def blocked(_: web.Request) -> web.Response:
        entered.set()
        await release.wait()
        return web.Response(text="released")

    client = await client_factory(
        _app(routes=[ServiceRoute("GET", "/blocked", blocked)], timeout=60.0)
    )

    async def fetch_blocked() -> tuple[int, str]:
        response = await client.get("/blocked")
        return response.status, await response.text()

    pending = asyncio.create_task(fetch_blocked())
    await asyncio.wait_for(entered.wait(), timeout=5)

    gtg = await asyncio.wait_for(client.get("/__gtg"), timeout=2)
    health = await asyncio.wait_for(client.get("/__health"), timeout=2)
    assert gtg.status == 200
    assert health.status == 200
    assert not pending.done()

    release.set()
    assert await pending == (200, "released")


async def test_slow_business_handler_times_out_with_503(client_factory) -> None:
    async def sleepy(_: web.Request) -> web.Response:
        await asyncio.sleep(10)
        return web.Response(text="too late")

    client = await client_factory(
        _app(routes=[ServiceRoute("GET", "/sleepy", sleepy)], timeout=0.2)
    )

    started = perf_counter()
    response = await client.get("/sleepy")
    elapsed = perf_counter() - started

    assert response.status == 503
    assert elapsed < 0.2 + 1.0


async def test_metrics_endpoint_renders_registry(client_factory) -> None:
    registry = CollectorRegistry()
    client = await client_factory(_app(registry=registry))

    await client.get("/test")
    response = await client.get("/__metrics")
    body = await response.text()

    assert response.status == 200
    assert response.headers["Content-Type"].startswith("text/plain")
    assert 'cm_service_http_requests_total{method="GET",route="/test",status="200"} 1.0' in body
