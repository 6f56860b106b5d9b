"""Tests for the business middleware chain."""

from __future__ import annotations

import asyncio
import logging
import re
from time import perf_counter

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from cm_service.observability.http import (
    TRANSACTION_ID_KEY,
    build_service_chain,
    chain_handler,
    create_timeout_middleware,
)
from cm_service.observability.logging import get_transaction_id

_REQUEST_LOGGER = "tests.http.requests"


class RecordingMetrics:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def observe_request(
        self,
        *,
        method: str,
        route: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        self.calls.append(
            {
                "method": method,
                "route": route,
                "status": status,
                "duration_seconds": duration_seconds,
            }
        )


def _tracing_middleware(name: str, events: list[str]):
    async def middleware(request: web.Request, handler):
        events.append(f"{name}:before")
        response = await handler(request)
        events.append(f"{name}:after")
        return response

    return middleware


async def test_chain_handler_applies_first_middleware_outermost() -> None:
    events: list[str] = []

    async def handler(_: web.Request) -> web.Response:
        events.append("handler")
        return web.Response(text="ok")

    wrapped = chain_handler(
        handler,
        [_tracing_middleware("outer", events), _tracing_middleware("inner", events)],
    )
    await wrapped(make_mocked_request("GET", "/test"))

    assert events == ["outer:before", "inner:before", "handler", "inner:after", "outer:after"]


async def test_chain_without_middlewares_is_the_handler() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.Response(text="ok")

    assert chain_handler(handler, []) is handler


@pytest.mark.filterwarnings("error::UserWarning")
async def test_service_chain_logs_and_measures_successful_request(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=_REQUEST_LOGGER)
    metrics = RecordingMetrics()
    seen: dict[str, str | None] = {}

    async def handler(request: web.Request) -> web.Response:
        seen["context"] = get_transaction_id()
        seen["request"] = request[TRANSACTION_ID_KEY]
        return web.Response(status=201, text="created")

    wrapped = build_service_chain(
        handler,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=metrics,
        timeout_seconds=1.0,
    )
    request = make_mocked_request(
        "POST",
        "/items?id=1",
        headers={"X-Request-Id": "tid_fromclient", "User-Agent": "pytest"},
    )

    response = await wrapped(request)

    assert response.status == 201
    assert response.headers["X-Request-Id"] == "tid_fromclient"
    assert seen == {"context": "tid_fromclient", "request": "tid_fromclient"}
    assert get_transaction_id() is None

    [record] = [r for r in caplog.records if r.name == _REQUEST_LOGGER]
    assert record.status == 201
    assert record.method == "POST"
    assert record.uri == "/items?id=1"
    assert record.protocol == "HTTP/1.1"
    assert record.userAgent == "pytest"
    assert record.responsetime >= 0

    assert len(metrics.calls) == 1
    assert metrics.calls[0]["method"] == "POST"
    assert metrics.calls[0]["status"] == 201


async def test_service_chain_generates_transaction_id() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.Response(text="ok")

    wrapped = build_service_chain(
        handler,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=RecordingMetrics(),
    )

    response = await wrapped(make_mocked_request("GET", "/test"))

    assert re.fullmatch(r"tid_[a-z0-9]{10}", response.headers["X-Request-Id"])


async def test_timeout_outcome_is_observed_by_logging_and_metrics(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=_REQUEST_LOGGER)
    metrics = RecordingMetrics()
    cancelled = asyncio.Event()

    async def slow(_: web.Request) -> web.Response:
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return web.Response(text="too late")

    wrapped = build_service_chain(
        slow,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=metrics,
        timeout_seconds=0.1,
    )

    started = perf_counter()
    response = await wrapped(make_mocked_request("GET", "/slow"))
    elapsed = perf_counter() - started

    assert response.status == 503
    assert elapsed < 0.1 + 1.0
    assert cancelled.is_set()
    assert metrics.calls[0]["status"] == 503
    assert [r.status for r in caplog.records if r.name == _REQUEST_LOGGER] == [503]


async def test_http_exceptions_are_recorded_and_reraised(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=_REQUEST_LOGGER)
    metrics = RecordingMetrics()

    async def missing(_: web.Request) -> web.Response:
        raise web.HTTPNotFound()

    wrapped = build_service_chain(
        missing,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=metrics,
    )

    with pytest.raises(web.HTTPNotFound) as exc_info:
        await wrapped(make_mocked_request("GET", "/missing"))

    assert exc_info.value.headers["X-Request-Id"].startswith("tid_")
    assert metrics.calls[0]["status"] == 404
    assert [r.status for r in caplog.records if r.name == _REQUEST_LOGGER] == [404]


async def test_handler_errors_are_recorded_as_server_errors() -> None:
    metrics = RecordingMetrics()

    async def broken(_: web.Request) -> web.Response:
        raise RuntimeError("boom")

    wrapped = build_service_chain(
        broken,
        logger=logging.getLogger(_REQUEST_LOGGER),
        metrics=metrics,
    )

    with pytest.raises(RuntimeError, match="boom"):
        await wrapped(make_mocked_request("GET", "/broken"))

    assert metrics.calls[0]["status"] == 500


async def test_timeout_middleware_does_not_mask_handler_timeouts() -> None:
    async def handler(_: web.Request) -> web.Response:
        raise TimeoutError("upstream timed out")

    wrapped = chain_handler(handler, [create_timeout_middleware(5.0)])

    with pytest.raises(TimeoutError, match="upstream"):
        await wrapped(make_mocked_request("GET", "/upstream"))


def test_timeout_middleware_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError):
        create_timeout_middleware(0)
