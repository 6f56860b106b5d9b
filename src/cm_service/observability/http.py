"""HTTP middleware chain: request logging, metrics and handler timeout."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from time import perf_counter
from typing import Any, TypeAlias

from aiohttp import web

from cm_service.observability.logging import (
    TRANSACTION_ID_HEADER,
    extract_transaction_id,
    new_transaction_id,
    transaction_scope,
)
from cm_service.observability.metrics import HttpMetricsRecorder

Handler: TypeAlias = Callable[[web.Request], Awaitable[web.StreamResponse]]
Middleware: TypeAlias = Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]

TRANSACTION_ID_KEY = web.RequestKey("transaction_id", str)
DEFAULT_HANDLER_TIMEOUT_SECONDS = 14.0
DEFAULT_TIMEOUT_MESSAGE = "Service Unavailable: request timed out"


def chain_handler(handler: Handler, middlewares: Sequence[Middleware]) -> Handler:
    """Wrap `handler` with `middlewares`; the first middleware is the outermost."""
    wrapped = handler
    for middleware in reversed(middlewares):
        wrapped = _bind(middleware, wrapped)
    return wrapped


def build_service_chain(
    handler: Handler,
    *,
    logger: logging.Logger,
    metrics: HttpMetricsRecorder,
    timeout_seconds: float = DEFAULT_HANDLER_TIMEOUT_SECONDS,
    timeout_message: str = DEFAULT_TIMEOUT_MESSAGE,
) -> Handler:
    """Wrap a business handler with logging, metrics and timeout layers.

    Logging is outermost and the timeout innermost, so the access log and the
    request metrics both observe the 503 produced by an expired handler.
    """
    return chain_handler(
        handler,
        [
            create_request_logging_middleware(logger),
            create_metrics_middleware(metrics),
            create_timeout_middleware(timeout_seconds, message=timeout_message),
        ],
    )


def create_request_logging_middleware(logger: logging.Logger) -> Middleware:
    """Build middleware that binds a transaction id and writes one access log per request."""

    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        transaction_id = extract_transaction_id(_coerce_headers(request.headers))
        if transaction_id is None:
            transaction_id = new_transaction_id()

        started = perf_counter()
        status = 500
        with transaction_scope(transaction_id):
            request[TRANSACTION_ID_KEY] = transaction_id
            try:
                response = await handler(request)
            except web.HTTPException as exc:
                status = exc.status
                _set_header_if_missing(exc.headers, TRANSACTION_ID_HEADER, transaction_id)
                raise
            else:
                status = response.status
                _set_header_if_missing(response.headers, TRANSACTION_ID_HEADER, transaction_id)
                return response
            finally:
                logger.info(
                    "%s %s %d",
                    request.method,
                    request.path_qs,
                    status,
                    extra={
                        "method": request.method,
                        "uri": request.path_qs,
                        "protocol": f"HTTP/{request.version.major}.{request.version.minor}",
                        "status": status,
                        "responsetime": round((perf_counter() - started) * 1000, 3),
                        "userAgent": request.headers.get("User-Agent", ""),
                        "referer": request.headers.get("Referer", ""),
                    },
                )

    return middleware


def create_metrics_middleware(recorder: HttpMetricsRecorder) -> Middleware:
    """Build middleware recording request count and latency per route."""

    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        started = perf_counter()
        status = 500
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            status = exc.status
            raise
        else:
            status = response.status
            return response
        finally:
            recorder.observe_request(
                method=request.method,
                route=resolve_route(request),
                status=status,
                duration_seconds=perf_counter() - started,
            )

    return middleware


def create_timeout_middleware(
    timeout_seconds: float,
    *,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
) -> Middleware:
    """Build middleware that cancels handlers running past `timeout_seconds`.

    An expired handler is answered with 503 Service Unavailable.
    """
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")

    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        deadline = asyncio.timeout(timeout_seconds)
        try:
            async with deadline:
                return await handler(request)
        except TimeoutError:
            if not deadline.expired():
                raise
            return web.Response(status=503, text=message)

    return middleware


def resolve_route(request: web.Request) -> str:
    """Return the matched route template, falling back to the raw path."""
    match_info = getattr(request, "match_info", None)
    route = getattr(match_info, "route", None)
    resource = getattr(route, "resource", None)
    for candidate in (
        getattr(resource, "canonical", None),
        getattr(request, "path", None),
    ):
        resolved = _clean_route_value(candidate)
        if resolved is not None:
            return resolved
    return "unknown"


def _bind(middleware: Middleware, handler: Handler) -> Handler:
    async def wrapped(request: web.Request) -> web.StreamResponse:
        return await middleware(request, handler)

    return wrapped


def _coerce_headers(headers: object) -> Mapping[str, str]:
    if isinstance(headers, Mapping):
        return {str(key): str(value) for key, value in headers.items()}
    return {}


def _clean_route_value(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text == "":
        return None
    return text


def _set_header_if_missing(headers: Any, key: str, value: str) -> None:
    if headers.get(key):
        return
    headers[key] = value


__all__ = [
    "DEFAULT_HANDLER_TIMEOUT_SECONDS",
    "TRANSACTION_ID_KEY",
    "Handler",
    "Middleware",
    "build_service_chain",
    "chain_handler",
    "create_metrics_middleware",
    "create_request_logging_middleware",
    "create_timeout_middleware",
    "resolve_route",
]
