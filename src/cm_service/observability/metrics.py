"""Prometheus metrics primitives for HTTP request observation."""

from __future__ import annotations

import re
from typing import Any, Protocol

import prometheus_client

_LABEL_NORMALIZER = re.compile(r"[^a-zA-Z0-9_]+")

_LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    15.0,
)


def _sanitize_prefix(value: str, *, default: str = "cm_service") -> str:
    normalized = _LABEL_NORMALIZER.sub("_", value.strip().lower()).strip("_")
    return normalized or default


def _collector_or_create(registry: Any, name: str, factory: Any) -> Any:
    names_to_collectors = getattr(registry, "_names_to_collectors", None)
    if isinstance(names_to_collectors, dict):
        collector = names_to_collectors.get(name)
        if collector is not None:
            return collector
    return factory()


class HttpMetricsRecorder(Protocol):
    """Observer contract for served HTTP requests."""

    def observe_request(
        self,
        *,
        method: str,
        route: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record request count and latency."""
        ...


class NoopHttpMetricsRecorder:
    """No-op recorder used when metrics are not configured."""

    def observe_request(
        self,
        *,
        method: str,
        route: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        del method, route, status, duration_seconds


class PrometheusHttpMetricsRecorder:
    """Prometheus-backed recorder with `<prefix>_http_*` naming.

    Counters and histograms from `prometheus_client` are safe for concurrent
    updates, so one recorder is shared by every in-flight request.
    """

    def __init__(
        self,
        *,
        registry: prometheus_client.CollectorRegistry | None = None,
        prefix: str = "cm_service",
    ) -> None:
        self._registry = prometheus_client.REGISTRY if registry is None else registry
        self._prefix = _sanitize_prefix(prefix)
        self._latency = _collector_or_create(
            self._registry,
            f"{self._prefix}_http_request_duration_seconds",
            lambda: prometheus_client.Histogram(
                f"{self._prefix}_http_request_duration_seconds",
                "HTTP request latency in seconds.",
                labelnames=("method", "route", "status"),
                registry=self._registry,
                buckets=_LATENCY_BUCKETS,
            ),
        )
        self._requests = _collector_or_create(
            self._registry,
            f"{self._prefix}_http_requests",
            lambda: prometheus_client.Counter(
                f"{self._prefix}_http_requests",
                "HTTP requests served.",
                labelnames=("method", "route", "status"),
                registry=self._registry,
            ),
        )

    @property
    def registry(self) -> prometheus_client.CollectorRegistry:
        return self._registry

    def observe_request(
        self,
        *,
        method: str,
        route: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        labels = {
            "method": method.upper(),
            "route": route,
            "status": str(status),
        }
        self._latency.labels(**labels).observe(max(0.0, duration_seconds))
        self._requests.labels(**labels).inc()


def prometheus_content_type() -> str:
    """Return Prometheus exposition media type."""
    return str(prometheus_client.CONTENT_TYPE_LATEST)


def render_prometheus_metrics(
    *, registry: prometheus_client.CollectorRegistry | None = None
) -> bytes:
    """Render current Prometheus metrics in exposition text format."""
    resolved_registry = prometheus_client.REGISTRY if registry is None else registry
    return bytes(prometheus_client.generate_latest(resolved_registry))
