"""Observability helpers: structured logging, metrics and HTTP middleware."""

from cm_service.observability.http import (
    TRANSACTION_ID_KEY,
    build_service_chain,
    chain_handler,
    create_metrics_middleware,
    create_request_logging_middleware,
    create_timeout_middleware,
)
from cm_service.observability.logging import (
    TRANSACTION_ID_HEADER,
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    get_transaction_id,
    new_transaction_id,
    transaction_scope,
)
from cm_service.observability.metrics import (
    HttpMetricsRecorder,
    NoopHttpMetricsRecorder,
    PrometheusHttpMetricsRecorder,
    prometheus_content_type,
    render_prometheus_metrics,
)

__all__ = [
    "TRANSACTION_ID_HEADER",
    "TRANSACTION_ID_KEY",
    "HttpMetricsRecorder",
    "NoopHttpMetricsRecorder",
    "PrometheusHttpMetricsRecorder",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "build_service_chain",
    "chain_handler",
    "create_metrics_middleware",
    "create_request_logging_middleware",
    "create_timeout_middleware",
    "get_transaction_id",
    "new_transaction_id",
    "prometheus_content_type",
    "render_prometheus_metrics",
    "transaction_scope",
]
