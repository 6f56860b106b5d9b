"""Service bootstrap: health endpoints, instrumented router and graceful shutdown."""

from cm_service.api import ServiceRoute, create_application
from cm_service.bootstrap import Service, build_service, run_service
from cm_service.buildinfo import BuildInfo
from cm_service.config import AppSettings, load_settings
from cm_service.errors import (
    BindError,
    CmServiceError,
    LifecycleError,
    ShutdownTimeoutError,
)
from cm_service.health import (
    Check,
    CheckResult,
    GoodToGoStatus,
    HealthReport,
    HealthService,
    ServiceIdentity,
    new_health_service,
)
from cm_service.observability import (
    NoopHttpMetricsRecorder,
    PrometheusHttpMetricsRecorder,
    bootstrap_logging,
    build_service_chain,
    chain_handler,
)
from cm_service.runtime import ServerLifecycle, ServerState

__all__ = [
    "AppSettings",
    "BindError",
    "BuildInfo",
    "Check",
    "CheckResult",
    "CmServiceError",
    "GoodToGoStatus",
    "HealthReport",
    "HealthService",
    "LifecycleError",
    "NoopHttpMetricsRecorder",
    "PrometheusHttpMetricsRecorder",
    "ServerLifecycle",
    "ServerState",
    "Service",
    "ServiceIdentity",
    "ServiceRoute",
    "ShutdownTimeoutError",
    "bootstrap_logging",
    "build_service",
    "build_service_chain",
    "chain_handler",
    "create_application",
    "load_settings",
    "new_health_service",
    "run_service",
]
