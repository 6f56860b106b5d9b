"""HTTP surface of the service."""

from cm_service.api.router import (
    DEFAULT_SERVICE_ROUTES,
    ServiceRoute,
    create_application,
)
from cm_service.api.status import (
    BUILD_INFO_PATH,
    GTG_PATH,
    HEALTH_PATH,
    METRICS_PATH,
    create_status_routes,
)

__all__ = [
    "BUILD_INFO_PATH",
    "DEFAULT_SERVICE_ROUTES",
    "GTG_PATH",
    "HEALTH_PATH",
    "METRICS_PATH",
    "ServiceRoute",
    "create_application",
    "create_status_routes",
]
