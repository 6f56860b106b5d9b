"""Runtime primitives: server lifecycle and graceful shutdown."""

from cm_service.runtime.server import (
    DEFAULT_GRACE_PERIOD_SECONDS,
    InFlightRequests,
    ServerLifecycle,
    ServerState,
)

__all__ = [
    "DEFAULT_GRACE_PERIOD_SECONDS",
    "InFlightRequests",
    "ServerLifecycle",
    "ServerState",
]
