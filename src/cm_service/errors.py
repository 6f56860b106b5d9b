"""Custom exceptions for the cm-service runtime."""


class CmServiceError(Exception):
    """Base exception for this package."""


class LifecycleError(CmServiceError):
    """Raised when the server is driven through an invalid state transition."""


class BindError(CmServiceError):
    """Raised when the HTTP listener cannot bind its address."""

    def __init__(self, host: str, port: int, cause: OSError) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"Cannot listen on {host}:{port}: {cause}")


class ShutdownTimeoutError(CmServiceError):
    """Raised when in-flight requests outlive the shutdown grace period."""

    def __init__(self, grace_period_seconds: float, pending: int) -> None:
        self.grace_period_seconds = grace_period_seconds
        self.pending = pending
        super().__init__(
            f"{pending} request(s) still in flight after "
            f"{grace_period_seconds:g}s grace period; forcing close"
        )
