"""Configuration-specific exceptions."""

from __future__ import annotations

from cm_service.errors import CmServiceError


class ConfigError(CmServiceError):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        messages = []
        for err in errors:
            loc = err.get("loc", "unknown")
            msg = err.get("msg", "validation error")
            messages.append(f"  - {loc}: {msg}")
        detail = "\n".join(messages)
        super().__init__(f"Configuration validation failed:\n{detail}")
