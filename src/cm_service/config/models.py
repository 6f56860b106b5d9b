"""Typed configuration models with Pydantic validation."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SYSTEM_CODE = "cm-service"
DEFAULT_APP_NAME = "cm-service"
DEFAULT_APP_DESCRIPTION = ""


class ServiceSettings(BaseModel):
    """Service identification."""

    model_config = ConfigDict(frozen=True)

    system_code: str = Field(
        default=DEFAULT_SYSTEM_CODE,
        min_length=1,
        description="System code of the application",
    )
    name: str = Field(default=DEFAULT_APP_NAME, min_length=1, description="Application name")
    description: str = Field(default=DEFAULT_APP_DESCRIPTION, description="Application description")


class ServerSettings(BaseModel):
    """HTTP listener, handler and shutdown timing."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(
        default="0.0.0.0",
        description=(
            "Bind host. Defaults to 0.0.0.0 for containerised deployments; "
            "restrict via network policies or firewalls in production."
        ),
    )
    port: int = Field(default=8080, ge=0, le=65535, description="Port to listen on")
    handler_timeout_seconds: float = Field(
        default=14.0,
        gt=0,
        description="Wall-clock budget for business handlers",
    )
    shutdown_grace_period_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Time allowed for in-flight requests to finish on shutdown",
    )
    keepalive_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Idle keep-alive connection timeout",
    )
    health_check_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-check timeout used by the health endpoints",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log output format")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        level = value.strip().upper()
        return "WARNING" if level == "WARN" else level

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class AppSettings(BaseModel):
    """Root application settings."""

    model_config = ConfigDict(frozen=True)

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
