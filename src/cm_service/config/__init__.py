"""Configuration loading and validation module."""

from cm_service.config.errors import ConfigError, ConfigValidationError
from cm_service.config.loader import OPTIONS, build_parser, load_settings
from cm_service.config.models import (
    AppSettings,
    LoggingSettings,
    ServerSettings,
    ServiceSettings,
)

__all__ = [
    "OPTIONS",
    "AppSettings",
    "ConfigError",
    "ConfigValidationError",
    "LoggingSettings",
    "ServerSettings",
    "ServiceSettings",
    "build_parser",
    "load_settings",
]
