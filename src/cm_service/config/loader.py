"""Configuration loader: command-line flags over environment variables over defaults."""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from cm_service.config.errors import ConfigValidationError
from cm_service.config.models import AppSettings


@dataclass(frozen=True, slots=True)
class Option:
    """A single setting exposed as a CLI flag and an environment variable."""

    flag: str
    env_var: str
    path: tuple[str, ...]
    help: str


OPTIONS: tuple[Option, ...] = (
    Option(
        "--app-system-code",
        "APP_SYSTEM_CODE",
        ("service", "system_code"),
        "system code of the application",
    ),
    Option("--app-name", "APP_NAME", ("service", "name"), "application name"),
    Option("--host", "APP_HOST", ("server", "host"), "host interface to bind"),
    Option("--port", "APP_PORT", ("server", "port"), "port to listen on"),
    Option(
        "--log-level",
        "LOG_LEVEL",
        ("logging", "level"),
        "logging level (DEBUG, INFO, WARN, ERROR)",
    ),
    Option("--log-format", "LOG_FORMAT", ("logging", "format"), "log output format (json, text)"),
    Option(
        "--handler-timeout",
        "HANDLER_TIMEOUT_SECONDS",
        ("server", "handler_timeout_seconds"),
        "seconds a business handler may run before a 503 is returned",
    ),
    Option(
        "--shutdown-grace-period",
        "SHUTDOWN_GRACE_PERIOD_SECONDS",
        ("server", "shutdown_grace_period_seconds"),
        "seconds in-flight requests may take to finish on shutdown",
    ),
    Option(
        "--keepalive-timeout",
        "KEEPALIVE_TIMEOUT_SECONDS",
        ("server", "keepalive_timeout_seconds"),
        "seconds an idle keep-alive connection is kept open",
    ),
    Option(
        "--health-check-timeout",
        "HEALTH_CHECK_TIMEOUT_SECONDS",
        ("server", "health_check_timeout_seconds"),
        "seconds a single health check may run before it is reported as failing",
    ),
)


def build_parser(prog: str = "cm-service") -> argparse.ArgumentParser:
    """Build the argument parser; every flag also reads an environment variable."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Service bootstrap with health, status and graceful shutdown.",
    )
    for option in OPTIONS:
        parser.add_argument(
            option.flag,
            dest="_".join(option.path),
            default=None,
            help=f"{option.help} (env: {option.env_var})",
        )
    return parser


def load_settings(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    prog: str = "cm-service",
) -> AppSettings:
    """Load application settings.

    Values are resolved in the following order (earlier sources win):
    1. Command-line flags
    2. Environment variables
    3. Model defaults

    Args:
        argv: Command-line arguments without the program name. Defaults to sys.argv.
        environ: Environment mapping. Defaults to os.environ.
        prog: Program name used in help output.

    Returns:
        Validated and frozen AppSettings instance.

    Raises:
        ConfigValidationError: If a resolved value fails validation.
    """
    env = os.environ if environ is None else environ
    parsed = vars(build_parser(prog).parse_args(argv))

    config: dict[str, Any] = {}
    for option in OPTIONS:
        value = parsed.get("_".join(option.path))
        if value is None:
            value = env.get(option.env_var)
        if value is None or value == "":
            continue
        _set_path(config, option.path, value)

    try:
        return AppSettings.model_validate(config)
    except ValidationError as e:
        errors = [
            {"loc": " -> ".join(str(loc) for loc in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise ConfigValidationError(errors) from e


def _set_path(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    *parents, leaf = path
    node = target
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value
