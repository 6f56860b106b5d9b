"""Process entrypoint: load settings, serve, map failures to exit codes."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence

from cm_service.bootstrap import run_service
from cm_service.config import ConfigValidationError, load_settings
from cm_service.errors import BindError, ShutdownTimeoutError
from cm_service.observability.logging import (
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
)

logger = logging.getLogger("cm_service")

EXIT_OK = 0
EXIT_FAILURE = 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the service until SIGINT/SIGTERM and return the process exit code."""
    try:
        settings = load_settings(argv)
    except ConfigValidationError as exc:
        bootstrap_logging(service="cm-service", stream=sys.stderr)
        logger.critical("app could not start: %s", exc)
        return EXIT_FAILURE

    bootstrap_logging_from_app_settings(settings)
    logger.info(
        "starting with system code: %s, app name: %s, port: %d",
        settings.service.system_code,
        settings.service.name,
        settings.server.port,
    )

    try:
        asyncio.run(run_service(settings))
    except BindError as exc:
        logger.critical("http server failed to start: %s", exc)
        return EXIT_FAILURE
    except ShutdownTimeoutError as exc:
        logger.critical("failed to gracefully shutdown the server: %s", exc)
        return EXIT_FAILURE
    return EXIT_OK
