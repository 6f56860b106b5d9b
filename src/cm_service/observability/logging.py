"""Structured logging bootstrap and transaction-id context helpers."""

from __future__ import annotations

import contextvars
import json
import logging
import secrets
import string
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from cm_service.config.models import AppSettings

TRANSACTION_ID_HEADER = "X-Request-Id"
TRANSACTION_ID_PREFIX = "tid_"

_TRANSACTION_ID_HEADERS = ("x-request-id", "x-correlation-id")
_TRANSACTION_ID_ALPHABET = string.ascii_lowercase + string.digits
_TRANSACTION_ID_LENGTH = 10

_TRANSACTION_ID_CTX: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cm_service_transaction_id",
    default=None,
)

_STANDARD_RECORD_KEYS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JsonFormatter(logging.Formatter):
    """JSON formatter with required service and transaction fields."""

    def __init__(self, *, service: str) -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "@time": _format_timestamp(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "service_name": self._service,
        }
        transaction_id = get_transaction_id()
        if transaction_id is not None:
            payload["transaction_id"] = transaction_id

        payload.update(_extract_extra_fields(record))

        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=True)


class TextFormatter(logging.Formatter):
    """Plain text formatter that still includes the transaction id."""

    def __init__(self, *, service: str) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        return (
            f"{base} "
            f"service_name={self._service} "
            f"transaction_id={get_transaction_id() or '-'}"
        )


def new_transaction_id() -> str:
    """Generate a transaction id in the `tid_xxxxxxxxxx` format."""
    suffix = "".join(
        secrets.choice(_TRANSACTION_ID_ALPHABET) for _ in range(_TRANSACTION_ID_LENGTH)
    )
    return f"{TRANSACTION_ID_PREFIX}{suffix}"


def extract_transaction_id(headers: Mapping[str, str]) -> str | None:
    """Return the transaction id carried by incoming headers, if any."""
    normalized = {str(key).lower(): str(value) for key, value in headers.items()}
    for key in _TRANSACTION_ID_HEADERS:
        value = _clean_optional_string(normalized.get(key))
        if value is not None:
            return value
    return None


def get_transaction_id() -> str | None:
    """Read the transaction id bound to the current context."""
    return _TRANSACTION_ID_CTX.get()


@contextmanager
def transaction_scope(transaction_id: str | None) -> Iterator[str | None]:
    """Temporarily bind a transaction id for the current context."""
    token = _TRANSACTION_ID_CTX.set(_clean_optional_string(transaction_id))
    try:
        yield _TRANSACTION_ID_CTX.get()
    finally:
        _TRANSACTION_ID_CTX.reset(token)


def bootstrap_logging(
    *,
    service: str,
    level: str = "INFO",
    log_format: str = "json",
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Configure a logger with standard formatting and transaction fields."""
    target_logger = logger or logging.getLogger()

    if force:
        for handler in list(target_logger.handlers):
            target_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(_build_formatter(log_format, service=service))

    target_logger.addHandler(handler)
    target_logger.setLevel(level.upper())
    if target_logger is not logging.getLogger():
        target_logger.propagate = False
    return target_logger


def bootstrap_logging_from_app_settings(
    app_settings: AppSettings,
    *,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Bootstrap logging using values from typed settings."""
    return bootstrap_logging(
        service=app_settings.service.name,
        level=app_settings.logging.level,
        log_format=app_settings.logging.format,
        logger=logger,
        stream=stream,
        force=force,
    )


def _build_formatter(log_format: str, *, service: str) -> logging.Formatter:
    if log_format == "text":
        return TextFormatter(service=service)
    return JsonFormatter(service=service)


def _clean_optional_string(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text == "":
        return None
    return text


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_RECORD_KEYS or key.startswith("_"):
            continue
        if key in {"service_name", "transaction_id"}:
            continue
        extras[key] = value
    return extras


def _format_timestamp(created: float) -> str:
    timestamp = datetime.fromtimestamp(created, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
