from __future__ import annotations

import logging
import os
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars

_REDACT_REPLACEMENT = "***REDACTED***"
_DEFAULT_REDACT_FIELDS = {"authorization", "access_token", "refresh_token", "password"}
_LOG_FILE_NAME = "bookstall.log"


def _log_level_from_env() -> int:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if not level_name:
        return logging.INFO
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def _redaction_processor(
    redact_fields: set[str],
) -> Callable[[Any, str, dict[str, Any]], dict[str, Any]]:
    lower_fields = {field.lower() for field in redact_fields}

    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        for key in list(event_dict.keys()):
            if isinstance(key, str) and key.lower() in lower_fields:
                event_dict[key] = _REDACT_REPLACEMENT
        return event_dict

    return processor


def _redact_fields_from_env() -> set[str]:
    raw = os.getenv("LOG_REDACT_FIELDS", "")
    fields = {item.strip() for item in raw.split(",") if item.strip()}
    return _DEFAULT_REDACT_FIELDS | fields


def _log_destination() -> Path | None:
    """Rotating file target; ``LOG_FILE=stdout`` or an empty ``LOG_DIR`` disables it."""

    explicit = os.getenv("LOG_FILE", "").strip()
    if explicit:
        if explicit.lower() == "stdout":
            return None
        return Path(explicit)

    directory = os.getenv("LOG_DIR", "logs").strip()
    if not directory:
        return None
    return Path(directory) / _LOG_FILE_NAME


def _positive_int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _build_handlers(level: int) -> list[logging.Handler]:
    formatter = logging.Formatter("%(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream_handler]

    destination = _log_destination()
    if destination is None:
        return handlers
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            destination,
            maxBytes=_positive_int_from_env("LOG_FILE_MAX_BYTES", 10_000_000),
            backupCount=_positive_int_from_env("LOG_FILE_BACKUP_COUNT", 5),
            encoding="utf-8",
        )
    except OSError as exc:
        # stdout stays available when the log directory is not writable
        logging.getLogger(__name__).warning("log file %s unavailable: %s", destination, exc)
        return handlers
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)
    return handlers


def configure_logging() -> None:
    """Route structlog through stdlib logging as one JSON object per line.

    Context bound with :func:`structlog.contextvars.bind_contextvars` (the
    request middleware binds ``request_id``, ``path`` and friends) is merged
    into every event, and any field named in ``LOG_REDACT_FIELDS`` is masked.
    """

    level = _log_level_from_env()

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=_build_handlers(level),
        force=True,
    )

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _redaction_processor(_redact_fields_from_env()),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
