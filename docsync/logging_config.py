"""
Centralized logging configuration.

Provides structured JSON logging with a per-batch context, secret redaction
and environment-aware formatting.

All modules should use:
    from docsync.logging_config import get_logger
    logger = get_logger(__name__)
"""

import json
import logging
import os
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "docsync"

# ---------------------------------------------------------------------------
# Batch context (the batch_date of the replication iteration in progress)
# ---------------------------------------------------------------------------
_batch_id: ContextVar[str] = ContextVar("batch_id", default="")


def get_batch_id() -> str:
    """Return the current batch id, or empty string if none set."""
    return _batch_id.get()


def set_batch_id(batch_id: str) -> None:
    """Set the batch id for the current context."""
    _batch_id.set(batch_id)


# ---------------------------------------------------------------------------
# Environment detection
# ---------------------------------------------------------------------------
def _get_environment() -> str:
    """Detect the current environment from APP_ENV or ENV."""
    return os.environ.get("APP_ENV", os.environ.get("ENV", "development")).lower()


def is_production() -> bool:
    return _get_environment() == "production"


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------
_SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key[_-]?secret\s*[:=]\s*)['\"]?[^\s'\"]{4,}['\"]?", re.IGNORECASE),
    re.compile(r"(password\s*[:=]\s*)['\"]?[^\s'\"]{4,}['\"]?", re.IGNORECASE),
    re.compile(r"(secret\s*[:=]\s*)['\"]?[\w\-]{10,}['\"]?", re.IGNORECASE),
    re.compile(r"(Basic\s+)[A-Za-z0-9+/=]{8,}", re.IGNORECASE),
    re.compile(r"(://[^:/@\s]+:)[^@\s]+(@)"),
]

_SECRET_ENV_KEYS = {
    "EXECUTESYNC_EXECUTE_APIKEY_SECRET",
    "EXECUTESYNC_DATABASE_DSN",
}


def _redact_secrets(message: str) -> str:
    """Remove secret values from log messages."""
    result = message
    for pattern in _SECRET_PATTERNS:
        if pattern.groups == 2:
            result = pattern.sub(r"\1[REDACTED]\2", result)
        else:
            result = pattern.sub(r"\1[REDACTED]", result)
    for key in _SECRET_ENV_KEYS:
        val = os.environ.get(key)
        if val and len(val) > 4 and val in result:
            result = result.replace(val, "[REDACTED]")
    return result


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------
class StructuredJsonFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Every entry includes: timestamp, level, service, context, batch.
    Entries logged with an exception also include stackTrace.
    """

    LEVEL_MAP = {
        "DEBUG": "debug",
        "INFO": "info",
        "WARNING": "warn",
        "ERROR": "error",
        "CRITICAL": "fatal",
    }

    def __init__(self, service: str = ROOT_LOGGER):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        level = self.LEVEL_MAP.get(record.levelname, record.levelname.lower())

        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": level,
            "service": self.service,
            "context": record.name,
            "batch": get_batch_id() or None,
            "message": _redact_secrets(record.getMessage()),
        }

        if record.exc_info and record.exc_info[1] is not None:
            entry["stackTrace"] = _redact_secrets(
                self.formatException(record.exc_info)
            )

        # Extra structured fields passed via `extra={"data": {...}}`
        if hasattr(record, "data") and isinstance(record.data, dict):
            entry["data"] = record.data

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for the console."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        batch = get_batch_id()
        batch_str = f" [{batch}]" if batch else ""
        msg = _redact_secrets(record.getMessage())
        base = f"{record.levelname}:\t{ts}\t{record.name}{batch_str}\t{msg}"

        if hasattr(record, "data") and isinstance(record.data, dict):
            base += "\t" + " ".join(f"{k}={v}" for k, v in record.data.items())

        if record.exc_info and record.exc_info[1] is not None:
            base += "\n" + _redact_secrets(self.formatException(record.exc_info))

        return base


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------
LOG_LEVELS = {
    "quiet": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_configured = False


def configure_logging(
    log_level: str = "info",
    log_file: Optional[Path] = None,
    service: str = ROOT_LOGGER,
) -> None:
    """Configure the centralized logging system.

    Call once at startup. All subsequent get_logger() calls inherit this config.

    Args:
        log_level: quiet, info or debug (standard level names are accepted too)
        log_file: Optional file receiving JSON log entries (appended)
        service: Service name included in every structured log entry
    """
    global _configured

    level_name = log_level.lower()
    level = LOG_LEVELS.get(level_name) or getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    if is_production():
        formatter: logging.Formatter = StructuredJsonFormatter(service=service)
    else:
        formatter = DevelopmentFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    if log_file is not None:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
            file_handler.setFormatter(StructuredJsonFormatter(service=service))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not open log file {log_file}: {e}")

    root_logger.propagate = False
    _configured = True


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger that routes through the centralized configuration.

    Module names under the docsync package are used as-is; any other name
    is nested under the docsync root logger.
    """
    if not _configured:
        configure_logging()

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)

    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
