"""Structured logging configuration for Shadow Sync."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Context keys lifted to the top level so log queries can filter on them
CORRELATION_KEYS = ("conflict_id", "tag_name", "logic_id")

# websockets logs every frame at DEBUG, httpx every request at INFO
DEFAULT_LOGGER_LEVELS = {
    "websockets": "INFO",
    "httpx": "WARNING",
    "uvicorn.access": "WARNING",
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            extra = dict(context)
            for key in CORRELATION_KEYS:
                if key in extra:
                    log_data[key] = extra.pop(key)
            if extra:
                log_data["context"] = extra
        elif context is not None:
            log_data["context"] = context

        return json.dumps(log_data, default=str)


def parse_logger_levels(value: str | None) -> dict[str, str]:
    """Parse ``name=LEVEL,name=LEVEL`` overrides on top of the defaults.

    Malformed entries are skipped.
    """
    levels = dict(DEFAULT_LOGGER_LEVELS)
    if not value:
        return levels

    for entry in value.split(","):
        name, sep, level = entry.partition("=")
        name, level = name.strip(), level.strip().upper()
        if not sep or not name or not isinstance(logging.getLevelName(level), int):
            continue
        levels[name] = level
    return levels


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """
    Setup structured logging for the sync client.

    Args:
        log_level: Root log level. Defaults to LOG_LEVEL env var or INFO.
        log_file: Path to log file. Defaults to 04_logs/app.log.
        logger_levels: Per-logger levels. Defaults to SYNC_LOG_LEVELS
                       (``websockets=DEBUG,httpx=INFO``) over the built-in quiet set.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)

    if logger_levels is None:
        logger_levels = parse_logger_levels(os.getenv("SYNC_LOG_LEVELS"))

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "shadowsync.logging_config.JSONFormatter",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_file,
                "maxBytes": 10 * 1024 * 1024,  # 10 MB
                "backupCount": 5,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": level} for name, level in logger_levels.items()},
        "root": {
            "level": log_level.upper(),
            "handlers": ["file", "console"],
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
