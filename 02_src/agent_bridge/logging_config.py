"""Structured logging configuration for Agent Bridge."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_DETAIL_LOG_PATH, DEFAULT_LOG_PATH

DETAIL_LOGGER_NAME = "agent_bridge.detail"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra context if present
        if hasattr(record, "context"):
            log_data["context"] = record.context

        # SDK message objects are not JSON-native
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    detail_log_file: str | None = None,
) -> None:
    """
    Setup structured logging for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Path to log file. Defaults to 04_logs/app.log.
        detail_log_file: Path to the raw backend event log.
                         Defaults to 04_logs/agent-detail.log.
    """
    # Determine log level
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    # Determine log file paths
    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)
    if detail_log_file is None:
        detail_log_file = str(DEFAULT_DETAIL_LOG_PATH)

    # Create logs directories if they don't exist
    for path in (log_file, detail_log_file):
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "agent_bridge.logging_config.JSONFormatter",
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
            "detail": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": detail_log_file,
                "maxBytes": 10 * 1024 * 1024,
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
        "loggers": {
            DETAIL_LOGGER_NAME: {
                "level": "DEBUG",
                "handlers": ["detail"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level.upper(),
            "handlers": ["file", "console"],
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_detail(provider: str, event_type: str, data: Any) -> None:
    """Write one raw backend event to the detail log."""
    logging.getLogger(DETAIL_LOGGER_NAME).debug(
        "%s %s",
        provider,
        event_type,
        extra={
            "context": {
                "provider": provider,
                "event_type": event_type,
                "data": data,
            }
        },
    )
