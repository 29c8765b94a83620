"""Structured logging configuration for bc4-core.

- JSON structured logging with StructuredFormatter
- Logger hierarchy under the ``bc4`` namespace
- Environment variable control (BC4_LOG_LEVEL, BC4_LOG_FORMAT)
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

# Sensitive keys that should be redacted in log output.
# Access tokens travel in every request, so "token" and "authorization" matter most.
SENSITIVE_KEYS = {
    "password", "token", "access_token", "secret", "apikey", "api_key",
    "authorization", "credential", "auth", "bearer",
}

# Name of the stream handler configure_logging installs on the bc4 logger
HANDLER_NAME = "bc4"

# Standard LogRecord attributes never copied into the context dict
_STANDARD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Outputs logs in JSON format with:
    - timestamp: UTC ISO 8601 format with 'Z' suffix
    - level: Log level name (INFO, ERROR, etc.)
    - logger: Logger name (bc4 hierarchy)
    - message: Log message
    - context: Extras dict merged from LogRecord attributes

    Sensitive keys (token, authorization, etc.) are redacted so a bearer
    token passed through ``extra=`` never reaches the log stream.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }

        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for local debugging (BC4_LOG_FORMAT=text)."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structured logging for all bc4 loggers.

    Args:
        level: Optional log level override. If not provided, uses BC4_LOG_LEVEL
               environment variable (default: WARNING).
        log_format: Optional format override (json, text). If not provided,
               uses BC4_LOG_FORMAT (default: json).

    Environment Variables:
        BC4_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR). Default: WARNING
        BC4_LOG_FORMAT: Output format (json, text). Default: json
    """
    if level is None:
        level = os.getenv("BC4_LOG_LEVEL", "WARNING")

    log_level = getattr(logging, level.upper(), logging.WARNING)

    if log_format is None:
        log_format = os.getenv("BC4_LOG_FORMAT", "json")

    if log_format.lower() == "text":
        formatter = TextFormatter()
    else:
        formatter = StructuredFormatter()

    logger = logging.getLogger("bc4")
    logger.setLevel(log_level)

    # Idempotent: only add our handler once, but refresh its formatter.
    # Other handlers on the logger (e.g. test capture) are left alone.
    handler = next((h for h in logger.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        logger.addHandler(handler)
    handler.setFormatter(formatter)

    # The CLI layer owns stdout; keep library logs off the root logger
    logger.propagate = False
