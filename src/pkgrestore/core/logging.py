# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for pkgrestore.

Every module logs through logging.getLogger(__name__) and propagates to
the "pkgrestore" root logger, which the command line configures once:
JSON lines for build servers, plain text for a terminal.
"""

import logging
import json
import sys
from datetime import datetime, UTC
from typing import Any, Optional, TextIO

ROOT_LOGGER_NAME = "pkgrestore"

# LogRecord attributes that are not extra fields
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName"
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with log_event fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        )
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable records for interactive use."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **fields: Any
) -> None:
    """
    Log a named event with structured fields.

    Args:
        logger: Logger instance
        event: Event name, used as the message
        level: Log level name
        **fields: Extra fields; the JSON format emits them as keys
    """
    getattr(logger, level.lower())(event, extra=fields)


def configure_logging(
    config=None,
    verbose: bool = False,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the pkgrestore root logger from the client configuration.

    Replaces any handler installed by an earlier call, so it is safe to
    call once per command.

    Args:
        config: ClientConfig supplying log_level and log_format; the global one if None
        verbose: Log at DEBUG regardless of the configured level
        stream: Where records go, stderr by default

    Returns:
        The configured root logger
    """
    if config is None:
        from pkgrestore.core.config import get_config
        config = get_config()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level.upper()))

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if config.log_format == "json" else TextFormatter())
    root.handlers = [handler]
    return root
