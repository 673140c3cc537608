# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for criage.

Library modules only call ``logging.getLogger(__name__)``. The service
attaches handlers once to the ``criage`` logger with ``configure_logging``,
using the ``logging`` section of the config file:

    logging:
      level: INFO
      format: json        # or text
      file: ~/.criage/criage.log

Lifecycle events are emitted with ``log_event``; in JSON output their
fields (transaction id, package, version...) become top-level keys.
"""

import logging
import json
import sys
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from criage.core.errors import ConfigurationError

ROOT_LOGGER = "criage"
LOG_FORMATS = ("text", "json")

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, event fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(event_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines; event fields are appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = event_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


_FORMATTERS: Dict[str, Type[logging.Formatter]] = {
    "text": TextFormatter,
    "json": JSONFormatter,
}


def event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record through ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Attach handlers to the ``criage`` logger, replacing earlier ones.

    Records always go to stderr; ``log_file`` adds a second handler with
    the same formatter.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: ``text`` or ``json``
        log_file: Optional log file; parent directories are created

    Returns:
        The ``criage`` logger

    Raises:
        ConfigurationError: Unknown format or unusable log file
    """
    formatter_class = _FORMATTERS.get(log_format)
    if formatter_class is None:
        raise ConfigurationError(
            f"Unknown log format {log_format!r}, expected one of: {', '.join(LOG_FORMATS)}"
        )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Cannot open log file {log_file}: {e}") from e

    formatter = formatter_class()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **fields: Any
) -> None:
    """
    Log a named lifecycle event with structured fields.

    Fields that are None are left out.
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        event,
        extra={key: value for key, value in fields.items() if value is not None}
    )
