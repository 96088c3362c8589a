"""
Log formatters for structured and console logging.

Both formatters append the context passed through ``extra=`` (for example
unit_id or partition) to the message.
"""

import json
import logging
import socket
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord has; anything else came in through extra=
RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in RECORD_FIELDS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Args:
        include_timestamp: Include an ISO 8601 UTC timestamp
        include_hostname: Include the host name
        app_name: Application name added to every record
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_hostname: bool = True,
        app_name: str = "osm-notes-ingestion",
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.app_name = app_name
        self.hostname = socket.gethostname() if include_hostname else None

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": self.app_name,
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()

        if self.hostname:
            log_data["hostname"] = self.hostname

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }
        log_data["thread"] = record.threadName

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        context = extra_fields(record)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console output, with level colours on a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def formatMessage(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().formatMessage(record)

        # Colour a copy so other handlers see the plain level name
        values = dict(record.__dict__)
        values["levelname"] = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return self._style._fmt % values

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        context = extra_fields(record)
        if context:
            items = ", ".join(f"{key}={value}" for key, value in context.items())
            formatted += f" [{items}]"

        return formatted
