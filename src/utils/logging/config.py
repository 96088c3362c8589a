"""
Application-wide logging setup.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from .formatters import ConsoleFormatter, JSONFormatter

NOISY_LOGGERS = ("urllib3", "requests", "apscheduler")

TRUE_VALUES = ("true", "1", "yes")


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "osm-notes-ingestion",
    max_bytes: int = 100 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger

    Replaces any handlers installed earlier, so calling it twice is safe.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a rotating log file (None disables file logging)
        console_output: Log to stderr
        json_format: Emit JSON records on every handler
        app_name: Application name included in JSON records
        max_bytes: Size at which the log file rotates
        backup_count: Number of rotated files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    json_formatter = JSONFormatter(app_name=app_name) if json_format else None

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(json_formatter or ConsoleFormatter(use_colors=True))
        root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            json_formatter
            or logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def shutdown_logging() -> None:
    """
    Close and detach every root handler.

    Releases the rotating log file; call it on daemon shutdown.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        try:
            handler.close()
        except OSError as e:
            sys.stderr.write(f"Error closing log handler: {e}\n")


def configure_from_env(level: str | None = None) -> None:
    """
    Configure logging from environment variables

    An explicit level (e.g. from a command-line flag) wins over LOG_LEVEL.

    Environment variables:
        LOG_LEVEL: Log level (default: INFO)
        LOG_FILE: Log file path (default: none)
        LOG_JSON: Use JSON format (default: false)
        LOG_CONSOLE: Enable console output (default: true)
    """
    setup_logging(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
        console_output=os.getenv("LOG_CONSOLE", "true").lower() in TRUE_VALUES,
        json_format=os.getenv("LOG_JSON", "false").lower() in TRUE_VALUES,
    )
