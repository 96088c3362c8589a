"""
Structured logging configuration.

Modules log through ``logging.getLogger(__name__)``; entry points call
setup_logging() or configure_from_env() once at startup.

Usage:
    from utils.logging import configure_from_env

    configure_from_env()
    logger = logging.getLogger(__name__)
    logger.info("Loaded part", extra={"unit_id": "part_003", "records": 1250})
"""

from .config import configure_from_env, setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter

__all__ = [
    "ConsoleFormatter",
    "JSONFormatter",
    "configure_from_env",
    "setup_logging",
    "shutdown_logging",
]
