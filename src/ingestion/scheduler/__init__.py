"""
Daemon-mode scheduling of ingestion runs using APScheduler.
"""

from .jobs import ingest_job_wrapper
from .scheduler import IngestionScheduler, parse_cron_expression

__all__ = [
    "IngestionScheduler",
    "ingest_job_wrapper",
    "parse_cron_expression",
]
