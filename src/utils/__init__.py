"""
Shared infrastructure for the notes ingestion pipeline

Provides:
- logging: structured logging setup
- metrics: Prometheus metric registration and publishing
- tracing: OpenTelemetry spans
- retry: retry loop with backoff
- db_pool: PostgreSQL connection pooling
"""

__version__ = "1.0.0"
__all__ = ["db_pool", "logging", "metrics", "retry", "tracing"]
