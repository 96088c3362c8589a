"""
Target database access for loaders and gap recording.

TargetStore is the only place that talks SQL. It borrows connections from a
PostgresConnectionPool and runs parameterized statements for loaders.
"""

import logging
from typing import Any, Sequence

from opentelemetry import trace

from utils.db_pool import BaseConnectionPool, PostgresConnectionPool
from utils.tracing import trace_operation

from .config import DatabaseSettings

logger = logging.getLogger(__name__)


class TargetStore:
    """
    Thin statement runner on top of a connection pool.

    Args:
        pool: Connection pool to borrow connections from
    """

    def __init__(self, pool: BaseConnectionPool):
        self.pool = pool

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "TargetStore":
        pool = PostgresConnectionPool(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
            password=settings.password,
            min_size=settings.min_connections,
            max_size=settings.max_connections,
            pool_name="notes",
        )
        return cls(pool)

    def execute(self, query: str, params: Sequence[Any] | dict[str, Any] | None = None) -> int:
        """
        Run one statement and return its row count.

        Query text must be a constant; values always travel as parameters.
        """
        with trace_operation("store_execute", kind=trace.SpanKind.CLIENT):
            with self.pool.acquire() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)
                    return cursor.rowcount

    def close(self) -> None:
        self.pool.close()
