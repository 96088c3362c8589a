"""
Database connection pooling for the PostgreSQL notes database.

Provides thread-safe connection pools with health checks, metrics,
and recycling of stale connections.
"""

from .base import (
    BaseConnectionPool,
    ConnectionPoolError,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
)
from .postgres import PostgresConnectionPool

__all__ = [
    "BaseConnectionPool",
    "PostgresConnectionPool",
    "PooledConnection",
    "ConnectionPoolError",
    "PoolExhaustedError",
    "PoolClosedError",
]
