"""
Thread-safe connection pooling.

Connections are created lazily up to max_size, checked on every checkout
and recycled once they outlive max_lifetime or sit idle past max_idle_time.
Subclasses only supply how to open, test and close one connection.
"""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from utils.metrics import get_or_create_metric
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


CONNECTION_POOL_SIZE = get_or_create_metric(
    lambda: Gauge(
        "db_connection_pool_size",
        "Current size of database connection pool",
        ["database_type", "pool_name"],
    ),
    "db_connection_pool_size",
)

CONNECTION_POOL_IDLE = get_or_create_metric(
    lambda: Gauge(
        "db_connection_pool_idle",
        "Number of idle connections in pool",
        ["database_type", "pool_name"],
    ),
    "db_connection_pool_idle",
)

CONNECTION_POOL_ERRORS = get_or_create_metric(
    lambda: Counter(
        "db_connection_pool_errors_total",
        "Number of connection pool errors",
        ["database_type", "pool_name", "error_type"],
    ),
    "db_connection_pool_errors_total",
)

CONNECTION_ACQUIRE_TIME = get_or_create_metric(
    lambda: Histogram(
        "db_connection_acquire_seconds",
        "Time to acquire a connection from pool",
        ["database_type", "pool_name"],
        buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    ),
    "db_connection_acquire_seconds",
)


@dataclass
class PooledConnection:
    """A pooled connection plus the bookkeeping needed to recycle it."""

    connection: Any
    created_at: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)
    use_count: int = 0

    def mark_used(self) -> None:
        self.last_used = time.monotonic()
        self.use_count += 1


class ConnectionPoolError(Exception):
    """Base exception for connection pool errors."""


class PoolExhaustedError(ConnectionPoolError):
    """Raised when no connection becomes available within the timeout."""


class PoolClosedError(ConnectionPoolError):
    """Raised when attempting to use a closed pool."""


class BaseConnectionPool:
    """
    Base class for database connection pools.

    Args:
        min_size: Connections opened eagerly at startup
        max_size: Maximum number of open connections
        max_idle_time: Seconds an idle connection may wait before recycling
        max_lifetime: Seconds a connection may live before recycling
        acquire_timeout: Seconds to wait for a free connection
        pool_name: Name used in metrics and logs
    """

    database_type = "unknown"

    def __init__(
        self,
        min_size: int = 1,
        max_size: int = 5,
        max_idle_time: float = 300,
        max_lifetime: float = 3600,
        acquire_timeout: float = 30.0,
        pool_name: str = "default",
    ):
        if min_size < 0 or max_size < 1 or min_size > max_size:
            raise ValueError(f"Invalid pool size: min={min_size}, max={max_size}")

        self.min_size = min_size
        self.max_size = max_size
        self.max_idle_time = max_idle_time
        self.max_lifetime = max_lifetime
        self.acquire_timeout = acquire_timeout
        self.pool_name = pool_name

        self._idle: Queue[PooledConnection] = Queue(maxsize=max_size)
        self._open: list[PooledConnection] = []
        self._lock = threading.RLock()
        self._closed = False

        for _ in range(min_size):
            pooled = self._open_connection("initialization")
            if pooled is not None:
                self._idle.put(pooled)
        self._update_metrics()

        logger.info(
            f"Initialized {self.__class__.__name__} '{pool_name}' "
            f"(min={min_size}, max={max_size})"
        )

    def _create_connection(self) -> Any:
        raise NotImplementedError

    def _is_connection_healthy(self, conn: Any) -> bool:
        raise NotImplementedError

    def _close_connection(self, conn: Any) -> None:
        raise NotImplementedError

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._open)

    def _labels(self) -> dict[str, str]:
        return {"database_type": self.database_type, "pool_name": self.pool_name}

    def _open_connection(self, error_type: str) -> PooledConnection | None:
        """Open one connection and register it, or return None on failure."""
        with self._lock:
            if len(self._open) >= self.max_size:
                return None
            try:
                pooled = PooledConnection(connection=self._create_connection())
            except Exception as e:
                logger.error(f"Failed to open {self.database_type} connection: {e}")
                CONNECTION_POOL_ERRORS.labels(**self._labels(), error_type=error_type).inc()
                return None
            self._open.append(pooled)
            return pooled

    def _is_usable(self, pooled: PooledConnection) -> bool:
        now = time.monotonic()
        if now - pooled.created_at > self.max_lifetime:
            logger.debug("Connection exceeded max lifetime, recycling")
            return False
        if now - pooled.last_used > self.max_idle_time:
            logger.debug("Connection exceeded max idle time, recycling")
            return False
        try:
            return bool(self._is_connection_healthy(pooled.connection))
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            CONNECTION_POOL_ERRORS.labels(**self._labels(), error_type="health_check").inc()
            return False

    def _recycle(self, pooled: PooledConnection) -> None:
        with self._lock:
            if pooled not in self._open:
                return
            self._open.remove(pooled)

        try:
            self._close_connection(pooled.connection)
        except Exception as e:
            logger.warning(f"Error closing connection: {e}")

    def _update_metrics(self) -> None:
        with self._lock:
            CONNECTION_POOL_SIZE.labels(**self._labels()).set(len(self._open))
            CONNECTION_POOL_IDLE.labels(**self._labels()).set(self._idle.qsize())

    def _checkout(self) -> PooledConnection:
        deadline = time.monotonic() + self.acquire_timeout

        while True:
            try:
                pooled = self._idle.get_nowait()
            except Empty:
                pooled = self._open_connection("creation")
                if pooled is None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolExhaustedError(
                            f"No connection available within {self.acquire_timeout}s"
                        )
                    try:
                        pooled = self._idle.get(timeout=min(remaining, 0.5))
                    except Empty:
                        continue

            if self._is_usable(pooled):
                return pooled

            logger.info("Connection unusable, recycling and retrying")
            self._recycle(pooled)
            if time.monotonic() >= deadline:
                raise PoolExhaustedError(
                    f"No healthy connection available within {self.acquire_timeout}s"
                )

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """
        Check out a connection for the duration of the with block.

        Raises:
            PoolClosedError: If the pool is closed
            PoolExhaustedError: If no connection is available within acquire_timeout
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        started = time.monotonic()
        with trace_operation(
            "db_pool_acquire",
            kind=trace.SpanKind.CLIENT,
            database_type=self.database_type,
            pool_name=self.pool_name,
        ):
            pooled = self._checkout()

        pooled.mark_used()
        CONNECTION_ACQUIRE_TIME.labels(**self._labels()).observe(time.monotonic() - started)
        self._update_metrics()

        try:
            yield pooled.connection
        finally:
            if self._closed:
                self._recycle(pooled)
            else:
                self._idle.put(pooled)
            self._update_metrics()

    def close(self) -> None:
        """Close every connection and refuse further checkouts."""
        if self._closed:
            return

        self._closed = True
        with self._lock:
            for pooled in list(self._open):
                self._recycle(pooled)
            while True:
                try:
                    self._idle.get_nowait()
                except Empty:
                    break
        self._update_metrics()
        logger.info(f"Connection pool '{self.pool_name}' closed")
