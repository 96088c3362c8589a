"""PostgreSQL connection pool implementation."""

from typing import Any

import psycopg2
import psycopg2.extensions
from opentelemetry import trace

from utils.tracing import trace_operation

from .base import BaseConnectionPool


class PostgresConnectionPool(BaseConnectionPool):
    """Connection pool for the PostgreSQL notes database."""

    database_type = "postgresql"

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str = "",
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.connect_timeout = connect_timeout

        super().__init__(**kwargs)

    def _create_connection(self) -> psycopg2.extensions.connection:
        with trace_operation(
            "postgres_connect",
            kind=trace.SpanKind.CLIENT,
            db_host=self.host,
            db_name=self.database,
        ):
            conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                dbname=self.database,
                user=self.user,
                password=self.password,
                connect_timeout=self.connect_timeout,
                application_name="osm-notes-ingestion",
            )
            # Each statement commits on its own; loaders batch inside SQL
            conn.set_session(autocommit=True)
            return conn

    def _is_connection_healthy(self, conn: psycopg2.extensions.connection) -> bool:
        if conn is None or conn.closed:
            return False

        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return True
        except (psycopg2.Error, psycopg2.Warning):
            return False

    def _close_connection(self, conn: psycopg2.extensions.connection) -> None:
        if conn is not None and not conn.closed:
            conn.close()
