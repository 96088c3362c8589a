"""
Prometheus HTTP exposition for long-running ingestion daemons.
"""

import logging
import time
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Gauge, Info, start_http_server

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """Serves the registry on /metrics."""

    def __init__(self, port: int = 9091, registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """
        Start the metrics HTTP server once.

        Raises:
            RuntimeError: If the port is already taken
        """
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            raise RuntimeError(f"Metrics server port {self.port} is not available: {e}") from e

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")

    def is_started(self) -> bool:
        return self._server_started


class ApplicationInfo:
    """Publishes the application name, version and uptime."""

    def __init__(
        self,
        app_name: str = "osm-notes-ingestion",
        version: str = "1.0.0",
        registry: Optional[CollectorRegistry] = None,
    ):
        self.registry = registry or REGISTRY
        self._start_time = time.time()

        self.info = Info("ingestion_application", "Application metadata", registry=self.registry)
        self.info.info({"name": app_name, "version": version})

        self.uptime_seconds = Gauge(
            "ingestion_application_uptime_seconds",
            "Application uptime in seconds",
            registry=self.registry,
        )
        self.uptime_seconds.set_function(self.get_uptime)

    def get_uptime(self) -> float:
        return time.time() - self._start_time
