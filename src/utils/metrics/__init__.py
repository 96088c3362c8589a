"""
Prometheus metrics helpers.

Metrics are declared at module level next to the code that updates them,
through get_or_create_metric() so that re-importing a module (tests, reloads)
reuses the registered collector instead of failing. MetricsPublisher exposes
the registry over HTTP for daemon runs.

Usage:
    from utils.metrics import MetricsPublisher, get_or_create_metric

    UNITS = get_or_create_metric(
        lambda: Counter("pool_units_processed_total", "Units processed", ["status"]),
        "pool_units_processed_total",
    )
    MetricsPublisher(port=9091).start()
"""

import logging
from typing import Any, Callable, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the collector already registered under its name.

    Args:
        metric_factory: Callable that creates the metric
        metric_name: Name to look up when the metric already exists
        registry: Prometheus registry the factory registers into

    Returns:
        The metric instance (new or existing)
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


def initialize_metrics(
    port: int = 9091,
    version: str = "1.0.0",
    registry: CollectorRegistry | None = None,
) -> dict[str, Any]:
    """
    Start the metrics HTTP server and publish application info.

    Returns:
        Dictionary with the "publisher" and "app_info" objects
    """
    logger.info(f"Initializing metrics on port {port}")

    publisher = MetricsPublisher(port=port, registry=registry)
    publisher.start()

    return {
        "publisher": publisher,
        "app_info": ApplicationInfo(version=version, registry=registry),
    }


__all__ = [
    "ApplicationInfo",
    "MetricsPublisher",
    "get_or_create_metric",
    "initialize_metrics",
]
