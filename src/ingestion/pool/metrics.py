"""
Prometheus metrics for worker pool runs.
"""

from prometheus_client import Counter, Gauge, Histogram

from utils.metrics import get_or_create_metric

POOL_UNITS_PROCESSED = get_or_create_metric(
    lambda: Counter(
        "pool_units_processed_total",
        "Work units processed by the worker pool",
        ["status"],  # success, failed, timed_out, skipped
    ),
    "pool_units_processed_total",
)

POOL_RUN_TIME = get_or_create_metric(
    lambda: Histogram(
        "pool_run_seconds",
        "Duration of a worker pool run",
        ["workload_kind"],
        buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600],
    ),
    "pool_run_seconds",
)

POOL_UNIT_TIME = get_or_create_metric(
    lambda: Histogram(
        "pool_unit_seconds",
        "Duration of a single work unit including retries",
        ["workload_kind"],
        buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600],
    ),
    "pool_unit_seconds",
)

POOL_ACTIVE_WORKERS = get_or_create_metric(
    lambda: Gauge("pool_active_workers", "Worker threads currently running"),
    "pool_active_workers",
)

POOL_QUEUE_SIZE = get_or_create_metric(
    lambda: Gauge("pool_queue_size", "Work units waiting to be picked up"),
    "pool_queue_size",
)
