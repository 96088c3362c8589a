"""
Resource-aware parallel processing of work units.

Units are pulled from a shared queue by a number of worker threads sized by
the ResourceMonitor. Failed or timed-out units are isolated and reported in
the aggregated PoolResult; they never abort the rest of the run.

Usage:
    from ingestion.pool import WorkerPool, WorkUnit
    from ingestion.resources import WorkloadKind

    pool = WorkerPool(settings)
    result = pool.run(units, load_partition, 8, WorkloadKind.MEMORY_INTENSIVE)
    print(f"{result.succeeded}/{len(units)} units loaded")
"""

from .dispatcher import WorkerPool, resolve_processor
from .metrics import (
    POOL_ACTIVE_WORKERS,
    POOL_QUEUE_SIZE,
    POOL_RUN_TIME,
    POOL_UNIT_TIME,
    POOL_UNITS_PROCESSED,
)
from .units import PoolResult, UnitOutcome, WorkUnit

__all__ = [
    "POOL_ACTIVE_WORKERS",
    "POOL_QUEUE_SIZE",
    "POOL_RUN_TIME",
    "POOL_UNITS_PROCESSED",
    "POOL_UNIT_TIME",
    "PoolResult",
    "UnitOutcome",
    "WorkUnit",
    "WorkerPool",
    "resolve_processor",
]
