"""
System resource sensing and concurrency sizing.

Usage:
    from ingestion.resources import ResourceMonitor, WorkloadKind

    monitor = ResourceMonitor()
    workers = monitor.adjust_workers(8, WorkloadKind.MEMORY_INTENSIVE)
"""

from .limits import LimitsStatus, configure_system_limits
from .monitor import (
    CheckMode,
    ResourceMonitor,
    ResourceStatus,
    WaitOutcome,
    WorkloadKind,
)
from .stats import PsutilSystemStats, ResourceSample, StaticSystemStats, SystemStats

__all__ = [
    "CheckMode",
    "LimitsStatus",
    "PsutilSystemStats",
    "ResourceMonitor",
    "ResourceSample",
    "ResourceStatus",
    "StaticSystemStats",
    "SystemStats",
    "WaitOutcome",
    "WorkloadKind",
    "configure_system_limits",
]
