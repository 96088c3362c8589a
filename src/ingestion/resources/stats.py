"""
System statistics capability.

ResourceMonitor never reads the operating system directly; it asks a
SystemStats object for a ResourceSample. PsutilSystemStats is the production
implementation, StaticSystemStats returns fixed readings for tests and
dry runs.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceSample:
    """
    Point-in-time memory and load reading.

    Either value is None when the platform cannot report it.
    """

    memory_available_percent: float | None
    load_average: float | None
    taken_at: float = field(default_factory=time.time)

    @property
    def memory_used_percent(self) -> float | None:
        if self.memory_available_percent is None:
            return None
        return 100.0 - self.memory_available_percent


class SystemStats(Protocol):
    def sample(self) -> ResourceSample:
        ...


class PsutilSystemStats:
    """Reads available memory and the 1-minute load average through psutil."""

    def sample(self) -> ResourceSample:
        memory_available = None
        try:
            memory = psutil.virtual_memory()
            if memory.total:
                memory_available = memory.available / memory.total * 100.0
        except (OSError, RuntimeError) as e:
            logger.warning(f"Could not read memory statistics: {e}")

        load = None
        try:
            load = psutil.getloadavg()[0]
        except (OSError, AttributeError) as e:
            logger.warning(f"Could not read load average: {e}")

        return ResourceSample(memory_available_percent=memory_available, load_average=load)


class StaticSystemStats:
    """Always returns the same reading."""

    def __init__(self, memory_available_percent: float | None = 100.0, load_average: float | None = 0.0):
        self.memory_available_percent = memory_available_percent
        self.load_average = load_average

    def sample(self) -> ResourceSample:
        return ResourceSample(
            memory_available_percent=self.memory_available_percent,
            load_average=self.load_average,
        )
