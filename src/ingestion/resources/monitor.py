"""
Resource-aware scheduling decisions.

ResourceMonitor answers three questions for the worker pool: can work start
now, how many workers should run, and how long to pause between spawns.
Every answer is based on a fresh ResourceSample; constrained resources are
reported as ordinary return values, never as exceptions.
"""

import logging
import time
from enum import Enum
from typing import Callable

from prometheus_client import Gauge

from ingestion.config import ResourceThresholds
from utils.metrics import get_or_create_metric

from .stats import PsutilSystemStats, ResourceSample, SystemStats

logger = logging.getLogger(__name__)

RESOURCE_MEMORY_USED = get_or_create_metric(
    lambda: Gauge(
        "ingestion_memory_used_percent",
        "Memory used percentage at the last resource check",
    ),
    "ingestion_memory_used_percent",
)

RESOURCE_LOAD_AVERAGE = get_or_create_metric(
    lambda: Gauge(
        "ingestion_load_average",
        "1-minute load average at the last resource check",
    ),
    "ingestion_load_average",
)


class CheckMode(str, Enum):
    NORMAL = "normal"
    MINIMAL = "minimal"


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    CONSTRAINED = "constrained"


class WaitOutcome(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


class WorkloadKind(str, Enum):
    """What a pool of workers will be doing, for sizing purposes."""

    GENERIC = "generic"
    MEMORY_INTENSIVE = "memory_intensive"

    @property
    def safety_margin(self) -> int:
        return 2 if self is WorkloadKind.MEMORY_INTENSIVE else 1


class ResourceMonitor:
    """
    Samples system resources and sizes concurrency accordingly.

    Args:
        thresholds: Memory/load limits and polling interval
        stats: Source of resource samples (default: psutil)
        clock: Monotonic clock, injectable for tests
        sleep: Sleep function, injectable for tests
    """

    def __init__(
        self,
        thresholds: ResourceThresholds | None = None,
        stats: SystemStats | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.thresholds = thresholds or ResourceThresholds()
        self.stats = stats or PsutilSystemStats()
        self._clock = clock
        self._sleep = sleep

    def sample(self) -> ResourceSample:
        sample = self.stats.sample()
        if sample.memory_used_percent is not None:
            RESOURCE_MEMORY_USED.set(sample.memory_used_percent)
        if sample.load_average is not None:
            RESOURCE_LOAD_AVERAGE.set(sample.load_average)
        return sample

    def check_resources(self, mode: CheckMode = CheckMode.NORMAL) -> ResourceStatus:
        """
        Report whether memory and load are within limits. Never blocks.

        MINIMAL mode uses relaxed limits, for callers that only need a coarse
        answer before a small job.
        """
        mode = CheckMode(mode)
        if mode is CheckMode.MINIMAL:
            max_memory = self.thresholds.minimal_memory_percent
            max_load = self.thresholds.minimal_load_average
        else:
            max_memory = self.thresholds.max_memory_percent
            max_load = self.thresholds.max_load_average

        sample = self.sample()
        memory_used = sample.memory_used_percent

        if memory_used is not None and memory_used >= max_memory:
            logger.warning(
                f"Memory usage {memory_used:.1f}% at or above {max_memory:.0f}% ({mode.value} check)"
            )
            return ResourceStatus.CONSTRAINED

        if sample.load_average is not None and sample.load_average > max_load:
            logger.warning(
                f"Load average {sample.load_average:.2f} above {max_load:.2f} ({mode.value} check)"
            )
            return ResourceStatus.CONSTRAINED

        return ResourceStatus.AVAILABLE

    def wait_for_resources(
        self,
        timeout_seconds: float,
        mode: CheckMode = CheckMode.NORMAL,
    ) -> WaitOutcome:
        """
        Poll check_resources() until resources are available or time runs out.

        Never sleeps past the timeout. TIMED_OUT is a normal outcome that lets
        the caller degrade (for example, keep fewer workers).
        """
        deadline = self._clock() + max(0.0, timeout_seconds)
        interval = self.thresholds.poll_interval_seconds

        while True:
            if self.check_resources(mode) is ResourceStatus.AVAILABLE:
                return WaitOutcome.READY

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(f"Resources still constrained after {timeout_seconds:.0f}s")
                return WaitOutcome.TIMED_OUT

            logger.debug(f"Waiting for resources, {remaining:.0f}s left")
            self._sleep(min(interval, remaining))

    def adjust_workers(
        self,
        requested_workers: int,
        workload_kind: WorkloadKind = WorkloadKind.GENERIC,
    ) -> int:
        """
        Worker count to use for the current memory state.

        A safety margin is subtracted first (2 for memory-intensive work, 1
        otherwise), then the count shrinks further under memory pressure. The
        result is always within [1, requested_workers] and never decreases
        when requested_workers increases.

        Raises:
            ValueError: If requested_workers < 1
        """
        if requested_workers < 1:
            raise ValueError(f"requested_workers must be >= 1, got {requested_workers}")

        workload_kind = WorkloadKind(workload_kind)
        memory_used = self.sample().memory_used_percent
        workers = requested_workers - workload_kind.safety_margin

        if memory_used is not None:
            if workload_kind is WorkloadKind.MEMORY_INTENSIVE:
                if memory_used > 75:
                    workers = 1
                elif memory_used > 65:
                    workers = workers // 2
                elif memory_used > 50:
                    workers = workers * 2 // 3
            else:
                if memory_used > 70:
                    workers = workers // 2
                elif memory_used > 50:
                    workers = workers * 3 // 4

        effective = max(1, min(workers, requested_workers))

        if effective != requested_workers:
            memory_text = f"{memory_used:.1f}%" if memory_used is not None else "unknown"
            logger.info(
                f"Adjusted workers {requested_workers} -> {effective} "
                f"({workload_kind.value}, memory used {memory_text})"
            )
        return effective

    def adjust_process_delay(self, configured_delay_seconds: float) -> float:
        """
        Pause between worker spawns for the current memory and load.

        Delays at or below the low threshold pass through unchanged; larger
        ones grow under memory pressure or high load. The result never leaves
        [0, max_process_delay_seconds].
        """
        delay = max(0.0, float(configured_delay_seconds))
        ceiling = self.thresholds.max_process_delay_seconds

        if delay <= self.thresholds.low_delay_threshold_seconds:
            return min(delay, ceiling)

        sample = self.sample()
        memory_used = sample.memory_used_percent

        if memory_used is not None:
            if memory_used > 70:
                delay *= 3
            elif memory_used > 50:
                delay *= 2

        if sample.load_average is not None and sample.load_average > self.thresholds.max_load_average:
            delay *= 2

        return min(delay, ceiling)
