"""
Resource-aware parallel worker pool.

WorkerPool runs a set of WorkUnits through a processing function on a
bounded number of threads. The number of workers comes from the
ResourceMonitor at each run, workers are started one at a time with a pause
between spawns, and every worker pulls the next unit from a shared queue.
A unit that fails or times out never affects its siblings.
"""

import importlib
import logging
import queue
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from opentelemetry import trace

from ingestion.config import PoolSettings
from ingestion.errors import UnitFailure, UnitTimeout, ValidationError
from ingestion.resources import ResourceMonitor, WaitOutcome, WorkloadKind
from utils.retry import call_with_retries
from utils.tracing import trace_operation

from .metrics import (
    POOL_ACTIVE_WORKERS,
    POOL_QUEUE_SIZE,
    POOL_RUN_TIME,
    POOL_UNIT_TIME,
    POOL_UNITS_PROCESSED,
)
from .units import PoolResult, UnitOutcome, WorkUnit

logger = logging.getLogger(__name__)

UnitProcessor = Callable[[WorkUnit], Any]


def resolve_processor(descriptor: UnitProcessor | str) -> UnitProcessor:
    """
    Turn a processor descriptor into a callable.

    Accepts a callable, or a "package.module:function" /
    "package.module.function" string.

    Raises:
        ValidationError: If the descriptor cannot be resolved to a callable
    """
    if callable(descriptor):
        return descriptor

    if not isinstance(descriptor, str) or not descriptor.strip():
        raise ValidationError(f"Unit processor must be callable or a dotted path, got {descriptor!r}")

    if ":" in descriptor:
        module_name, _, attribute = descriptor.partition(":")
    else:
        module_name, _, attribute = descriptor.rpartition(".")

    if not module_name or not attribute:
        raise ValidationError(f"Cannot resolve unit processor {descriptor!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValidationError(f"Cannot import module for unit processor {descriptor!r}: {e}") from e

    processor = getattr(module, attribute, None)
    if not callable(processor):
        raise ValidationError(f"Unit processor {descriptor!r} is not callable")
    return processor


class WorkerPool:
    """
    Runs work units concurrently with resource-aware sizing.

    Args:
        settings: Worker budget, pacing, timeouts and retry policy
        monitor: Resource monitor used for sizing and pacing
        clock: Monotonic clock, injectable for tests
        sleep: Sleep function, injectable for tests
    """

    def __init__(
        self,
        settings: PoolSettings | None = None,
        monitor: ResourceMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or PoolSettings()
        self.monitor = monitor or ResourceMonitor()
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

        logger.info(
            f"WorkerPool initialized: max_workers={self.settings.max_workers}, "
            f"unit_timeout={self.settings.unit_timeout_seconds}s, "
            f"max_attempts={self.settings.max_attempts}"
        )

    def run(
        self,
        units: Iterable[WorkUnit],
        unit_processor: UnitProcessor | str,
        requested_workers: int | None = None,
        workload_kind: WorkloadKind | str = WorkloadKind.GENERIC,
        source_dir: str | Path | None = None,
        deadline_seconds: float | None = None,
    ) -> PoolResult:
        """
        Process every unit and aggregate the outcomes.

        Args:
            units: Work units to process
            unit_processor: Callable (or dotted path) invoked with each unit
            requested_workers: Worker budget before resource adjustment
                (default: settings.max_workers)
            workload_kind: Kind of work, used for worker sizing
            source_dir: Directory the units' inputs come from, checked up front
            deadline_seconds: Overall time budget for the run
                (default: settings.deadline_seconds)

        Returns:
            PoolResult with per-outcome counts and unit identities

        Raises:
            ValidationError: If any argument is invalid; raised before any
                worker starts
        """
        units = list(units)
        if requested_workers is None:
            requested_workers = self.settings.max_workers

        processor, kind = self._validate(units, unit_processor, requested_workers, workload_kind, source_dir)

        result = PoolResult()
        if not units:
            logger.warning("No work units to process")
            return result

        if deadline_seconds is None:
            deadline_seconds = self.settings.deadline_seconds
        deadline_at = self._clock() + deadline_seconds if deadline_seconds is not None else None

        with trace_operation(
            "worker_pool_run",
            kind=trace.SpanKind.INTERNAL,
            unit_count=len(units),
            requested_workers=requested_workers,
            workload_kind=kind.value,
        ):
            with POOL_RUN_TIME.labels(workload_kind=kind.value).time():
                started = self._clock()

                effective = min(self.monitor.adjust_workers(requested_workers, kind), len(units))
                result.effective_workers = effective

                logger.info(
                    f"Starting worker pool: {len(units)} unit(s), "
                    f"{effective} worker(s) ({kind.value})"
                )

                work_queue: queue.Queue[WorkUnit] = queue.Queue()
                for unit in units:
                    work_queue.put(unit)
                POOL_QUEUE_SIZE.set(len(units))

                workers = self._spawn_workers(work_queue, processor, kind, result, effective, deadline_at, len(units))
                for worker in workers:
                    worker.join()

                self._skip_remaining(work_queue, result)

                POOL_ACTIVE_WORKERS.set(0)
                POOL_QUEUE_SIZE.set(0)

                result.duration_seconds = self._clock() - started
                result.timestamp = datetime.now(UTC).isoformat()

        logger.info(
            f"Worker pool complete: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.timed_out} timed out, "
            f"{result.skipped} skipped out of {len(units)} unit(s) "
            f"in {result.duration_seconds:.2f}s"
        )
        return result

    def _validate(
        self,
        units: list[WorkUnit],
        unit_processor: UnitProcessor | str,
        requested_workers: int,
        workload_kind: WorkloadKind | str,
        source_dir: str | Path | None,
    ) -> tuple[UnitProcessor, WorkloadKind]:
        if source_dir is not None and not Path(source_dir).is_dir():
            raise ValidationError(f"Source directory does not exist: {source_dir}")

        try:
            kind = WorkloadKind(workload_kind)
        except ValueError:
            known = ", ".join(k.value for k in WorkloadKind)
            raise ValidationError(f"Unknown workload kind {workload_kind!r} (expected one of: {known})") from None

        processor = resolve_processor(unit_processor)

        if isinstance(requested_workers, bool) or not isinstance(requested_workers, int) or requested_workers < 1:
            raise ValidationError(f"requested_workers must be a positive integer, got {requested_workers!r}")

        seen = set()
        for unit in units:
            if not isinstance(unit, WorkUnit):
                raise ValidationError(f"Expected WorkUnit, got {type(unit).__name__}")
            if unit.unit_id in seen:
                raise ValidationError(f"Duplicate work unit id: {unit.unit_id}")
            seen.add(unit.unit_id)
            if unit.path is not None and not unit.path.exists():
                raise ValidationError(f"Input for unit {unit.unit_id} does not exist: {unit.path}")

        return processor, kind

    def _spawn_workers(
        self,
        work_queue: queue.Queue,
        processor: UnitProcessor,
        kind: WorkloadKind,
        result: PoolResult,
        effective: int,
        deadline_at: float | None,
        total: int,
    ) -> list[threading.Thread]:
        delay = self.monitor.adjust_process_delay(self.settings.process_delay_seconds)
        workers: list[threading.Thread] = []

        for i in range(effective):
            if i > 0:
                if work_queue.empty() or self._deadline_passed(deadline_at):
                    break

                self._pause(delay, deadline_at)

                wait_budget = self._remaining(deadline_at, self.settings.resource_wait_seconds)
                if self.monitor.wait_for_resources(wait_budget) is WaitOutcome.TIMED_OUT:
                    logger.warning(
                        f"Resources constrained, continuing with {len(workers)} worker(s)"
                    )
                    break

            worker = threading.Thread(
                target=self._worker_loop,
                args=(work_queue, processor, kind, result, deadline_at, total),
                name=f"pool-worker-{i + 1}",
                daemon=True,
            )
            worker.start()
            workers.append(worker)
            POOL_ACTIVE_WORKERS.set(len(workers))
            logger.debug(f"Started {worker.name}")

        result.workers_started = len(workers)
        return workers

    def _worker_loop(
        self,
        work_queue: queue.Queue,
        processor: UnitProcessor,
        kind: WorkloadKind,
        result: PoolResult,
        deadline_at: float | None,
        total: int,
    ) -> None:
        while not self._deadline_passed(deadline_at):
            try:
                unit = work_queue.get_nowait()
            except queue.Empty:
                return

            POOL_QUEUE_SIZE.set(work_queue.qsize())
            self._process_unit(unit, processor, kind, result, deadline_at, total)

    def _process_unit(
        self,
        unit: WorkUnit,
        processor: UnitProcessor,
        kind: WorkloadKind,
        result: PoolResult,
        deadline_at: float | None,
        total: int,
    ) -> None:
        with trace_operation(
            "worker_pool_unit",
            kind=trace.SpanKind.INTERNAL,
            unit_id=unit.unit_id,
            workload_kind=kind.value,
        ):
            started = self._clock()

            def attempt() -> Any:
                unit.attempts += 1
                return self._run_attempt(unit, processor, deadline_at)

            def should_retry(exc: Exception) -> bool:
                return not isinstance(exc, UnitTimeout) and not self._deadline_passed(deadline_at)

            value = None
            error: Exception | None = None
            try:
                value = call_with_retries(
                    attempt,
                    attempts=self.settings.max_attempts,
                    delay=self.settings.retry_delay_seconds,
                    should_retry=should_retry,
                    sleep=lambda seconds: self._pause(seconds, deadline_at),
                    description=f"unit {unit.unit_id}",
                )
                outcome = UnitOutcome.SUCCESS
            except UnitTimeout as e:
                outcome = UnitOutcome.TIMED_OUT
                error = e
            except Exception as e:
                outcome = UnitOutcome.FAILED
                error = UnitFailure(unit.unit_id, e, unit.attempts)

            duration = self._clock() - started
            POOL_UNIT_TIME.labels(workload_kind=kind.value).observe(duration)
            self._record(unit, outcome, value, error, result, total)

    def _run_attempt(self, unit: WorkUnit, processor: UnitProcessor, deadline_at: float | None) -> Any:
        """Run one attempt on its own thread; abandon it when it overruns."""
        timeout = self._remaining(deadline_at, self.settings.unit_timeout_seconds)
        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["value"] = processor(unit)
            except Exception as e:
                outcome["error"] = e

        runner = threading.Thread(target=target, name=f"unit-{unit.unit_id}", daemon=True)
        runner.start()
        runner.join(timeout)

        if runner.is_alive():
            unit.cancel_event.set()
            raise UnitTimeout(unit.unit_id, timeout, unit.attempts)

        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("value")

    def _record(
        self,
        unit: WorkUnit,
        outcome: UnitOutcome,
        value: Any,
        error: Exception | None,
        result: PoolResult,
        total: int,
    ) -> None:
        unit.outcome = outcome
        unit.error = str(error) if error is not None else None

        with self._lock:
            if outcome is UnitOutcome.SUCCESS:
                result.succeeded += 1
                result.results[unit.unit_id] = value
            elif outcome is UnitOutcome.TIMED_OUT:
                result.timed_out += 1
                result.timed_out_units.append(unit.unit_id)
            else:
                result.failed += 1
                result.failed_units.append(unit.unit_id)

            if error is not None:
                cause = getattr(error, "cause", None) or error
                result.errors.append(
                    {
                        "unit": unit.unit_id,
                        "error": str(error),
                        "type": type(cause).__name__,
                    }
                )
            done = result.succeeded + result.failed + result.timed_out

        POOL_UNITS_PROCESSED.labels(status=outcome.value).inc()

        if outcome is UnitOutcome.SUCCESS:
            logger.info(f"✓ Unit {unit.unit_id} completed ({done}/{total})")
        elif outcome is UnitOutcome.TIMED_OUT:
            logger.error(f"✗ Unit {unit.unit_id} timed out ({done}/{total})")
        else:
            logger.error(f"✗ Unit {unit.unit_id} failed: {error} ({done}/{total})")

    def _skip_remaining(self, work_queue: queue.Queue, result: PoolResult) -> None:
        while True:
            try:
                unit = work_queue.get_nowait()
            except queue.Empty:
                break
            unit.outcome = UnitOutcome.SKIPPED
            result.skipped += 1
            result.skipped_units.append(unit.unit_id)
            POOL_UNITS_PROCESSED.labels(status=UnitOutcome.SKIPPED.value).inc()

        if result.skipped:
            logger.warning(f"Deadline reached, skipped {result.skipped} unit(s)")

    def _deadline_passed(self, deadline_at: float | None) -> bool:
        return deadline_at is not None and self._clock() >= deadline_at

    def _remaining(self, deadline_at: float | None, budget: float) -> float:
        if deadline_at is None:
            return budget
        return max(0.0, min(budget, deadline_at - self._clock()))

    def _pause(self, seconds: float, deadline_at: float | None) -> None:
        seconds = self._remaining(deadline_at, seconds)
        if seconds > 0:
            self._sleep(seconds)
