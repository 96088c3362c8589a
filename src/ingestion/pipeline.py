"""
End-to-end processing of one notes document.

process_document() raises process limits, splits the document into parts,
loads the parts through the worker pool and removes the parts that were
loaded. Failed parts stay on disk for inspection. The outcome of every run
is a RunSummary; only problems with the input itself end the run early.
When expected record IDs are given, the IDs present in the document are
reconciled against them and any gap is kept in the summary.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Hashable, Iterable
from xml.etree import ElementTree

from opentelemetry import trace

from reconciliation import read_document_ids, reconcile
from utils.tracing import add_span_attributes, trace_operation

from .config import IngestionConfig
from .errors import InputError, PartitionError, UnitFailure, ValidationError
from .partition import Document, Partitioner, PartitionWriter, cleanup_partitions
from .pool import PoolResult, UnitOutcome, WorkerPool, WorkUnit
from .resources import ResourceMonitor, WorkloadKind, configure_system_limits

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    NO_DATA = "NO_DATA"


@dataclass
class RunSummary:
    """Outcome of one pipeline run, the input of the run report."""

    document: str
    status: RunStatus
    partitions: int = 0
    records: int = 0
    strategy: str | None = None
    limits: str | None = None
    pool: PoolResult | None = None
    parts_removed: int = 0
    error: str | None = None
    reconciliation: dict[str, Any] | None = None
    duration_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "document": self.document,
            "status": self.status.value,
            "partitions": self.partitions,
            "records": self.records,
            "strategy": self.strategy,
            "limits": self.limits,
            "pool": self.pool.to_dict() if self.pool else None,
            "parts_removed": self.parts_removed,
            "error": self.error,
            "reconciliation": self.reconciliation,
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp,
        }


def check_well_formed(path: str | os.PathLike) -> None:
    """
    Parse a part file incrementally and fail if it is not well-formed XML.

    Raises:
        ValidationError: On any parse error
    """
    try:
        for _event, element in ElementTree.iterparse(path, events=("end",)):
            element.clear()
    except ElementTree.ParseError as e:
        raise ValidationError(f"{path} is not well-formed: {e}") from e


class PartitionLoader:
    """
    Unit processor for written partitions.

    Validates the part file when a validator is set, then hands its path to
    the target store. Without a store the unit only reports its record count,
    which is what dry runs use.

    Args:
        store: Statement runner (TargetStore)
        statement: SQL with one placeholder that receives the part file path
        validator: Callable(path) raising on an invalid part
    """

    def __init__(
        self,
        store: Any = None,
        statement: str | None = None,
        validator: Callable[[Path], None] | None = None,
    ):
        if store is not None and not statement:
            raise ValueError("A load statement is required when a store is configured")
        self.store = store
        self.statement = statement
        self.validator = validator

    def __call__(self, unit: WorkUnit) -> int:
        if unit.cancel_event.is_set():
            raise UnitFailure(unit.unit_id, message=f"Unit {unit.unit_id} was cancelled")

        if self.validator is not None:
            self.validator(unit.path)

        if self.store is not None:
            self.store.execute(self.statement, (str(unit.path),))

        return unit.payload.record_count if unit.payload is not None else 0


class NotesPipeline:
    """
    Processes notes documents with the configured partitioning, pool and loader.

    Args:
        config: Pipeline configuration (default: IngestionConfig())
        store: Target store used by the loader; None for dry runs
        load_statement: SQL that loads one part file, e.g.
            "CALL insert_notes_from_file(%s)"
        validate_parts: Check every part is well-formed before loading
        monitor: Resource monitor shared with the pool
    """

    def __init__(
        self,
        config: IngestionConfig | None = None,
        store: Any = None,
        load_statement: str | None = None,
        validate_parts: bool = False,
        monitor: ResourceMonitor | None = None,
    ):
        self.config = config or IngestionConfig()
        self.monitor = monitor or ResourceMonitor(self.config.resources)
        self.partitioner = Partitioner(self.config.partition)
        self.pool = WorkerPool(self.config.pool, self.monitor)
        self.loader = PartitionLoader(
            store=store,
            statement=load_statement,
            validator=check_well_formed if validate_parts else None,
        )

    def process_document(
        self,
        path: str | os.PathLike,
        output_dir: str | os.PathLike,
        workload_kind: WorkloadKind = WorkloadKind.MEMORY_INTENSIVE,
        target_part_count: int | None = None,
        expected_ids: Iterable[Hashable] | None = None,
    ) -> RunSummary:
        """
        Partition, load and clean up one document.

        Args:
            path: Notes document (planet dump or API answer)
            output_dir: Directory that receives the part files
            workload_kind: Kind of work the loader does, for worker sizing
            target_part_count: Override of the configured part count
            expected_ids: Record IDs the document must hold; when given, the
                IDs actually present are reconciled against them and the
                result is kept in summary.reconciliation

        Returns:
            RunSummary; FAIL when the document is malformed, a part is
            invalid, or more units failed than max_failed_units allows

        Raises:
            InputError: If the document does not exist
        """
        path = Path(path)
        if not path.is_file():
            raise InputError(f"Input document not found: {path}")

        started = time.monotonic()
        summary = RunSummary(document=str(path), status=RunStatus.NO_DATA)
        settings = self.config.partition
        workers = self.config.pool.max_workers

        with trace_operation("process_document", kind=trace.SpanKind.INTERNAL, document=path.name):
            summary.limits = configure_system_limits().value

            document = Document(path, settings.record_tag)
            try:
                partitions = self.partitioner.partition(
                    document,
                    target_part_count or settings.target_part_count,
                    settings.min_records_per_part,
                    worker_hint=workers,
                )
            except PartitionError as e:
                logger.error(f"✗ Cannot partition {path}: {e}")
                summary.status = RunStatus.FAIL
                summary.error = str(e)
                return self._finish(summary, started)

            if not partitions:
                logger.info(f"{path} holds no records, nothing to do")
                return self._finish(summary, started)

            summary.partitions = len(partitions)
            summary.records = sum(p.record_count for p in partitions)
            summary.strategy = self.partitioner.choose_strategy(document.size, workers).value

            PartitionWriter(output_dir).write(document, partitions)
            units = [WorkUnit.from_partition(p) for p in partitions]

            try:
                pool_result = self.pool.run(
                    units,
                    self.loader,
                    requested_workers=workers,
                    workload_kind=workload_kind,
                    source_dir=output_dir,
                )
            except ValidationError as e:
                logger.error(f"✗ Worker pool rejected the run: {e}")
                summary.status = RunStatus.FAIL
                summary.error = str(e)
                return self._finish(summary, started)

            summary.pool = pool_result
            loaded = [u.payload for u in units if u.outcome is UnitOutcome.SUCCESS]
            summary.parts_removed = cleanup_partitions(loaded)

            unsuccessful = pool_result.failed + pool_result.timed_out
            if unsuccessful > self.config.max_failed_units:
                summary.status = RunStatus.FAIL
                summary.error = (
                    f"{unsuccessful} unit(s) failed, at most "
                    f"{self.config.max_failed_units} allowed"
                )
            else:
                summary.status = RunStatus.PASS

            if expected_ids is not None:
                self._reconcile(summary, path, expected_ids)

            add_span_attributes(status=summary.status.value, partitions=summary.partitions)

        return self._finish(summary, started)

    def _reconcile(self, summary: RunSummary, path: Path, expected_ids: Iterable[Hashable]) -> None:
        expected = set(expected_ids)
        try:
            present = read_document_ids(path, self.config.partition.record_tag)
        except ElementTree.ParseError as e:
            logger.error(f"✗ Cannot read record ids from {path}: {e}")
            summary.status = RunStatus.FAIL
            summary.error = f"Cannot read record ids: {e}"
            return

        if not present and not expected:
            logger.warning(f"No record ids in {path} and none expected, skipping reconciliation")
            return

        result = reconcile(present, expected)
        summary.reconciliation = result.to_dict()
        add_span_attributes(reconciled=result.matched, gap_percentage=result.gap_percentage)

        if result.matched:
            logger.info(f"✓ All {result.expected_count} expected record(s) present in {path.name}")
        else:
            logger.warning(
                f"Data gap in {path.name}: {len(result.missing_ids)} expected record(s) missing, "
                f"{len(result.extra_ids)} unexpected ({result.gap_percentage}%)"
            )

    def _finish(self, summary: RunSummary, started: float) -> RunSummary:
        summary.duration_seconds = time.monotonic() - started
        summary.timestamp = datetime.now(UTC).isoformat()
        marker = "✗" if summary.status is RunStatus.FAIL else "✓"
        logger.info(
            f"{marker} {Path(summary.document).name}: {summary.status.value}, "
            f"{summary.partitions} part(s), {summary.records} record(s) "
            f"in {summary.duration_seconds:.2f}s"
        )
        return summary
