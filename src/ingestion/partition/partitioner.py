"""
Record-balanced document partitioning.

The Partitioner splits a notes document into N contiguous runs of whole
records whose counts differ by at most one. Small documents are walked
record by record (linear strategy). Large documents are memory-mapped and
each cut point is found by binary search over byte offsets (binary
strategy); record counts before a search offset come from a block index
that counts start markers per fixed-size block once and caches the totals.

Both strategies produce the same cut points for the same input.
"""

import logging
import mmap
import os
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

from opentelemetry import trace

from ingestion.config import PartitionSettings
from ingestion.errors import PartitionError
from utils.tracing import add_span_attributes, trace_operation

from .boundaries import DocumentLayout, RecordScanner, locate_layout

logger = logging.getLogger(__name__)


class PartitionStrategy(str, Enum):
    LINEAR = "linear"
    BINARY = "binary"


class Document:
    """A notes document on disk, read through a read-only memory map."""

    def __init__(self, path: str | os.PathLike, record_tag: str = "note"):
        self.path = Path(path)
        self.record_tag = record_tag

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @contextmanager
    def open_view(self) -> Iterator:
        """Yield a bytes-like view of the whole file."""
        with open(self.path, "rb") as f:
            if os.fstat(f.fileno()).st_size == 0:
                # mmap refuses empty files
                yield b""
                return
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as view:
                yield view

    def scanner(self, view) -> RecordScanner:
        return RecordScanner(view, tag=self.record_tag, path=str(self.path))

    def __repr__(self) -> str:
        return f"Document({str(self.path)!r})"


@dataclass
class Partition:
    """
    A run of whole records taken from a source document.

    start_offset is the first byte of the first record; end_offset is one
    past the end marker of the last record. path is set once the partition
    has been written out.
    """

    index: int
    start_offset: int
    end_offset: int
    record_count: int
    path: Path | None = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "record_count": self.record_count,
            "path": str(self.path) if self.path else None,
        }


def plan_part_count(total_records: int, target_part_count: int, min_records_per_part: int) -> int:
    """
    Number of parts to emit.

    Never more parts than records, and never fewer than min_records_per_part
    records per part unless the whole document is smaller than that.
    """
    if total_records <= 0:
        return 0

    parts = min(target_part_count, total_records)
    if min_records_per_part > 1:
        parts = min(parts, max(1, total_records // min_records_per_part))
    return parts


def record_bounds(total_records: int, parts: int) -> list[int]:
    """
    Record index boundaries for parts equal-sized by record count.

    Returns parts + 1 indexes; part i holds records [bounds[i], bounds[i+1]).
    The first total % parts parts receive one extra record.
    """
    base, extra = divmod(total_records, parts)
    bounds = [0]
    for i in range(parts):
        bounds.append(bounds[-1] + base + (1 if i < extra else 0))
    return bounds


class BlockIndex:
    """
    Cumulative record-start counts per fixed-size block, filled on demand.

    Blocks are counted in order and each one is checked for marker order, so
    a malformed record is rejected the first time its block is read.
    """

    def __init__(self, scanner: RecordScanner, start: int, stop: int, block_size: int):
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self._scanner = scanner
        self._start = start
        self._stop = stop
        self._block_size = block_size
        # _cumulative[i] == record starts in [start, start + i * block_size)
        self._cumulative = [0]
        self._open = False

    @property
    def blocks_counted(self) -> int:
        return len(self._cumulative) - 1

    def total(self) -> int:
        """
        Number of record starts in [start, stop), counting every block.

        Raises:
            PartitionError: If markers are out of order or the last record
                is never closed
        """
        blocks = -(-(self._stop - self._start) // self._block_size)
        self._extend(blocks)
        if self._open:
            raise PartitionError("Unterminated record", self._scanner.path)
        return self._cumulative[blocks]

    def count_before(self, offset: int) -> int:
        """Number of record starts in [start, offset)."""
        offset = max(self._start, min(offset, self._stop))
        block = (offset - self._start) // self._block_size
        self._extend(block)
        block_start = self._start + block * self._block_size
        return self._cumulative[block] + self._scanner.count_starts(block_start, offset)

    def _extend(self, block: int) -> None:
        while len(self._cumulative) <= block:
            i = len(self._cumulative) - 1
            block_start = self._start + i * self._block_size
            block_stop = min(block_start + self._block_size, self._stop)
            starts, self._open = self._scanner.scan_order(block_start, block_stop, self._open)
            self._cumulative.append(self._cumulative[-1] + starts)


class Partitioner:
    """
    Splits documents into record-balanced partitions.

    Example:
        >>> partitioner = Partitioner(PartitionSettings())
        >>> parts = partitioner.partition(Document("planet-notes.xml"), 8, 20, worker_hint=8)
        >>> sum(p.record_count for p in parts)
    """

    def __init__(self, settings: PartitionSettings | None = None):
        self.settings = settings or PartitionSettings()

    def choose_strategy(self, size: int, worker_hint: int) -> PartitionStrategy:
        """Binary search pays off only for big documents processed in parallel."""
        if size >= self.settings.binary_threshold_bytes and worker_hint > 1:
            return PartitionStrategy.BINARY
        return PartitionStrategy.LINEAR

    def inspect(self, document: Document) -> DocumentLayout | None:
        """Locate the root wrapper of a document without counting records."""
        with document.open_view() as view:
            return locate_layout(view, document.scanner(view))

    def partition(
        self,
        document: Document | str | os.PathLike,
        target_part_count: int,
        min_records_per_part: int = 1,
        worker_hint: int = 1,
        strategy: PartitionStrategy | None = None,
    ) -> list[Partition]:
        """
        Split a document into at most target_part_count partitions.

        Args:
            document: Document (or path) to split
            target_part_count: Upper bound on the number of partitions
            min_records_per_part: Floor on records per partition
            worker_hint: Expected concurrency, used to pick the strategy
            strategy: Force a strategy instead of choosing by size

        Returns:
            Partitions in index order. An empty list means the document holds
            no records and there is nothing to do.

        Raises:
            ValueError: If target_part_count or min_records_per_part < 1
            PartitionError: If the document is not a well-formed container
        """
        if target_part_count < 1:
            raise ValueError(f"target_part_count must be >= 1, got {target_part_count}")
        if min_records_per_part < 1:
            raise ValueError(f"min_records_per_part must be >= 1, got {min_records_per_part}")

        if not isinstance(document, Document):
            document = Document(document, record_tag=self.settings.record_tag)

        chosen = strategy or self.choose_strategy(document.size, worker_hint)

        with trace_operation(
            "partition_document",
            kind=trace.SpanKind.INTERNAL,
            path=str(document.path),
            strategy=chosen.value,
            target_part_count=target_part_count,
        ):
            with document.open_view() as view:
                scanner = document.scanner(view)
                layout = locate_layout(view, scanner)

                if layout is None or not layout.has_records:
                    logger.info(f"No records in {document.path}, nothing to do")
                    add_span_attributes(record_count=0, part_count=0)
                    return []

                if chosen is PartitionStrategy.LINEAR:
                    starts = self._walk_records(scanner, layout)
                    total = len(starts)

                    def locate(k: int) -> int:
                        return starts[k]
                else:
                    index = BlockIndex(
                        scanner, layout.first_record, layout.body_end,
                        self.settings.block_size_bytes,
                    )
                    total = index.total()

                    def locate(k: int) -> int:
                        return self._search_cut(scanner, index, layout, k)

                parts = plan_part_count(total, target_part_count, min_records_per_part)
                bounds = record_bounds(total, parts)
                cuts = [layout.first_record]
                cuts.extend(locate(k) for k in bounds[1:-1])
                cuts.append(layout.body_end)

                partitions = []
                for i in range(parts):
                    end = scanner.last_record_end(cuts[i], cuts[i + 1])
                    partitions.append(
                        Partition(
                            index=i,
                            start_offset=cuts[i],
                            end_offset=end,
                            record_count=bounds[i + 1] - bounds[i],
                        )
                    )

            add_span_attributes(record_count=total, part_count=parts)
            logger.info(
                f"Partitioned {document.path} ({total} records) into {parts} part(s) "
                f"using {chosen.value} strategy"
            )
            return partitions

    def _walk_records(self, scanner: RecordScanner, layout: DocumentLayout) -> list[int]:
        starts = []
        pos = layout.first_record
        while pos is not None:
            end = scanner.record_end(pos, layout.body_end)
            starts.append(pos)
            pos = scanner.next_record_start(end, layout.body_end)

        self._check_terminated(scanner, layout, len(starts))
        return starts

    def _check_terminated(self, scanner: RecordScanner, layout: DocumentLayout, starts: int) -> None:
        ends = scanner.count_ends(layout.first_record, layout.body_end)
        if ends != starts:
            raise PartitionError(
                f"Unterminated record ({starts} start markers, {ends} end markers)",
                scanner.path,
            )

    def _search_cut(
        self,
        scanner: RecordScanner,
        index: BlockIndex,
        layout: DocumentLayout,
        k: int,
    ) -> int:
        """Byte offset where record k (0-based) starts."""
        lo = layout.first_record
        hi = layout.body_end

        while hi - lo > self.settings.local_scan_bytes:
            mid = (lo + hi) // 2
            boundary = scanner.next_record_start(mid, hi)
            if boundary is None:
                hi = mid
                continue

            seen = index.count_before(boundary)
            if seen == k:
                return boundary
            if seen < k:
                lo = boundary
            else:
                hi = mid

        seen = index.count_before(lo)
        pos = lo
        while seen < k:
            pos = scanner.next_record_start(pos + 1, layout.body_end)
            if pos is None:
                raise PartitionError(f"Record {k} not found", scanner.path, lo)
            seen += 1
        return pos
