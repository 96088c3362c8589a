"""
Document partitioning for parallel note processing.

Splits large notes documents into standalone sub-documents along record
boundaries, using a linear walk for small inputs and a binary search over
byte offsets for large ones.

Usage:
    from ingestion.partition import Document, Partitioner, PartitionWriter

    document = Document("planet-notes-latest.osn")
    parts = Partitioner().partition(document, target_part_count=8, worker_hint=8)
    PartitionWriter("/tmp/parts").write(document, parts)
"""

from .boundaries import DocumentFormat, DocumentLayout, RecordScanner, locate_layout
from .partitioner import (
    BlockIndex,
    Document,
    Partition,
    Partitioner,
    PartitionStrategy,
    plan_part_count,
    record_bounds,
)
from .writer import PartitionWriter, cleanup_partitions

__all__ = [
    "BlockIndex",
    "Document",
    "DocumentFormat",
    "DocumentLayout",
    "Partition",
    "PartitionStrategy",
    "PartitionWriter",
    "Partitioner",
    "RecordScanner",
    "cleanup_partitions",
    "locate_layout",
    "plan_part_count",
    "record_bounds",
]
