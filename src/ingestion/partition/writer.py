"""
Materializes partitions as standalone XML documents.

Each part file holds the source prolog (XML declaration and root opening
tag), the partition's records copied byte for byte, and the root closing
tag. Files are named <prefix>_<NNN>.xml where the prefix depends on the
document format (planet_part, api_part or part).
"""

import logging
import os
from pathlib import Path

from ingestion.errors import PartitionError

from .boundaries import locate_layout
from .partitioner import Document, Partition

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024


class PartitionWriter:
    """Writes partitions of one document into an output directory."""

    def __init__(self, output_dir: str | os.PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.output_dir = Path(output_dir)
        self.chunk_size = chunk_size

    def write(self, document: Document, partitions: list[Partition]) -> list[Partition]:
        """
        Write every partition to disk and record its path.

        Stale part files with the same prefix are removed first so a rerun
        never mixes parts of two different documents.

        Returns:
            The same partitions, with path set
        """
        if not partitions:
            return partitions

        self.output_dir.mkdir(parents=True, exist_ok=True)

        with document.open_view() as view:
            layout = locate_layout(view, document.scanner(view))
            if layout is None or not layout.has_records:
                raise PartitionError("Document has no records to write", str(document.path))

            prefix = layout.format.part_prefix
            removed = self.remove_stale(prefix)
            if removed:
                logger.info(f"Removed {removed} stale {prefix} file(s) from {self.output_dir}")

            header = bytes(view[:layout.first_record])
            footer = bytes(view[layout.body_end:])

            for partition in partitions:
                path = self.output_dir / f"{prefix}_{partition.index:03d}.xml"
                with open(path, "wb") as f:
                    f.write(header)
                    for offset in range(partition.start_offset, partition.end_offset, self.chunk_size):
                        stop = min(offset + self.chunk_size, partition.end_offset)
                        f.write(view[offset:stop])
                    f.write(b"\n")
                    f.write(footer)
                partition.path = path
                logger.debug(
                    f"Wrote {path.name}: {partition.record_count} records, "
                    f"bytes {partition.start_offset}-{partition.end_offset}"
                )

        logger.info(f"Wrote {len(partitions)} {prefix} file(s) to {self.output_dir}")
        return partitions

    def remove_stale(self, prefix: str) -> int:
        removed = 0
        for path in self.output_dir.glob(f"{prefix}_*.xml"):
            path.unlink()
            removed += 1
        return removed


def cleanup_partitions(partitions: list[Partition]) -> int:
    """
    Delete the files of partitions that have been consumed.

    Returns:
        Number of files removed
    """
    removed = 0
    for partition in partitions:
        if partition.path is None:
            continue
        try:
            partition.path.unlink()
            removed += 1
        except FileNotFoundError:
            logger.debug(f"Partition file already gone: {partition.path}")
        partition.path = None
    return removed
