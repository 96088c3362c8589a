"""
Record boundary detection.

Both partition strategies walk the document through a RecordScanner, so
marker recognition lives in exactly one place. The scanner works on any
bytes-like view (bytes or a read-only mmap) and never copies more than the
regions it inspects.
"""

import re
from dataclasses import dataclass
from enum import Enum

from ingestion.errors import PartitionError

HEAD_BYTES = 64 * 1024

_ROOT_TAG = re.compile(rb"<(?![?!])([A-Za-z_][\w.:-]*)([^>]*)>")
_NON_WHITESPACE = re.compile(rb"\S")
_PROLOG_ONLY = re.compile(rb"\s*(?:<\?.*?\?>\s*|<!--.*?-->\s*)*", re.DOTALL)


class DocumentFormat(str, Enum):
    """Source document flavours, recognised by their root element."""

    PLANET = "planet"
    API = "api"
    UNKNOWN = "unknown"

    @classmethod
    def from_root_tag(cls, root_tag: str) -> "DocumentFormat":
        if root_tag == "osm-notes":
            return cls.PLANET
        if root_tag == "osm":
            return cls.API
        return cls.UNKNOWN

    @property
    def part_prefix(self) -> str:
        if self is DocumentFormat.PLANET:
            return "planet_part"
        if self is DocumentFormat.API:
            return "api_part"
        return "part"


@dataclass(frozen=True)
class DocumentLayout:
    """Where the root wrapper and the first record sit inside a document."""

    root_tag: str
    format: DocumentFormat
    body_start: int
    body_end: int
    first_record: int | None

    @property
    def has_records(self) -> bool:
        return self.first_record is not None


class RecordScanner:
    """
    Locates record start and end markers.

    A record starts at ``<tag`` followed by whitespace or ``>`` and ends right
    after ``</tag>``. Offsets are byte offsets into the view.
    """

    def __init__(self, view, tag: str = "note", path: str | None = None):
        self._view = view
        self._size = len(view)
        self.tag = tag
        self.path = path
        encoded = tag.encode("ascii")
        self._start = re.compile(rb"<" + re.escape(encoded) + rb"[\s>]")
        self._end_marker = b"</" + encoded + b">"
        self._end = re.compile(re.escape(self._end_marker))
        self._marker = re.compile(
            rb"(<" + re.escape(encoded) + rb"[\s>])|" + re.escape(self._end_marker)
        )
        # Longest possible start match, used to count markers straddling a cut
        self._start_span = len(encoded) + 2
        self._marker_span = max(self._start_span, len(self._end_marker))

    @property
    def end_marker(self) -> bytes:
        return self._end_marker

    def next_record_start(self, pos: int, limit: int) -> int | None:
        """First record start in [pos, limit), or None."""
        if pos >= limit:
            return None
        match = self._start.search(self._view, pos, limit)
        return match.start() if match else None

    def record_end(self, start: int, limit: int) -> int:
        """
        Offset just past the end marker of the record beginning at start.

        Raises:
            PartitionError: If the end marker is missing or another record
                starts before it
        """
        end = self._view.find(self._end_marker, start, limit)
        if end < 0:
            raise PartitionError("Unterminated record", self.path, start)

        nested = self.next_record_start(start + 1, end)
        if nested is not None:
            raise PartitionError("Unterminated record", self.path, start)

        return end + len(self._end_marker)

    def last_record_end(self, start: int, stop: int) -> int:
        """Offset just past the last end marker found in [start, stop)."""
        end = self._view.rfind(self._end_marker, start, stop)
        if end < 0:
            raise PartitionError("Unterminated record", self.path, start)
        return end + len(self._end_marker)

    def count_starts(self, start: int, stop: int) -> int:
        """Number of record starts whose first byte lies in [start, stop)."""
        if start >= stop:
            return 0
        extended = min(stop + self._start_span, self._size)
        counted = len(self._start.findall(self._view, start, extended))
        beyond = len(self._start.findall(self._view, stop, extended))
        return counted - beyond

    def scan_order(self, start: int, stop: int, open_record: bool = False) -> tuple[int, bool]:
        """
        Count record starts in [start, stop) while checking marker order.

        Start and end markers must alternate. open_record tells whether a
        record begun before start is still open at start.

        Returns:
            (record starts found, whether a record is still open at stop)

        Raises:
            PartitionError: If a record starts before the previous one ended
                or an end marker has no record to close
        """
        if start >= stop:
            return 0, open_record

        extended = min(stop + self._marker_span, self._size)
        starts = 0
        for match in self._marker.finditer(self._view, start, extended):
            if match.start() >= stop:
                break
            if match.group(1) is not None:
                if open_record:
                    raise PartitionError("Unterminated record", self.path, match.start())
                starts += 1
                open_record = True
            else:
                if not open_record:
                    raise PartitionError("End marker outside a record", self.path, match.start())
                open_record = False
        return starts, open_record

    def count_ends(self, start: int, stop: int) -> int:
        """Number of complete end markers inside [start, stop)."""
        if start >= stop:
            return 0
        return len(self._end.findall(self._view, start, stop))


def locate_layout(view, scanner: RecordScanner) -> DocumentLayout | None:
    """
    Find the root wrapper of a document.

    Returns None for documents with nothing but whitespace, an XML
    declaration or comments; those hold zero records and are not errors.

    Raises:
        PartitionError: If there is content but no root element, the root
            closing tag is missing, or content follows the root element
    """
    size = len(view)
    if size == 0:
        return None

    head_limit = min(size, HEAD_BYTES)
    root = _ROOT_TAG.search(view, 0, head_limit)
    if root is None:
        if size <= HEAD_BYTES and _PROLOG_ONLY.fullmatch(bytes(view[:size])):
            return None
        raise PartitionError("Missing root wrapper", scanner.path)

    root_tag = root.group(1).decode("ascii", errors="replace")
    document_format = DocumentFormat.from_root_tag(root_tag)
    body_start = root.end()

    if root.group(2).rstrip().endswith(b"/"):
        # <osm-notes/> is a valid, empty document
        return DocumentLayout(root_tag, document_format, body_start, body_start, None)

    closing = b"</" + root.group(1) + b">"
    body_end = view.rfind(closing, body_start)
    if body_end < 0:
        raise PartitionError(f"Missing closing root tag </{root_tag}>", scanner.path)

    if _NON_WHITESPACE.search(view, body_end + len(closing), size):
        raise PartitionError(
            f"Unexpected content after </{root_tag}>", scanner.path, body_end + len(closing)
        )

    first_record = scanner.next_record_start(body_start, body_end)
    return DocumentLayout(root_tag, document_format, body_start, body_end, first_record)
