"""
ID set reconciliation between a live query and a trusted backup.

reconcile() is pure: it neither logs nor persists anything. Callers log the
result and decide whether to fall back to the backup.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable

from ingestion.errors import InputError


def _sorted_ids(ids: Iterable[Hashable]) -> list:
    try:
        return sorted(ids)
    except TypeError:
        # Mixed id types (e.g. int and str) have no natural order
        return sorted(ids, key=str)


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Comparison of live IDs against backup IDs.

    missing_ids are in the backup but absent from the live data;
    extra_ids are live but absent from the backup.
    """

    matched: bool
    expected_count: int
    actual_count: int
    missing_ids: list = field(default_factory=list)
    extra_ids: list = field(default_factory=list)
    gap_percentage: int = 0

    @property
    def status(self) -> str:
        return "MATCH" if self.matched else "MISMATCH"

    def sample_missing(self, limit: int = 10) -> list:
        return self.missing_ids[:limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "status": self.status,
            "expected_count": self.expected_count,
            "actual_count": self.actual_count,
            "missing_count": len(self.missing_ids),
            "extra_count": len(self.extra_ids),
            "missing_ids": list(self.missing_ids),
            "extra_ids": list(self.extra_ids),
            "gap_percentage": self.gap_percentage,
        }


def gap_percentage(missing_count: int, expected_count: int) -> int:
    """
    Share of expected IDs that are missing, as a whole percentage.

    Rounded up, so any missing ID yields at least 1 (1 of 3 -> 34).
    """
    return -(-missing_count * 100 // max(expected_count, 1))


def reconcile(live_ids: Iterable[Hashable], backup_ids: Iterable[Hashable]) -> ReconciliationResult:
    """
    Compare live IDs with backup IDs

    Args:
        live_ids: IDs returned by the live service
        backup_ids: IDs found in the backup snapshot

    Returns:
        ReconciliationResult; matched only when both sets are non-empty and equal

    Raises:
        InputError: If both sets are empty
    """
    live = set(live_ids)
    backup = set(backup_ids)

    if not live and not backup:
        raise InputError("Nothing to reconcile: live and backup ID sets are both empty")

    missing = backup - live
    extra = live - backup

    return ReconciliationResult(
        matched=bool(live) and bool(backup) and not missing and not extra,
        expected_count=len(backup),
        actual_count=len(live),
        missing_ids=_sorted_ids(missing),
        extra_ids=_sorted_ids(extra),
        gap_percentage=gap_percentage(len(missing), len(backup)),
    )
