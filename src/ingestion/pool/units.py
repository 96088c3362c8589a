"""
Work units and aggregated pool results.
"""

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class UnitOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


@dataclass
class WorkUnit:
    """
    One schedulable job.

    Only the worker that dequeued a unit mutates it. Processors that run for
    a long time should check cancel_event and stop when it is set; the pool
    sets it when the unit times out.
    """

    unit_id: str
    path: Path | None = None
    payload: Any = None
    attempts: int = 0
    outcome: UnitOutcome | None = None
    error: str | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def __post_init__(self):
        if self.path is not None and not isinstance(self.path, Path):
            self.path = Path(self.path)

    @classmethod
    def from_partition(cls, partition) -> "WorkUnit":
        """Wrap a written partition; the unit id follows the part index."""
        return cls(
            unit_id=f"part_{partition.index:03d}",
            path=partition.path,
            payload=partition,
        )


@dataclass
class PoolResult:
    """Outcome of one WorkerPool.run() call."""

    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    failed_units: list[str] = field(default_factory=list)
    timed_out_units: list[str] = field(default_factory=list)
    skipped_units: list[str] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)
    errors: list[dict[str, str]] = field(default_factory=list)
    effective_workers: int = 0
    workers_started: int = 0
    duration_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.timed_out + self.skipped

    @property
    def unsuccessful(self) -> int:
        return self.failed + self.timed_out + self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "skipped": self.skipped,
            "failed_units": list(self.failed_units),
            "timed_out_units": list(self.timed_out_units),
            "skipped_units": list(self.skipped_units),
            "errors": list(self.errors),
            "effective_workers": self.effective_workers,
            "workers_started": self.workers_started,
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp,
        }
