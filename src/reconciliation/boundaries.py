"""
Boundary synchronization planning.

Decides where administrative boundaries come from for this run. The live
Overpass answer is compared with the repository backup:

- every endpoint exhausted: import everything from the backup
- IDs match: import from the backup, nothing to download
- IDs differ: record the gap, import from the backup and download only the
  live IDs the backup does not have
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable

from ingestion.errors import ExhaustedError
from ingestion.overpass import RetryingClient
from utils.tracing import add_span_attributes, trace_operation

from .backup import extract_live_ids, read_backup_ids
from .compare import ReconciliationResult, reconcile
from .gaps import DataGapRecorder

logger = logging.getLogger(__name__)


class BoundarySource(str, Enum):
    BACKUP = "backup"
    BACKUP_FALLBACK = "backup_fallback"
    LIVE = "live"


@dataclass
class BoundaryPlan:
    """What to import for one boundary type."""

    source: BoundarySource
    ids_to_download: list[Hashable] = field(default_factory=list)
    result: ReconciliationResult | None = None

    @property
    def needs_download(self) -> bool:
        return bool(self.ids_to_download)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "ids_to_download": [str(i) for i in self.ids_to_download],
            "reconciliation": self.result.to_dict() if self.result else None,
        }


class BoundarySync:
    """
    Plans boundary imports from a live query and a backup snapshot.

    Args:
        client: RetryingClient used for the live ID query
        recorder: Where mismatches are recorded (default: log only)
        gap_type: Label for recorded gaps, e.g. "countries" or "maritimes"
        id_property: Feature property holding the ID in the backup
        element_type: Overpass element type to keep from the live answer
    """

    def __init__(
        self,
        client: RetryingClient,
        recorder: DataGapRecorder | None = None,
        gap_type: str = "countries",
        id_property: str = "country_id",
        element_type: str | None = "relation",
    ):
        self.client = client
        self.recorder = recorder or DataGapRecorder()
        self.gap_type = gap_type
        self.id_property = id_property
        self.element_type = element_type

    def plan(self, query: str, backup_path: str | os.PathLike) -> BoundaryPlan:
        """
        Build the import plan for one boundary type.

        Raises:
            FileNotFoundError: If the backup file does not exist
            InputError: If both the live answer and the backup are empty
        """
        with trace_operation("boundary_sync_plan", gap_type=self.gap_type):
            backup_ids = read_backup_ids(backup_path, self.id_property)
            logger.info(f"Backup {backup_path} holds {len(backup_ids)} {self.gap_type} IDs")

            try:
                response = self.client.query(query)
            except ExhaustedError as e:
                logger.warning(
                    f"Live {self.gap_type} query failed after {e.attempts} attempt(s), "
                    f"using repository backup"
                )
                add_span_attributes(source=BoundarySource.BACKUP_FALLBACK.value)
                return BoundaryPlan(source=BoundarySource.BACKUP_FALLBACK)

            live_ids = extract_live_ids(response, self.element_type)
            result = reconcile(live_ids, backup_ids)
            add_span_attributes(
                matched=result.matched,
                gap_percentage=result.gap_percentage,
            )

            if result.matched:
                logger.info(f"✓ Live {self.gap_type} IDs match backup, using repository backup")
                self.recorder.record(self.gap_type, result)
                return BoundaryPlan(source=BoundarySource.BACKUP, result=result)

            self.recorder.record(
                self.gap_type,
                result,
                details={"backup_path": str(backup_path)},
            )

            to_download = list(result.extra_ids)
            source = BoundarySource.LIVE if not backup_ids else BoundarySource.BACKUP
            logger.info(
                f"{self.gap_type}: {len(to_download)} ID(s) to download, "
                f"{len(result.missing_ids)} backup ID(s) not seen live"
            )
            return BoundaryPlan(source=source, ids_to_download=to_download, result=result)
