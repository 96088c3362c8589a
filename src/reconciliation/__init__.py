"""
Reconciliation of live boundary data against repository backups.

Components:
- compare: pure ID set comparison with a quantified gap
- backup: readers for backup snapshots, live Overpass answers and notes documents
- gaps: persistence of detected data gaps
- boundaries: backup-or-download planning for boundary imports

Usage:
    from reconciliation import BoundarySync, reconcile

    result = reconcile(live_ids={1, 2}, backup_ids={1, 2, 3})
    plan = BoundarySync(client).plan(query, "data/countries.geojson.gz")
"""

from .backup import extract_live_ids, read_backup_ids, read_document_ids, read_id_list
from .boundaries import BoundaryPlan, BoundarySource, BoundarySync
from .compare import ReconciliationResult, gap_percentage, reconcile
from .gaps import DataGapRecorder

__version__ = "1.0.0"
__all__ = [
    "BoundaryPlan",
    "BoundarySource",
    "BoundarySync",
    "DataGapRecorder",
    "ReconciliationResult",
    "extract_live_ids",
    "gap_percentage",
    "read_backup_ids",
    "read_document_ids",
    "read_id_list",
    "reconcile",
]
