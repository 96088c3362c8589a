"""
Live versus backup ID comparison.

Usage:
    from reconciliation.compare import reconcile

    result = reconcile(live_ids={1, 2}, backup_ids={1, 2, 3})
    result.gap_percentage  # 34
"""

from .ids import ReconciliationResult, gap_percentage, reconcile

__all__ = ["ReconciliationResult", "gap_percentage", "reconcile"]
