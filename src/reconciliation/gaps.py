"""
Recording of data gaps found by reconciliation.

A gap is logged, exported as a gauge and, when a store is configured,
inserted into the data_gaps table so operators can follow it up.
"""

import json
import logging
from typing import Any, Protocol

from prometheus_client import Gauge

from utils.metrics import get_or_create_metric

from .compare import ReconciliationResult

logger = logging.getLogger(__name__)

DATA_GAP_PERCENTAGE = get_or_create_metric(
    lambda: Gauge(
        "reconciliation_gap_percentage",
        "Percentage of expected identifiers missing at the last reconciliation",
        ["gap_type"],
    ),
    "reconciliation_gap_percentage",
)

INSERT_GAP_SQL = (
    "INSERT INTO data_gaps (gap_type, gap_count, total_count, gap_percentage, details) "
    "VALUES (%s, %s, %s, %s, %s)"
)


class StatementRunner(Protocol):
    def execute(self, query: str, params: Any = None) -> int: ...


class DataGapRecorder:
    """
    Persists reconciliation mismatches.

    Args:
        store: Optional statement runner (TargetStore); logging only when None
        sample_size: How many missing identifiers to keep in the details
    """

    def __init__(self, store: StatementRunner | None = None, sample_size: int = 10):
        self.store = store
        self.sample_size = sample_size

    def record(
        self,
        gap_type: str,
        result: ReconciliationResult,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """
        Record a mismatch. Matched results only update the gauge.

        Args:
            gap_type: Kind of data compared (e.g. "countries")
            result: Reconciliation outcome
            details: Extra context stored with the gap

        Returns:
            True when a gap was recorded
        """
        DATA_GAP_PERCENTAGE.labels(gap_type=gap_type).set(result.gap_percentage)

        if result.matched:
            return False

        stored = {
            "missing_sample": [str(i) for i in result.sample_missing(self.sample_size)],
            "extra_count": len(result.extra_ids),
            **(details or {}),
        }
        logger.warning(
            f"Data gap ({gap_type}): {len(result.missing_ids)} of {result.expected_count} "
            f"missing ({result.gap_percentage}%), {len(result.extra_ids)} extra"
        )

        if self.store is not None:
            self.store.execute(
                INSERT_GAP_SQL,
                (
                    gap_type,
                    len(result.missing_ids),
                    result.expected_count,
                    result.gap_percentage,
                    json.dumps(stored),
                ),
            )
        return True
