"""
Run report generation.

Builds one report out of the summaries of the documents processed in a run,
with per-document issues and follow-up recommendations.
"""

from datetime import UTC, datetime
from typing import Any


class IssueType:
    """Constants for issue types."""

    PARTITION_ERROR = "PARTITION_ERROR"
    UNIT_FAILURES = "UNIT_FAILURES"
    UNITS_SKIPPED = "UNITS_SKIPPED"
    DATA_GAP = "DATA_GAP"


def _as_dict(summary: Any) -> dict[str, Any]:
    return summary.to_dict() if hasattr(summary, "to_dict") else dict(summary)


def _unit_issue(summary: dict[str, Any], pool: dict[str, Any]) -> dict[str, Any]:
    unsuccessful = pool.get("failed", 0) + pool.get("timed_out", 0)
    return {
        "document": summary["document"],
        "issue_type": IssueType.UNIT_FAILURES,
        "severity": _calculate_severity(summary.get("partitions", 0), unsuccessful),
        "details": {
            "failed_units": pool.get("failed_units", []),
            "timed_out_units": pool.get("timed_out_units", []),
            "errors": pool.get("errors", []),
        },
        "timestamp": summary.get("timestamp", datetime.now(UTC).isoformat()),
    }


def _document_issues(summary: dict[str, Any]) -> list[dict[str, Any]]:
    issues = []
    pool = summary.get("pool") or {}
    timestamp = summary.get("timestamp", datetime.now(UTC).isoformat())

    if summary["status"] == "FAIL" and not pool:
        issues.append(
            {
                "document": summary["document"],
                "issue_type": IssueType.PARTITION_ERROR,
                "severity": "CRITICAL",
                "details": {"error": summary.get("error")},
                "timestamp": timestamp,
            }
        )

    if pool.get("failed", 0) or pool.get("timed_out", 0):
        issues.append(_unit_issue(summary, pool))

    if pool.get("skipped", 0):
        issues.append(
            {
                "document": summary["document"],
                "issue_type": IssueType.UNITS_SKIPPED,
                "severity": "MEDIUM",
                "details": {"skipped_units": pool.get("skipped_units", [])},
                "timestamp": timestamp,
            }
        )

    reconciliation = summary.get("reconciliation")
    if reconciliation and not reconciliation.get("matched", True):
        issues.append(
            {
                "document": summary["document"],
                "issue_type": IssueType.DATA_GAP,
                "severity": _calculate_severity(
                    reconciliation.get("expected_count", 0),
                    reconciliation.get("missing_count", 0),
                ),
                "details": {
                    "gap_percentage": reconciliation.get("gap_percentage", 0),
                    "missing_count": reconciliation.get("missing_count", 0),
                    "extra_count": reconciliation.get("extra_count", 0),
                },
                "timestamp": timestamp,
            }
        )

    return issues


def generate_run_report(run_summaries: list[Any]) -> dict[str, Any]:
    """
    Generate a report from the run summaries of a pipeline run

    Args:
        run_summaries: RunSummary objects or their to_dict() form

    Returns:
        Dictionary containing:
        - status: PASS, FAIL, or NO_DATA
        - total_documents / documents_passed / documents_failed
        - total_partitions / total_records
        - units_succeeded / units_failed / units_timed_out / units_skipped
        - issues: Per-document problems
        - summary: Human-readable summary
        - recommendations: List of recommended actions
        - timestamp: Report generation timestamp
    """
    summaries = [_as_dict(s) for s in run_summaries]
    with_data = [s for s in summaries if s["status"] != "NO_DATA"]

    if not with_data:
        return {
            "status": "NO_DATA",
            "total_documents": len(summaries),
            "documents_passed": 0,
            "documents_failed": 0,
            "total_partitions": 0,
            "total_records": 0,
            "units_succeeded": 0,
            "units_failed": 0,
            "units_timed_out": 0,
            "units_skipped": 0,
            "issues": [],
            "summary": "No records were processed",
            "recommendations": [],
            "timestamp": datetime.now(UTC).isoformat(),
        }

    totals = {"succeeded": 0, "failed": 0, "timed_out": 0, "skipped": 0}
    issues = []
    failed_documents = 0

    for summary in summaries:
        pool = summary.get("pool") or {}
        for key in totals:
            totals[key] += pool.get(key, 0)
        if summary["status"] == "FAIL":
            failed_documents += 1
        issues.extend(_document_issues(summary))

    status = "FAIL" if failed_documents else "PASS"

    return {
        "status": status,
        "total_documents": len(summaries),
        "documents_passed": sum(1 for s in summaries if s["status"] == "PASS"),
        "documents_failed": failed_documents,
        "total_partitions": sum(s.get("partitions", 0) for s in summaries),
        "total_records": sum(s.get("records", 0) for s in summaries),
        "units_succeeded": totals["succeeded"],
        "units_failed": totals["failed"],
        "units_timed_out": totals["timed_out"],
        "units_skipped": totals["skipped"],
        "issues": issues,
        "summary": _generate_summary(len(summaries), failed_documents, totals),
        "recommendations": _generate_recommendations(issues),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _calculate_severity(total: int, affected: int) -> str:
    """
    Severity of a problem from the share of work it affected

    Returns:
        Severity level: LOW, MEDIUM, HIGH, or CRITICAL
    """
    if total == 0:
        return "LOW" if affected == 0 else "CRITICAL"

    percentage = (affected / total) * 100

    if percentage < 1.0:
        return "LOW"
    elif percentage < 10.0:
        return "MEDIUM"
    elif percentage < 50.0:
        return "HIGH"
    else:
        return "CRITICAL"


def _generate_summary(total_documents: int, failed_documents: int, units: dict[str, int]) -> str:
    processed = units["succeeded"] + units["failed"] + units["timed_out"] + units["skipped"]
    if failed_documents == 0:
        return (
            f"All {total_documents} document(s) processed. "
            f"{units['succeeded']} of {processed} unit(s) loaded."
        )
    return (
        f"{failed_documents} of {total_documents} document(s) failed. "
        f"{units['succeeded']} of {processed} unit(s) loaded, "
        f"{units['failed']} failed, {units['timed_out']} timed out."
    )


def _generate_recommendations(issues: list[dict[str, Any]]) -> list[str]:
    recommendations = []

    if not issues:
        recommendations.append("Ingestion is healthy. Keep monitoring load times and data gaps.")
        return recommendations

    kinds = {issue["issue_type"] for issue in issues}

    if IssueType.PARTITION_ERROR in kinds:
        recommendations.append(
            "A source document is malformed. Download it again before the next run."
        )

    if IssueType.UNIT_FAILURES in kinds:
        recommendations.append(
            "Failed part files were kept in the output directory. "
            "Inspect them and rerun the load for those parts."
        )

    if IssueType.UNITS_SKIPPED in kinds:
        recommendations.append(
            "The run deadline was reached. Raise it or add workers."
        )

    if IssueType.DATA_GAP in kinds:
        recommendations.append(
            "Live boundaries differ from the repository backup. "
            "Refresh the backup once the downloaded boundaries are verified."
        )

    return recommendations
