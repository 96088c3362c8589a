"""
Report formatting and export utilities.
"""

import json
import os
from typing import Any


def export_report_json(report: dict[str, Any], output_path: str | os.PathLike) -> None:
    """
    Export report to JSON file

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)


def format_report_console(report: dict[str, Any]) -> str:
    """
    Format report for console output

    Args:
        report: Report dictionary

    Returns:
        Formatted string for console display
    """
    lines = []

    lines.append("=" * 80)
    lines.append("INGESTION RUN REPORT")
    lines.append("=" * 80)
    lines.append(f"Status: {report['status']}")
    lines.append(f"Timestamp: {report['timestamp']}")
    lines.append(f"Documents: {report['total_documents']}")
    lines.append(f"Documents Failed: {report['documents_failed']}")
    lines.append(f"Partitions: {report['total_partitions']:,}")
    lines.append(f"Records: {report['total_records']:,}")
    lines.append(
        f"Units: {report['units_succeeded']} succeeded, {report['units_failed']} failed, "
        f"{report['units_timed_out']} timed out, {report['units_skipped']} skipped"
    )
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 80)
    lines.append(report["summary"])
    lines.append("")

    if report["issues"]:
        lines.append("ISSUES")
        lines.append("-" * 80)

        for issue in report["issues"]:
            lines.append(f"Document: {issue['document']}")
            lines.append(f"  Issue: {issue['issue_type']}")
            lines.append(f"  Severity: {issue['severity']}")
            lines.append(f"  Details: {issue['details']}")
            lines.append("")

    if report["recommendations"]:
        lines.append("RECOMMENDATIONS")
        lines.append("-" * 80)
        for i, rec in enumerate(report["recommendations"], 1):
            lines.append(f"{i}. {rec}")
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)
