"""
Run report generation and formatting.
"""

from .formatters import export_report_json, format_report_console
from .generator import IssueType, generate_run_report

__all__ = [
    "IssueType",
    "export_report_json",
    "format_report_console",
    "generate_run_report",
]
