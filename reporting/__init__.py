"""SmartScan Reporting — Public API

Writes valid.txt, valid.csv and summary.json for a finished scan.

Usage:
    from reporting import ReportGenerator
    paths = ReportGenerator(output_dir="out").write(report.to_dict())
"""
from reporting.report_generator import ReportGenerator

__all__ = [
    "ReportGenerator",
]
