"""
reporting/report_generator.py
Persist scan results: valid.txt, valid.csv, a JSON summary and reachable.txt.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

TEXT_NAME      = "valid.txt"
CSV_NAME       = "valid.csv"
SUMMARY_NAME   = "summary.json"
REACHABLE_NAME = "reachable.txt"


# ─── Report Generator ────────────────────────────────────────────────────────

class ReportGenerator:
    """
    Write the rendered artifacts of a finished scan to a directory.
    Layering: works on the plain dict from ScanReport.to_dict().
    Does NOT import core or dashboard.
    """

    def __init__(self, output_dir: str | Path = "."):
        self.output_dir = Path(output_dir)

    def write(self, report: dict) -> Dict[str, Path]:
        """
        Write all artifacts.

        Args:
            report: Dict with at least 'txt' and 'csv' keys

        Returns:
            {"txt": path, "csv": path, "summary": path}
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "txt":     self.output_dir / TEXT_NAME,
            "csv":     self.output_dir / CSV_NAME,
            "summary": self.output_dir / SUMMARY_NAME,
        }
        paths["txt"].write_text(report["txt"], encoding="utf-8")
        paths["csv"].write_text(report["csv"], encoding="utf-8")
        self._summary(report, paths["summary"])
        return paths

    def write_reachable(self, text: str) -> Path:
        """Write the recheck result (newline-joined addresses) to reachable.txt."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / REACHABLE_NAME
        path.write_text(text, encoding="utf-8")
        return path

    # ── JSON ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _summary(report: dict, path: Path) -> None:
        summary = {k: v for k, v in report.items() if k not in ("txt", "csv")}
        with open(path, "w", encoding="utf-8") as f:
            json.dump({
                "report_generated": datetime.now(timezone.utc).isoformat(),
                "smartscan_version": "1.0",
                "scan": summary,
            }, f, indent=2, default=str)
