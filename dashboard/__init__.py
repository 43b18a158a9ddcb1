"""SmartScan Dashboard — Public API

Flask control API for starting, polling and aborting scans.

Usage:
    from dashboard.app import create_app, run_dashboard
"""
from dashboard.app import create_app, run_dashboard, ScanController, ScanSession

__all__ = [
    "create_app",
    "run_dashboard",
    "ScanController",
    "ScanSession",
]
