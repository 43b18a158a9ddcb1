"""
core/events.py
Scan notification contract.

Four fire-and-forget callbacks, all safe to call from concurrently running
scan tasks:
    on_stage(stage, label, total)
    on_progress(stage, done, total)
    on_valid(entry)
    on_log(message)
The engine never waits on an observer and ignores its failures.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from core.results import ValidEntry
from core.timing import RateMeter, format_eta
from utils.constants import Stage
from utils.logger import get_logger


class ScanObserver:
    """No-op base; override what you need."""

    def on_stage(self, stage: Stage, label: str, total: int) -> None:
        pass

    def on_progress(self, stage: Stage, done: int, total: int) -> None:
        pass

    def on_valid(self, entry: ValidEntry) -> None:
        pass

    def on_log(self, message: str) -> None:
        pass


class MultiObserver(ScanObserver):
    """Fan every notification out to several observers."""

    def __init__(self, observers: Iterable[ScanObserver]):
        self._observers = list(observers)

    def on_stage(self, stage, label, total):
        for o in self._observers:
            o.on_stage(stage, label, total)

    def on_progress(self, stage, done, total):
        for o in self._observers:
            o.on_progress(stage, done, total)

    def on_valid(self, entry):
        for o in self._observers:
            o.on_valid(entry)

    def on_log(self, message):
        for o in self._observers:
            o.on_log(message)


class LoggingObserver(ScanObserver):
    """
    Render notifications as log lines.

    Progress is logged at 1 % steps with the current rate and ETA so large
    stages do not flood the output.
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 show_valid: bool = True):
        self._log = logger or get_logger("smartscan.progress")
        self._show_valid = show_valid
        self._meters: Dict[Stage, RateMeter] = {}
        self._last_pct: Dict[Stage, int] = {}

    def on_stage(self, stage, label, total):
        self._meters[stage] = RateMeter()
        self._last_pct[stage] = -1
        self._log.info(f"[*] {label}: {total} targets")

    def on_progress(self, stage, done, total):
        meter = self._meters.setdefault(stage, RateMeter())
        meter.update()
        pct = (done * 100) // total if total else 100
        if pct == self._last_pct.get(stage):
            return
        self._last_pct[stage] = pct
        self._log.info(
            f"    {stage.label} {min(pct, 100):3d}%  "
            f"{done}/{total}  "
            f"Rate:{meter.current_rate():.1f}/s  "
            f"ETA:{format_eta(meter.eta_s(total - done))}"
        )

    def on_valid(self, entry):
        if self._show_valid:
            self._log.info(f"[+] {entry.address}  {entry.latency_ms:.3f} ms")

    def on_log(self, message):
        self._log.info(message)
