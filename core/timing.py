"""
core/timing.py
Scan throughput meter and timing preset lookup.

RateMeter keeps a sliding window of completions so progress output can show
a current rate and an ETA for the remaining work items of a stage.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from utils.constants import TimingProfile, TIMING_PROFILES, DEFAULT_TIMING


# ─── Scan Rate Meter (mirrors nmap RateMeter) ─────────────────────────────────

class RateMeter:
    """
    Tracks current and lifetime average completion rates.
    Thread-safe.
    """

    def __init__(self, window_s: float = 5.0):
        self._window   = window_s
        self._lock     = threading.Lock()
        self._history: list[tuple[float, float]] = []  # (timestamp, amount)
        self._total    = 0.0
        self._start    = time.monotonic()

    def update(self, amount: float = 1.0) -> None:
        now = time.monotonic()
        with self._lock:
            self._history.append((now, amount))
            self._total += amount
            # prune old entries
            cutoff = now - self._window
            self._history = [(t, a) for t, a in self._history if t >= cutoff]

    def current_rate(self) -> float:
        """Items/second in sliding window."""
        now = time.monotonic()
        with self._lock:
            cutoff = now - self._window
            recent = [a for t, a in self._history if t >= cutoff]
            if not recent:
                return 0.0
            elapsed = min(self._window, now - self._start)
            return sum(recent) / elapsed if elapsed > 0 else 0.0

    def overall_rate(self) -> float:
        elapsed = time.monotonic() - self._start
        if elapsed <= 0:
            return 0.0
        with self._lock:
            return self._total / elapsed

    def eta_s(self, remaining: float) -> Optional[float]:
        """Seconds left at the current rate, None while the rate is unknown."""
        rate = self.current_rate()
        if rate <= 0:
            return None
        return max(0.0, remaining) / rate

    @property
    def total(self) -> float:
        with self._lock:
            return self._total


def format_eta(seconds: Optional[float]) -> str:
    if seconds is None:
        return "?"
    secs = int(seconds + 0.999)
    if secs >= 60:
        return f"{secs // 60}m{secs % 60}s"
    return f"{secs}s"


# ─── Convenience factory ──────────────────────────────────────────────────────

def get_timing(name: str = DEFAULT_TIMING) -> TimingProfile:
    """
    Get a timing profile by name.
    Accepts: polite, normal, aggressive, insane
             or T2 .. T5 shorthand.
    """
    shorthand = {"t2": "polite", "t3": "normal",
                 "t4": "aggressive", "t5": "insane"}
    key = shorthand.get(name.lower(), name.lower())
    if key not in TIMING_PROFILES:
        raise ValueError(
            f"Unknown timing profile {name!r}. "
            f"Choose from: {list(TIMING_PROFILES)}"
        )
    return TIMING_PROFILES[key]
