"""
core/results.py
Validated entries and their text/CSV renderings. Pure; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from utils.constants import ScanState

CSV_HEADER = "ip,ping_ms"


@dataclass(frozen=True)
class ValidEntry:
    address:    str
    latency_ms: float


def sort_entries(entries: Iterable[ValidEntry]) -> List[ValidEntry]:
    """Ascending by latency; equal latencies keep discovery order."""
    return sorted(entries, key=lambda e: e.latency_ms)


def render_text(entries: Iterable[ValidEntry]) -> str:
    return "\n".join(e.address for e in entries)


def render_csv(entries: Iterable[ValidEntry]) -> str:
    rows = [f"{e.address},{e.latency_ms:.3f}" for e in entries]
    return "\n".join([CSV_HEADER] + rows)


@dataclass
class ScanReport:
    entries:      Tuple[ValidEntry, ...] = ()
    hot_blocks:   int = 0
    total_blocks: int = 0
    errors:       int = 0
    state:        ScanState = ScanState.DONE
    elapsed_s:    float = 0.0
    ranges:       Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        entries: Iterable[ValidEntry],
        hot_blocks: int,
        total_blocks: int,
        **kwargs,
    ) -> "ScanReport":
        return cls(
            entries=tuple(sort_entries(entries)),
            hot_blocks=hot_blocks,
            total_blocks=total_blocks,
            **kwargs,
        )

    @property
    def valid_count(self) -> int:
        return len(self.entries)

    @property
    def aborted(self) -> bool:
        return self.state == ScanState.ABORTED

    @property
    def text(self) -> str:
        return render_text(self.entries)

    @property
    def csv(self) -> str:
        return render_csv(self.entries)

    def to_dict(self) -> dict:
        return {
            "state":        self.state.value,
            "hot_blocks":   self.hot_blocks,
            "total_blocks": self.total_blocks,
            "valid_count":  self.valid_count,
            "errors":       self.errors,
            "elapsed_s":    round(self.elapsed_s, 3),
            "ranges":       list(self.ranges),
            "valid": [
                {"ip": e.address, "ms": e.latency_ms} for e in self.entries
            ],
            "txt": self.text,
            "csv": self.csv,
        }
