"""
SmartScan Constants & Enums
Address-space geometry, sampling table, scan states and timing presets.
"""

from enum import Enum
from dataclasses import dataclass


# ─── Address Space ────────────────────────────────────────────────────────────
BLOCK_SIZE      = 256            # addresses per sub-block (/24)
BLOCK_MASK      = 0xFFFFFF00
ADDRESS_MAX     = 0xFFFFFFFF
PREFIX_MIN      = 0
PREFIX_MAX      = 32
MAX_SAMPLES     = 254            # usable sample offsets per block: 1..254

# Offsets biased toward commonly assigned hosts; never 0 or 255.
SAMPLE_OFFSETS  = (10, 42, 77, 99, 123, 150, 180, 200, 220, 240)


# ─── Scan Defaults ────────────────────────────────────────────────────────────
DEFAULT_PORT            = 80
DEFAULT_TIMEOUT_MS      = 1000
DEFAULT_SAMPLES         = 3
DEFAULT_EXPAND_LIMIT    = 256
DEFAULT_FALLBACK_FILE   = "cidrs.txt"
PING_KILL_GRACE_MS      = 200    # hard kill this long after the probe timeout

REMOTE_RANGES_URL       = "https://api.fastly.com/public-ip-list"
REMOTE_TIMEOUT_MS       = 8000
USER_AGENT              = "smartscan/1.0"

RECHECK_CONCURRENCY     = 80
RECHECK_TIMEOUT_MS      = 3000


# ─── Scan States ──────────────────────────────────────────────────────────────
class ScanState(str, Enum):
    IDLE      = "idle"
    RESOLVING = "resolving"
    STAGE_A   = "stage_a"
    STAGE_B   = "stage_b"
    DONE      = "done"
    ABORTED   = "aborted"
    FAILED    = "failed"


class Stage(str, Enum):
    A = "A"     # sparse sampling
    B = "B"     # full expansion

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    Stage.A: "Stage A (sample)",
    Stage.B: "Stage B (expand)",
}


# ─── Timing Presets (nmap -T2 to -T5 style) ───────────────────────────────────
@dataclass(frozen=True)
class TimingProfile:
    """Concurrency and probe timeout bundle selectable by name."""
    name: str
    concurrency: int
    timeout_ms: int


TIMING_PROFILES = {
    "polite":     TimingProfile("T2-Polite",     concurrency=50,   timeout_ms=2000),
    "normal":     TimingProfile("T3-Normal",     concurrency=400,  timeout_ms=1000),
    "aggressive": TimingProfile("T4-Aggressive", concurrency=1000, timeout_ms=800),
    "insane":     TimingProfile("T5-Insane",     concurrency=2500, timeout_ms=400),
}

DEFAULT_TIMING = "normal"

# ─── Layering Contract (hard import rules - enforced by tests) ───────────────
# core      → may import: utils
# reporting → may import: utils
# dashboard → may import: core, reporting, utils
# NEVER: core imports dashboard or reporting
