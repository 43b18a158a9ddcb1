"""
core/cidr.py
IPv4 range arithmetic for block-level scanning.

  "151.101.7.9/16"   → AddressRange(base=151.101.7.9, prefix=16)
  network_bounds     → (151.101.0.0, 151.101.255.255) as integers
  sub_blocks_of      → 256 aligned /24 starts
  sample_addresses   → k fixed, unique host offsets per /24
  addresses_of       → the first `limit` addresses of a /24

Rejects:
  "10.0.0.0", "10.0.0/8", "10.0.0.256/24", "10.0.0.0/33", "", None
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import List, Tuple

from utils.constants import (
    ADDRESS_MAX, BLOCK_MASK, BLOCK_SIZE, MAX_SAMPLES,
    PREFIX_MAX, PREFIX_MIN, SAMPLE_OFFSETS,
)


# ─── Custom Exceptions ────────────────────────────────────────────────────────

class InvalidRangeFormat(ValueError):
    """Raised when a range string is not a.b.c.d/prefix."""


# ─── Data Classes ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AddressRange:
    base:   int     # any 32-bit value, not necessarily network-aligned
    prefix: int

    def __str__(self) -> str:
        return f"{int_to_ip(self.base)}/{self.prefix}"


# ─── Parsing ──────────────────────────────────────────────────────────────────

_OCTETS_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_PREFIX_RE = re.compile(r"^\d{1,2}$")


def parse(text: str) -> AddressRange:
    """
    Parse "a.b.c.d/n" → AddressRange.

    Raises InvalidRangeFormat on any invalid input.
    """
    if not isinstance(text, str):
        raise InvalidRangeFormat(f"Expected string, got {type(text).__name__}")

    stripped = text.strip()
    base_str, sep, prefix_str = stripped.partition("/")
    if not sep or not base_str or not prefix_str:
        raise InvalidRangeFormat(f"Bad CIDR: {text!r} (expected a.b.c.d/prefix)")

    if not _PREFIX_RE.match(prefix_str):
        raise InvalidRangeFormat(f"Bad CIDR: {text!r} (prefix is not an integer)")
    prefix = int(prefix_str)
    if not (PREFIX_MIN <= prefix <= PREFIX_MAX):
        raise InvalidRangeFormat(
            f"Bad CIDR: {text!r} (prefix {prefix} out of range "
            f"[{PREFIX_MIN}, {PREFIX_MAX}])"
        )

    if not _OCTETS_RE.match(base_str):
        raise InvalidRangeFormat(f"Bad CIDR: {text!r} (base is not four octets)")
    octets = [int(o) for o in base_str.split(".")]
    if any(o > 255 for o in octets):
        raise InvalidRangeFormat(f"Bad CIDR: {text!r} (octet out of range [0, 255])")

    base = 0
    for o in octets:
        base = (base << 8) | o
    return AddressRange(base=base, prefix=prefix)


# ─── Range Math ───────────────────────────────────────────────────────────────

def prefix_mask(prefix: int) -> int:
    # Prefix 0 covers the whole address space.
    if prefix == 0:
        return 0
    return (ADDRESS_MAX << (32 - prefix)) & ADDRESS_MAX


def network_bounds(rng: AddressRange) -> Tuple[int, int]:
    """Inclusive (first, last) of the network containing rng.base."""
    first = rng.base & prefix_mask(rng.prefix)
    last = first + (1 << (32 - rng.prefix)) - 1
    return first, last


def sub_blocks_of(rng: AddressRange) -> range:
    """Every /24 start touched by rng, ascending."""
    first, last = network_bounds(rng)
    return range(first & BLOCK_MASK, (last & BLOCK_MASK) + 1, BLOCK_SIZE)


def sample_offsets(k: int) -> List[int]:
    """
    Return min(k, 254) unique offsets in [1, 254].

    Walks SAMPLE_OFFSETS cyclically; cycle c shifts every candidate by c so
    later cycles land on offsets not seen before. Deterministic for k.
    """
    want = min(k, MAX_SAMPLES)
    picks: List[int] = []
    seen = set()
    idx = 0
    n = len(SAMPLE_OFFSETS)
    while len(picks) < want:
        o = SAMPLE_OFFSETS[idx % n] + idx // n
        off = 1 + (o - 1) % MAX_SAMPLES
        if off not in seen:
            seen.add(off)
            picks.append(off)
        idx += 1
    return picks


def sample_addresses(block: int, k: int) -> List[str]:
    return [int_to_ip(block + off) for off in sample_offsets(k)]


def addresses_of(block: int, limit: int = BLOCK_SIZE) -> List[str]:
    # Offsets 0 and 255 are deliberately included.
    return [int_to_ip(block + off) for off in range(max(0, min(limit, BLOCK_SIZE)))]


# ─── Helpers ──────────────────────────────────────────────────────────────────

def int_to_ip(n: int) -> str:
    return str(ipaddress.IPv4Address(n & ADDRESS_MAX))


def ip_to_int(ip: str) -> int:
    return int(ipaddress.IPv4Address(ip))


def block_label(block: int) -> str:
    return f"{int_to_ip(block)}/24"
