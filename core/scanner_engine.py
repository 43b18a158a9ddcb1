"""
core/scanner_engine.py
Two-stage sample-then-expand scan engine:
  • Stage A probes a few fixed addresses per /24 and marks the block hot
    on the first success
  • Stage B expands only hot blocks and validates every address with
    TCP connect, optional HTTP HEAD and an ICMP latency probe
  • One BoundedExecutor caps in-flight probes across both stages
  • Stage B starts only after every Stage-A task has settled
  • An abort flag stops admission; a partial report is still returned
  • No imports of dashboard/reporting (clean layering)
"""

from __future__ import annotations

import asyncio
import threading
import time
from functools import partial
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence

from core.cidr import (
    InvalidRangeFormat, addresses_of, block_label, parse, sample_addresses,
    sub_blocks_of,
)
from core.config import ScanConfig
from core.events import ScanObserver
from core.executor import BoundedExecutor, CancelFlag, ScanAborted
from core.probes import Prober, SystemProber
from core.results import ScanReport, ValidEntry
from core.sources import RangeSource, RangeSourceError, default_source
from utils.constants import ScanState, Stage
from utils.logger import get_logger

log = get_logger("smartscan.engine")


# ─── Custom Exceptions ────────────────────────────────────────────────────────

class ScanSetupError(RuntimeError):
    """Nothing to scan: no ranges resolved or no sub-blocks derived."""


# ─── Data Classes ─────────────────────────────────────────────────────────────

class SampleTarget(NamedTuple):
    block:   int
    address: str


class HotBlockSet:
    """
    Blocks with at least one successful Stage-A sample.

    Insert-only and idempotent; iteration follows first insertion. Closed
    once Stage A settles, after which inserts raise.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blocks: Dict[int, None] = {}
        self._closed = False

    def add(self, block: int) -> bool:
        """Insert block. Returns True if it was not already hot."""
        with self._lock:
            if self._closed:
                raise RuntimeError("HotBlockSet is closed for writes")
            if block in self._blocks:
                return False
            self._blocks[block] = None
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __contains__(self, block: object) -> bool:
        with self._lock:
            return block in self._blocks

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)

    def __iter__(self) -> Iterator[int]:
        with self._lock:
            return iter(list(self._blocks))


# ─── Planning helpers ─────────────────────────────────────────────────────────

def plan_blocks(ranges: Iterable[str]) -> List[int]:
    """Parse ranges and return their /24 blocks, deduplicated, first-seen order."""
    blocks: Dict[int, None] = {}
    for text in ranges:
        for block in sub_blocks_of(parse(text)):
            blocks[block] = None
    return list(blocks)


def sample_targets(blocks: Iterable[int], per_block: int) -> List[SampleTarget]:
    return [
        SampleTarget(block, ip)
        for block in blocks
        for ip in sample_addresses(block, per_block)
    ]


def expansion_targets(hot_blocks: Iterable[int], limit: int) -> List[str]:
    """Blocks that never turned hot contribute nothing."""
    return [ip for block in hot_blocks for ip in addresses_of(block, limit)]


# ─── Core Engine ─────────────────────────────────────────────────────────────

class ScanEngine:
    """
    Staged scanner.

    IDLE → RESOLVING → STAGE_A → STAGE_B → DONE | ABORTED,
    FAILED from any running state on a setup error.

    Layering contract:
      Imports only: core/*, utils/*
      Does NOT import: dashboard, reporting
    """

    def __init__(
        self,
        prober: Optional[Prober] = None,
        observer: Optional[ScanObserver] = None,
        source: Optional[RangeSource] = None,
        cancel: Optional[CancelFlag] = None,
    ):
        self._prober = prober
        self._observer = observer or ScanObserver()
        self._source = source
        self.cancel = cancel or CancelFlag()
        self.state = ScanState.IDLE
        self.executor: Optional[BoundedExecutor] = None
        self.hot_blocks = HotBlockSet()
        self.errors = 0

    # ── Public scan API ───────────────────────────────────────────────────────

    async def run(self, config: ScanConfig) -> ScanReport:
        """Run both stages. Raises only on setup errors; see ScanSetupError."""
        if self.state != ScanState.IDLE:
            raise RuntimeError(f"ScanEngine already used (state={self.state.value})")
        t0 = time.monotonic()

        try:
            self._set_state(ScanState.RESOLVING)
            ranges = await self._resolve_ranges(config)
            blocks = plan_blocks(ranges)
            if not blocks:
                raise ScanSetupError("No /24 blocks to scan.")
        except (InvalidRangeFormat, RangeSourceError, ScanSetupError):
            self._set_state(ScanState.FAILED)
            raise

        prober = self._prober or SystemProber(port=config.port)
        self.executor = BoundedExecutor(config.concurrency, self.cancel)
        self._emit_log(
            f"Scanning {len(blocks)} /24 blocks from {len(ranges)} ranges "
            f"(port {config.port}, concurrency {config.concurrency}, "
            f"timeout {config.timeout_ms}ms, "
            f"HTTP check {'on' if config.http_check else 'off'})"
        )

        self._set_state(ScanState.STAGE_A)
        await self._stage_a(config, prober, blocks)

        entries: List[ValidEntry] = []
        if self.cancel.is_set():
            self._emit_log("Abort requested; skipping Stage B.")
        else:
            self._set_state(ScanState.STAGE_B)
            # Expand in input order, not in the order blocks turned hot.
            hot_in_order = [b for b in blocks if b in self.hot_blocks]
            targets = expansion_targets(hot_in_order, config.expand_limit_per_block)
            entries = await self._stage_b(config, prober, targets)

        final = ScanState.ABORTED if self.cancel.is_set() else ScanState.DONE
        report = ScanReport.build(
            entries,
            hot_blocks=len(self.hot_blocks),
            total_blocks=len(blocks),
            errors=self.errors,
            state=final,
            elapsed_s=time.monotonic() - t0,
            ranges=tuple(ranges),
        )
        self._set_state(final)
        self._emit_log(
            f"Hot /24 blocks: {report.hot_blocks} / {report.total_blocks}. "
            f"Valid IPs: {report.valid_count}."
        )
        return report

    def abort(self) -> None:
        """Stop admitting tasks; running probes finish or time out."""
        self.cancel.set()

    # ── Range resolution ──────────────────────────────────────────────────────

    async def _resolve_ranges(self, config: ScanConfig) -> List[str]:
        if config.ranges:
            return list(config.ranges)

        self._emit_log("No CIDR input provided; fetching remote range list...")
        source = self._source or default_source(
            config.remote_url, config.remote_timeout_ms, config.fallback_source
        )
        ranges = await source.fetch()
        if not ranges:
            raise ScanSetupError("Range source returned no ranges.")
        self._emit_log(f"Resolved {len(ranges)} ranges.")
        return ranges

    # ── Stage A: sample ───────────────────────────────────────────────────────

    async def _stage_a(
        self, config: ScanConfig, prober: Prober, blocks: Sequence[int]
    ) -> None:
        targets = sample_targets(blocks, config.samples_per_block)
        total = len(targets)
        done = 0
        self._emit("on_stage", Stage.A, Stage.A.label, total)

        async def _sample(target: SampleTarget) -> None:
            nonlocal done
            try:
                if await self._passes(prober, config, target.address):
                    if self.hot_blocks.add(target.block):
                        log.debug(f"hot block {block_label(target.block)} via {target.address}")
            finally:
                done += 1
                self._emit("on_progress", Stage.A, done, total)

        await self._settle(
            [self.executor.submit(partial(_sample, t)) for t in targets]
        )
        self.hot_blocks.close()

    # ── Stage B: expand + validate ────────────────────────────────────────────

    async def _stage_b(
        self, config: ScanConfig, prober: Prober, targets: Sequence[str]
    ) -> List[ValidEntry]:
        total = len(targets)
        done = 0
        entries: List[ValidEntry] = []
        self._emit("on_stage", Stage.B, Stage.B.label, total)

        async def _validate(address: str) -> None:
            nonlocal done
            try:
                if not await self._passes(prober, config, address):
                    return
                ping = await prober.ping_latency_ms(address, config.timeout_ms)
                if ping.ok and ping.ms is not None:
                    entry = ValidEntry(address, float(ping.ms))
                    entries.append(entry)
                    self._emit("on_valid", entry)
            finally:
                done += 1
                self._emit("on_progress", Stage.B, done, total)

        await self._settle(
            [self.executor.submit(partial(_validate, ip)) for ip in targets]
        )
        return entries

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    async def _passes(prober: Prober, config: ScanConfig, address: str) -> bool:
        """TCP connect, then HTTP HEAD when a host header is configured."""
        if not await prober.tcp_reachable(address, config.timeout_ms):
            return False
        if config.http_check:
            return await prober.http_head_ok(
                address, config.host_header, config.timeout_ms
            )
        return True

    async def _settle(self, futures: List[asyncio.Future]) -> None:
        """Wait for every future; count task failures instead of raising."""
        results = await asyncio.gather(*futures, return_exceptions=True)
        for r in results:
            if isinstance(r, (ScanAborted, asyncio.CancelledError)):
                continue
            if isinstance(r, BaseException):
                self.errors += 1
                log.warning(f"Scan task failed: {r!r}")

    def _set_state(self, state: ScanState) -> None:
        log.debug(f"state {self.state.value} → {state.value}")
        self.state = state

    def _emit(self, method: str, *args) -> None:
        try:
            getattr(self._observer, method)(*args)
        except Exception:
            log.exception(f"Observer {method} failed")

    def _emit_log(self, message: str) -> None:
        log.debug(message)
        self._emit("on_log", message)
