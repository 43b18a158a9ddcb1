"""
core/recheck.py
Second pass over a saved address list: keep the addresses that still answer HTTP.

  • Reads a newline-separated list (valid.txt from an earlier scan)
  • Sends one HEAD per address through a BoundedExecutor
  • Any HTTP status line counts as reachable
  • Output keeps the input order
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import List, Optional, Sequence

from core.executor import BoundedExecutor, CancelFlag, ScanAborted
from core.probes import Prober, SystemProber
from utils.constants import RECHECK_CONCURRENCY, RECHECK_TIMEOUT_MS
from utils.logger import get_logger

log = get_logger("smartscan.recheck")


class RecheckError(RuntimeError):
    """The address list could not be read."""


@dataclass
class RecheckReport:
    checked:   int
    reachable: List[str] = field(default_factory=list)
    errors:    int = 0
    aborted:   bool = False

    def render_text(self) -> str:
        return "\n".join(self.reachable)


def load_address_list(path: str | Path) -> List[str]:
    """One address per line; blank lines are skipped."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise RecheckError(f"Cannot read address list {path}: {exc}") from exc
    return [line.strip() for line in text.splitlines() if line.strip()]


async def recheck_addresses(
    addresses: Sequence[str],
    prober: Optional[Prober] = None,
    concurrency: int = RECHECK_CONCURRENCY,
    timeout_ms: float = RECHECK_TIMEOUT_MS,
    host_header: str = "",
    cancel: Optional[CancelFlag] = None,
) -> RecheckReport:
    prober = prober or SystemProber()
    executor = BoundedExecutor(concurrency, cancel)

    async def _check(address: str) -> bool:
        ok = await prober.http_head_ok(address, host_header, timeout_ms)
        if ok:
            log.info(f"Reachable: {address}")
        else:
            log.debug(f"No response: {address}")
        return ok

    futures = [executor.submit(partial(_check, ip)) for ip in addresses]
    results = await asyncio.gather(*futures, return_exceptions=True)

    report = RecheckReport(checked=len(addresses))
    for address, r in zip(addresses, results):
        if isinstance(r, (ScanAborted, asyncio.CancelledError)):
            report.aborted = True
        elif isinstance(r, BaseException):
            report.errors += 1
            log.warning(f"Recheck of {address} failed: {r}")
        elif r:
            report.reachable.append(address)
    if executor.cancel.is_set():
        report.aborted = True
    return report
