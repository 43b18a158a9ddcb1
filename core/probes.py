"""
core/probes.py
Reachability probes used by both scan stages:
  • TCP connect          — asyncio.open_connection, closed immediately
  • HTTP HEAD            — raw HTTP/1.0 over an asyncio stream, Host override
  • ICMP latency         — system `ping`, RTT parsed from its own report

Every probe is bounded by a timeout and never raises: refused, reset,
unreachable, timed out and malformed output all collapse to a negative
outcome.
"""

from __future__ import annotations

import asyncio
import re
import sys
from typing import List, NamedTuple, Optional

from utils.constants import DEFAULT_PORT, PING_KILL_GRACE_MS, USER_AGENT
from utils.logger import get_logger

log = get_logger("smartscan.probes")


class PingResult(NamedTuple):
    ok: bool
    ms: Optional[float]


PING_FAILED = PingResult(False, None)

_PING_TIME_RE = re.compile(r"time\s*[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


def parse_ping_output(output: str) -> PingResult:
    """Extract the round-trip time from ping's text output."""
    m = _PING_TIME_RE.search(output)
    if not m:
        return PING_FAILED
    try:
        return PingResult(True, float(m.group(1)))
    except ValueError:
        return PING_FAILED


# ─── Probe capability ─────────────────────────────────────────────────────────

class Prober:
    """Probe interface. Implementations must never raise."""

    async def tcp_reachable(self, address: str, timeout_ms: float) -> bool:
        raise NotImplementedError

    async def http_head_ok(
        self, address: str, host_header: str, timeout_ms: float
    ) -> bool:
        raise NotImplementedError

    async def ping_latency_ms(self, address: str, timeout_ms: float) -> PingResult:
        raise NotImplementedError


class SystemProber(Prober):
    """Real network probes against a single TCP port."""

    def __init__(self, port: int = DEFAULT_PORT, ping_cmd: str = "ping"):
        self.port = port
        self._ping_cmd = ping_cmd
        self._windows = sys.platform.startswith("win")

    # ── TCP ───────────────────────────────────────────────────────────────────

    async def tcp_reachable(self, address: str, timeout_ms: float) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000.0
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, self.port),
                timeout=timeout_ms / 1000.0,
            )
        except (asyncio.TimeoutError, OSError):
            return False
        # The close handshake shares the probe budget.
        await self._close(writer, max(0.0, deadline - loop.time()))
        return True

    # ── HTTP HEAD ─────────────────────────────────────────────────────────────

    async def http_head_ok(
        self, address: str, host_header: str, timeout_ms: float
    ) -> bool:
        """
        Send HEAD / with an optional Host override to address:port.

        Any status line counts as success; only connect failure, timeout or
        a non-HTTP reply yields False.
        """
        try:
            return await asyncio.wait_for(
                self._head(address, host_header or address),
                timeout=timeout_ms / 1000.0,
            )
        except (asyncio.TimeoutError, OSError, ValueError):
            # ValueError: status line over the stream buffer limit
            return False

    async def _head(self, address: str, host: str) -> bool:
        reader, writer = await asyncio.open_connection(address, self.port)
        try:
            writer.write(self._head_request(host))
            await writer.drain()
            status = await reader.readline()
            return status.startswith(b"HTTP/")
        finally:
            await self._close(writer)

    @staticmethod
    def _head_request(host: str) -> bytes:
        return (
            "HEAD / HTTP/1.0\r\n"
            f"Host: {host}\r\n"
            f"User-Agent: {USER_AGENT}\r\n"
            "Connection: close\r\n"
            "\r\n"
        ).encode("ascii", errors="ignore")

    # ── Ping ──────────────────────────────────────────────────────────────────

    def ping_args(self, address: str, timeout_ms: float) -> List[str]:
        if self._windows:
            return [self._ping_cmd, "-n", "1", "-w", str(int(timeout_ms)), address]
        return [self._ping_cmd, "-c", "1", address]

    async def ping_latency_ms(self, address: str, timeout_ms: float) -> PingResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.ping_args(address, timeout_ms),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            log.debug(f"ping spawn failed for {address}: {exc}")
            return PING_FAILED

        try:
            out, _ = await asyncio.wait_for(
                proc.communicate(),
                timeout=(timeout_ms + PING_KILL_GRACE_MS) / 1000.0,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            return PING_FAILED

        return parse_ping_output(out.decode("utf-8", errors="replace"))

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    async def _close(
        writer: asyncio.StreamWriter, timeout_s: Optional[float] = None
    ) -> None:
        try:
            writer.close()
            await asyncio.wait_for(writer.wait_closed(), timeout=timeout_s)
        except (asyncio.TimeoutError, OSError):
            pass

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
