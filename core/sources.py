"""
core/sources.py
Where scan ranges come from when the caller gives none.

  RemoteRangeSource    — JSON document with an `addresses` array over HTTPS
  FileRangeSource      — local text file, one CIDR per line
  FallbackRangeSource  — remote first, local file when the fetch fails

Remote fetch runs urllib in the default thread executor so the event loop
is never blocked.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import List

from utils.constants import REMOTE_RANGES_URL, REMOTE_TIMEOUT_MS, USER_AGENT
from utils.logger import get_logger

log = get_logger("smartscan.sources")


# ─── Custom Exceptions ────────────────────────────────────────────────────────

class RangeSourceError(RuntimeError):
    """No ranges could be acquired."""


class RangeFetchError(RangeSourceError):
    """Remote range list unavailable, malformed or empty."""


class RangeFileError(RangeSourceError):
    """Local range file missing, unreadable or empty."""


# ─── Sources ──────────────────────────────────────────────────────────────────

class RangeSource:
    """Provider interface: return a non-empty list of CIDR strings or raise."""

    async def fetch(self) -> List[str]:
        raise NotImplementedError


class RemoteRangeSource(RangeSource):

    def __init__(self, url: str = REMOTE_RANGES_URL,
                 timeout_ms: float = REMOTE_TIMEOUT_MS):
        self.url = url
        self.timeout_ms = timeout_ms

    async def fetch(self) -> List[str]:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self.fetch_sync),
                timeout=self.timeout_ms / 1000.0 + 1.0,
            )
        except asyncio.TimeoutError as exc:
            raise RangeFetchError(f"Timed out fetching {self.url}") from exc

    def fetch_sync(self) -> List[str]:
        req = urllib.request.Request(
            self.url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_ms / 1000.0) as resp:
                body = resp.read()
        except urllib.error.HTTPError as exc:
            raise RangeFetchError(f"Range API HTTP {exc.code}") from exc
        except urllib.error.URLError as exc:
            raise RangeFetchError(f"Range API unreachable: {exc.reason}") from exc
        except OSError as exc:
            raise RangeFetchError(f"Range API error: {exc}") from exc
        return parse_range_document(body)


def parse_range_document(body: bytes | str) -> List[str]:
    """Extract the IPv4 `addresses` array; absent or empty is an error."""
    try:
        doc = json.loads(body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise RangeFetchError(f"Range API returned invalid JSON: {exc}") from exc

    addresses = doc.get("addresses") if isinstance(doc, dict) else None
    if not isinstance(addresses, list):
        addresses = []
    ranges = [a.strip() for a in addresses if isinstance(a, str) and a.strip()]
    if not ranges:
        raise RangeFetchError("Range API returned no IPv4 addresses")
    return ranges


def load_range_file(path: str | Path) -> List[str]:
    """One CIDR per line; blank lines and '#' comments are skipped."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise RangeFileError(f"Cannot read range file {p}: {exc}") from exc

    ranges = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            ranges.append(line)
    if not ranges:
        raise RangeFileError(f"Range file {p} is empty.")
    return ranges


class FileRangeSource(RangeSource):

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def fetch(self) -> List[str]:
        return load_range_file(self.path)


class FallbackRangeSource(RangeSource):
    """Try `primary`; on failure load `fallback`; fail with both reasons."""

    def __init__(self, primary: RangeSource, fallback: RangeSource):
        self.primary = primary
        self.fallback = fallback

    async def fetch(self) -> List[str]:
        try:
            ranges = await self.primary.fetch()
            log.info(f"Fetched {len(ranges)} ranges from remote list.")
            return ranges
        except RangeSourceError as exc:
            primary_err = exc
            log.warning(f"Remote range fetch failed: {exc}")
            log.info("Falling back to local range file...")

        try:
            ranges = await self.fallback.fetch()
        except RangeSourceError as exc:
            raise RangeSourceError(
                "Remote range fetch failed AND fallback file could not be loaded.\n"
                f"Remote error: {primary_err}\n"
                f"Fallback error: {exc}"
            ) from exc
        log.info(f"Loaded {len(ranges)} ranges from fallback file.")
        return ranges


def default_source(remote_url: str, remote_timeout_ms: float,
                   fallback_path: str | Path) -> RangeSource:
    return FallbackRangeSource(
        RemoteRangeSource(remote_url, remote_timeout_ms),
        FileRangeSource(fallback_path),
    )
