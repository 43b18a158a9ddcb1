"""
core/config.py
Immutable scan configuration, built once at the boundary (CLI, YAML file,
control API) and passed down to the engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from core.timing import get_timing
from utils.constants import (
    BLOCK_SIZE, DEFAULT_EXPAND_LIMIT, DEFAULT_FALLBACK_FILE, DEFAULT_PORT,
    DEFAULT_SAMPLES, DEFAULT_TIMEOUT_MS, REMOTE_RANGES_URL, REMOTE_TIMEOUT_MS,
)
from utils.validators import validate_host_header, validate_port


class ConfigError(ValueError):
    """Raised when a scan configuration value is invalid."""


def default_concurrency() -> int:
    return (os.cpu_count() or 1) * 100


@dataclass(frozen=True)
class ScanConfig:
    ranges:                 Tuple[str, ...] = ()
    concurrency:            int = field(default_factory=default_concurrency)
    timeout_ms:             int = DEFAULT_TIMEOUT_MS
    samples_per_block:      int = DEFAULT_SAMPLES
    expand_limit_per_block: int = DEFAULT_EXPAND_LIMIT
    host_header:            str = ""
    fallback_source:        str = DEFAULT_FALLBACK_FILE
    port:                   int = DEFAULT_PORT
    remote_url:             str = REMOTE_RANGES_URL
    remote_timeout_ms:      int = REMOTE_TIMEOUT_MS

    def __post_init__(self):
        if isinstance(self.ranges, str):
            raise ConfigError("ranges must be a sequence of CIDR strings, not a string")
        # Freeze whatever sequence the caller handed us.
        ranges = (str(r).strip() for r in self.ranges if r is not None)
        object.__setattr__(self, "ranges", tuple(r for r in ranges if r))
        object.__setattr__(self, "host_header", (self.host_header or "").strip())

        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout_ms <= 0:
            raise ConfigError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.samples_per_block < 1:
            raise ConfigError(
                f"samples_per_block must be >= 1, got {self.samples_per_block}"
            )
        if not (0 <= self.expand_limit_per_block <= BLOCK_SIZE):
            raise ConfigError(
                f"expand_limit_per_block must be in [0, {BLOCK_SIZE}], "
                f"got {self.expand_limit_per_block}"
            )
        if self.remote_timeout_ms <= 0:
            raise ConfigError(
                f"remote_timeout_ms must be > 0, got {self.remote_timeout_ms}"
            )

        ok, err = validate_port(self.port)
        if not ok:
            raise ConfigError(err)
        ok, err = validate_host_header(self.host_header)
        if not ok:
            raise ConfigError(err)

    @property
    def http_check(self) -> bool:
        return bool(self.host_header)

    def replace(self, **changes: Any) -> "ScanConfig":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return ScanConfig(**values)

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        ranges: Optional[Sequence[str]] = None,
    ) -> "ScanConfig":
        """
        Build from a plain mapping (YAML `scan:` section, JSON body).

        `timing` selects a preset whose concurrency and timeout apply unless
        the mapping sets them explicitly. `ranges`, when given, replaces the
        mapping's own list.
        """
        values: Dict[str, Any] = dict(data or {})
        known = {f.name for f in fields(cls)}

        timing = values.pop("timing", None)
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")

        if timing:
            try:
                profile = get_timing(str(timing))
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
            values.setdefault("concurrency", profile.concurrency)
            values.setdefault("timeout_ms", profile.timeout_ms)

        if ranges is not None:
            values["ranges"] = ranges
        if isinstance(values.get("ranges"), str):
            raise ConfigError("ranges must be a list of CIDR strings, not a single string")
        values["ranges"] = tuple(values.get("ranges") or ())

        for key in ("concurrency", "timeout_ms", "samples_per_block",
                    "expand_limit_per_block", "port", "remote_timeout_ms"):
            if key in values:
                try:
                    values[key] = int(values[key])
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"{key} must be an integer, got {values[key]!r}") from exc

        return cls(**values)


def load_config_file(path: str | Path) -> dict:
    """Read a YAML config file. A missing file yields an empty config."""
    p = Path(path)
    if not p.exists():
        return {}
    try:
        data = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse config file {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping")
    return data
