#!/usr/bin/env python3
"""
SmartScan v1.0 — Sample-then-expand IPv4 reachability scanner
main.py — CLI entry point

Usage:
  python3 main.py 151.101.0.0/16
  python3 main.py --file cidrs.txt --concurrency 400 --timeout 1200 --samples-per-block 3
  python3 main.py 151.101.0.0/16 --host example.com --timing aggressive
  python3 main.py                       # remote range list, cidrs.txt fallback
  python3 main.py --dashboard --dash-host 127.0.0.1 --dash-port 5000
  python3 main.py --recheck --output results   # HTTP re-test of results/valid.txt

Output (in --output, default .):
  valid.txt     addresses sorted by ping ascending
  valid.csv     ip,ping_ms
  summary.json  block counts and entries
  reachable.txt addresses from --recheck that still answer HTTP
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

# Try uvloop for 2-4× speed on Linux/macOS
try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass

from core.cidr import InvalidRangeFormat
from core.config import ConfigError, ScanConfig, load_config_file
from core.events import LoggingObserver, ScanObserver
from core.executor import CancelFlag
from core.probes import Prober, SystemProber
from core.recheck import RecheckError, load_address_list, recheck_addresses
from core.scanner_engine import ScanEngine, ScanSetupError
from core.sources import RangeSourceError, load_range_file
from reporting.report_generator import TEXT_NAME, ReportGenerator
from utils.constants import DEFAULT_PORT, RECHECK_CONCURRENCY, RECHECK_TIMEOUT_MS
from utils.logger import get_logger, set_level
from utils.validators import validate_host_header

log = get_logger("smartscan")

BANNER = r"""
  ╔════════════════════════════════════════════╗
  ║  SmartScan v1.0                            ║
  ║  sample /24 → expand hot → validate        ║
  ╚════════════════════════════════════════════╝"""

EXIT_OK, EXIT_FATAL, EXIT_ABORTED = 0, 1, 130


# ─── Configuration ───────────────────────────────────────────────────────────

_CLI_TO_CONFIG = {
    "concurrency":       "concurrency",
    "timeout":           "timeout_ms",
    "samples_per_block": "samples_per_block",
    "expand_limit":      "expand_limit_per_block",
    "host":              "host_header",
    "port":              "port",
    "fallback":          "fallback_source",
    "timing":            "timing",
}


def build_config(args: argparse.Namespace, file_cfg: dict) -> ScanConfig:
    """Config file `scan:` section, overridden by any CLI flag given."""
    values = dict(file_cfg.get("scan") or {})
    for attr, key in _CLI_TO_CONFIG.items():
        val = getattr(args, attr, None)
        if val is not None:
            values[key] = val

    ranges = None
    if args.file:
        ranges = load_range_file(args.file)
    elif args.ranges:
        ranges = args.ranges
    return ScanConfig.from_mapping(values, ranges=ranges)


# ─── Core scan runner ─────────────────────────────────────────────────────────

async def run_scan(
    config: ScanConfig,
    output_dir: str | Path,
    quiet: bool = False,
    engine: Optional[ScanEngine] = None,
) -> int:
    """Execute scan, write artifacts, return an exit code."""
    if engine is None:
        observer = ScanObserver() if quiet else LoggingObserver()
        engine = ScanEngine(observer=observer)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _abort, engine)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False   # Windows / non-main thread

    try:
        report = await engine.run(config)
    except InvalidRangeFormat as exc:
        log.error(f"Fatal error during range parsing: {exc}")
        return EXIT_FATAL
    except RangeSourceError as exc:
        log.error(f"Fatal error during range acquisition: {exc}")
        return EXIT_FATAL
    except ScanSetupError as exc:
        log.error(f"Fatal error during scan setup: {exc}")
        return EXIT_FATAL
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    paths = ReportGenerator(output_dir).write(report.to_dict())

    # ── Output ────────────────────────────────────────────────────────────────
    print(f"\n{'═'*60}")
    print(f"  SCAN {'ABORTED (partial results)' if report.aborted else 'COMPLETE'}")
    print(f"{'─'*60}")
    print(f"  Hot /24 blocks : {report.hot_blocks} / {report.total_blocks}")
    print(f"  Valid IPs      : {report.valid_count}")
    print(f"  Task errors    : {report.errors}")
    print(f"  Duration       : {report.elapsed_s:.2f}s")
    print(f"  Saved          : {paths['txt']}, {paths['csv']}")
    print(f"{'═'*60}\n")

    return EXIT_ABORTED if report.aborted else EXIT_OK


def _abort(engine: ScanEngine) -> None:
    if not engine.cancel.is_set():
        log.warning("[!] Interrupted — finishing in-flight probes, then saving partial results")
    engine.abort()


# ─── Recheck runner ───────────────────────────────────────────────────────────

async def run_recheck(
    input_path: str | Path,
    output_dir: str | Path,
    prober: Optional[Prober] = None,
    concurrency: Optional[int] = None,
    timeout_ms: Optional[int] = None,
    host_header: str = "",
    port: Optional[int] = None,
) -> int:
    """Re-test a saved address list over HTTP, write reachable.txt, return an exit code."""
    try:
        addresses = load_address_list(input_path)
    except RecheckError as exc:
        log.error(f"Fatal error during recheck: {exc}")
        return EXIT_FATAL

    cancel = CancelFlag()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    log.info(f"Rechecking {len(addresses)} addresses from {input_path}")
    try:
        report = await recheck_addresses(
            addresses,
            prober=prober or SystemProber(port=port or DEFAULT_PORT),
            concurrency=concurrency or RECHECK_CONCURRENCY,
            timeout_ms=timeout_ms or RECHECK_TIMEOUT_MS,
            host_header=host_header,
            cancel=cancel,
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    path = ReportGenerator(output_dir).write_reachable(report.render_text())
    log.info(f"Reachable IPs saved to {path} ({len(report.reachable)}/{report.checked})")
    return EXIT_ABORTED if report.aborted else EXIT_OK


# ─── CLI ─────────────────────────────────────────────────────────────────────

def build_cli() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="smartscan",
        description="SmartScan v1.0 — sample-then-expand IPv4 reachability scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Timing:       polite t2   normal t3   aggressive t4   insane t5

Examples:
  %(prog)s 151.101.0.0/16
  %(prog)s --file cidrs.txt --concurrency 400 --timeout 1200
  %(prog)s 151.101.0.0/16 --host example.com --samples-per-block 5
  %(prog)s --recheck --output results
  %(prog)s --dashboard
""",
    )
    g = ap.add_argument_group
    s = g("Scan")
    s.add_argument("ranges",       nargs="*", metavar="CIDR", help="IPv4 ranges, e.g. 10.0.0.0/16")
    s.add_argument("--file",       metavar="FILE",    help="Read ranges from FILE (one CIDR per line)")
    s.add_argument("--host",       metavar="HOST",    help="Host header for HTTP HEAD verification")
    s.add_argument("--timeout",    metavar="MS",      type=int, help="Per-probe timeout in ms")
    s.add_argument("--concurrency", metavar="N",      type=int, help="Max in-flight probes")
    s.add_argument("--samples-per-block", metavar="K", type=int, help="Stage A samples per /24")
    s.add_argument("--expand-limit", metavar="N",     type=int, help="Stage B addresses per hot /24 (max 256)")
    s.add_argument("--port",       metavar="PORT",    type=int, help="TCP port (default 80)")
    s.add_argument("--timing",     metavar="PROFILE",
                   choices=["polite", "normal", "aggressive", "insane",
                            "t2", "t3", "t4", "t5"])
    s.add_argument("--fallback",   metavar="FILE",    help="Range file used if the remote list fails")

    o = g("Output")
    o.add_argument("--output",     metavar="DIR",     help="Directory for valid.txt / valid.csv")
    o.add_argument("--recheck",    nargs="?", const="", metavar="FILE",
                   help="Re-test FILE (default: valid.txt in --output) over HTTP and "
                        "write reachable.txt instead of scanning")

    d = g("Dashboard")
    d.add_argument("--dashboard",  action="store_true", help="Start the control API")
    d.add_argument("--dash-host",  default="127.0.0.1")
    d.add_argument("--dash-port",  type=int, default=5000, metavar="PORT")

    ap.add_argument("--config",    default="config.yaml", metavar="FILE")
    ap.add_argument("--quiet",     action="store_true", help="Suppress progress output")
    ap.add_argument("--verbose",   action="store_true", help="Debug logging")
    ap.add_argument("--no-logo",   action="store_true", help="Hide ASCII banner")
    ap.add_argument("--version",   action="version",   version="SmartScan 1.0")
    return ap


def main(argv: Optional[list] = None) -> None:
    ap   = build_cli()
    args = ap.parse_args(argv)

    if args.verbose:
        set_level(logging.DEBUG)
    if not args.no_logo and not args.quiet:
        print(BANNER)

    try:
        cfg = load_config_file(args.config)

        if args.dashboard:
            dash_cfg = {
                **cfg.get("dashboard", {}),
                "scan": cfg.get("scan", {}),
                "host": args.dash_host,
                "port": args.dash_port,
            }
            from dashboard.app import run_dashboard
            run_dashboard(dash_cfg)
            return

        if args.recheck is None:
            config = build_config(args, cfg)
        else:
            ok, err = validate_host_header((args.host or "").strip())
            if not ok:
                raise ConfigError(err)
            for flag in ("concurrency", "timeout"):
                val = getattr(args, flag)
                if val is not None and val < 1:
                    raise ConfigError(f"--{flag} must be >= 1, got {val}")
    except (ConfigError, RangeSourceError) as exc:
        log.error(f"Fatal error during configuration: {exc}")
        sys.exit(EXIT_FATAL)

    output_dir = args.output or cfg.get("output_dir") or "."
    if args.recheck is None:
        job = run_scan(config, output_dir, quiet=args.quiet)
    else:
        job = run_recheck(
            args.recheck or Path(output_dir) / TEXT_NAME,
            output_dir,
            concurrency=args.concurrency,
            timeout_ms=args.timeout,
            host_header=(args.host or "").strip(),
            port=args.port,
        )
    try:
        code = asyncio.run(job)
    except KeyboardInterrupt:
        print("\n  [!] Interrupted by user")
        code = EXIT_ABORTED
    sys.exit(code)


if __name__ == "__main__":
    main()
