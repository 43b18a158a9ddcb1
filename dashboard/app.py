"""
dashboard/app.py
Flask control API for driving a scan from another process (browser UI,
scripts). Stands in for the desktop front-end's message channel.

  POST /api/scan              start a scan (JSON body = scan config mapping)
  GET  /api/scan              state, per-stage progress, found entries, logs
  POST /api/scan/abort        raise the abort flag
  GET  /api/scan/result.txt   sorted address list
  GET  /api/scan/result.csv   ip,ping_ms table
  GET  /api/ranges/remote     remote range list passthrough
  GET  /health

One scan at a time. The scan runs with asyncio.run() on a worker thread;
ScanSession collects its notifications under a lock for polling.

Security properties:
  - debug=False enforced programmatically (cannot be overridden by env)
  - Stacktraces never exposed to client

Layering: dashboard -> core, reporting, utils
"""

from __future__ import annotations

import asyncio
import secrets
import threading
from collections import deque
from typing import Callable, Dict, List, Optional

from flask import Flask, Response, abort, jsonify, request

from core.cidr import InvalidRangeFormat
from core.config import ConfigError, ScanConfig
from core.events import LoggingObserver, MultiObserver, ScanObserver
from core.executor import CancelFlag
from core.results import ValidEntry
from core.scanner_engine import ScanEngine, ScanSetupError
from core.sources import RangeSourceError, RemoteRangeSource
from utils.constants import REMOTE_RANGES_URL, REMOTE_TIMEOUT_MS, ScanState, Stage
from utils.logger import get_logger

log = get_logger("smartscan.dashboard")

EngineFactory = Callable[[ScanObserver, CancelFlag], ScanEngine]

_LOG_TAIL = 200


# -- Session state --------------------------------------------------------------

class ScanSession(ScanObserver):
    """Thread-safe record of one scan's notifications."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.status = ScanState.IDLE.value
        self.error: Optional[str] = None
        self.report: Optional[dict] = None
        self._stages: Dict[str, dict] = {}
        self._valid: List[dict] = []
        self._logs: deque = deque(maxlen=_LOG_TAIL)

    # observer contract
    def on_stage(self, stage, label, total):
        with self._lock:
            self.status = (ScanState.STAGE_A if stage == Stage.A
                           else ScanState.STAGE_B).value
            self._stages[stage.value] = {"label": label, "done": 0, "total": total}

    def on_progress(self, stage, done, total):
        with self._lock:
            entry = self._stages.setdefault(
                stage.value, {"label": stage.label, "done": 0, "total": total}
            )
            entry["done"] = max(entry["done"], done)
            entry["total"] = total

    def on_valid(self, entry: ValidEntry):
        with self._lock:
            self._valid.append({"ip": entry.address, "ms": entry.latency_ms})

    def on_log(self, message):
        with self._lock:
            self._logs.append(message)

    # lifecycle
    def start(self) -> None:
        with self._lock:
            self.status = ScanState.RESOLVING.value
            self.error = None
            self.report = None
            self._stages.clear()
            self._valid.clear()
            self._logs.clear()

    def finish(self, report: dict) -> None:
        with self._lock:
            self.report = report
            self.status = report["state"]

    def fail(self, message: str) -> None:
        with self._lock:
            self.error = message
            self.status = ScanState.FAILED.value
            self._logs.append(message)

    def snapshot(self) -> dict:
        with self._lock:
            stages = {}
            for sid, s in self._stages.items():
                pct = (s["done"] * 100 // s["total"]) if s["total"] else 100
                stages[sid] = dict(s, percent=min(pct, 100))
            return {
                "status": self.status,
                "error":  self.error,
                "stages": stages,
                "valid":  list(self._valid),
                "logs":   list(self._logs),
                "summary": None if self.report is None else {
                    k: self.report[k]
                    for k in ("hot_blocks", "total_blocks", "valid_count",
                              "errors", "elapsed_s")
                },
            }


def _default_engine(observer: ScanObserver, cancel: CancelFlag) -> ScanEngine:
    return ScanEngine(
        observer=MultiObserver([observer, LoggingObserver(show_valid=False)]),
        cancel=cancel,
    )


class ScanController:
    """Owns the worker thread and abort flag of the current scan."""

    def __init__(self, engine_factory: Optional[EngineFactory] = None):
        self._factory = engine_factory or _default_engine
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._cancel = CancelFlag()
        self.session = ScanSession()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, config: ScanConfig) -> bool:
        with self._lock:
            if self.running:
                return False
            self._cancel = CancelFlag()
            self.session.start()
            engine = self._factory(self.session, self._cancel)
            self._thread = threading.Thread(
                target=self._run, args=(engine, config),
                name="smartscan-worker", daemon=True,
            )
            self._thread.start()
            return True

    def abort(self) -> bool:
        if not self.running:
            return False
        self._cancel.set()
        self.session.on_log("Abort requested.")
        return True

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, engine: ScanEngine, config: ScanConfig) -> None:
        try:
            report = asyncio.run(engine.run(config))
        except InvalidRangeFormat as exc:
            self.session.fail(f"Fatal error during range parsing: {exc}")
        except RangeSourceError as exc:
            self.session.fail(f"Fatal error during range acquisition: {exc}")
        except ScanSetupError as exc:
            self.session.fail(f"Fatal error during scan setup: {exc}")
        except Exception:
            log.exception("Scan worker crashed")
            self.session.fail("Fatal error during scan: internal error")
        else:
            self.session.finish(report.to_dict())


# -- Factory ------------------------------------------------------------------

def create_app(cfg: Optional[dict] = None,
               engine_factory: Optional[EngineFactory] = None) -> Flask:
    """
    Application factory.

    cfg keys:
      secret_key        str  -- generated when absent
      scan              dict -- defaults merged under every POST /api/scan body
      remote_url        str
      remote_timeout_ms int
    """
    cfg = cfg or {}
    app = Flask(__name__)

    app.config["SECRET_KEY"]           = cfg.get("secret_key") or secrets.token_hex(32)
    app.config["DEBUG"]                = False   # HARD -- no env override
    app.config["PROPAGATE_EXCEPTIONS"] = False
    app.config["TRAP_HTTP_EXCEPTIONS"] = False

    controller = ScanController(engine_factory)
    app.extensions["smartscan"] = controller

    scan_defaults = dict(cfg.get("scan") or {})
    remote = RemoteRangeSource(
        cfg.get("remote_url", REMOTE_RANGES_URL),
        cfg.get("remote_timeout_ms", REMOTE_TIMEOUT_MS),
    )

    # Error handlers (no stacktrace leakage)
    @app.errorhandler(400)
    def _e400(e):
        return jsonify({"error": "bad request"}), 400

    @app.errorhandler(404)
    def _e404(e):
        return jsonify({"error": "not found"}), 404

    @app.errorhandler(405)
    def _e405(e):
        return jsonify({"error": "method not allowed"}), 405

    @app.errorhandler(500)
    def _e500(e):
        app.logger.exception("Internal server error")
        return jsonify({"error": "internal server error"}), 500

    # Routes
    @app.route("/api/scan", methods=["POST"])
    def api_scan_start():
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        try:
            config = ScanConfig.from_mapping({**scan_defaults, **body})
        except (ConfigError, TypeError) as exc:
            return jsonify({"error": str(exc)}), 400
        if not controller.start(config):
            return jsonify({"error": "a scan is already running"}), 409
        return jsonify({"started": True}), 202

    @app.route("/api/scan")
    def api_scan_status():
        return jsonify(controller.session.snapshot())

    @app.route("/api/scan/abort", methods=["POST"])
    def api_scan_abort():
        return jsonify({"aborting": controller.abort()})

    @app.route("/api/scan/result.txt")
    def api_result_txt():
        report = controller.session.report
        if report is None:
            abort(404)
        return Response(report["txt"], mimetype="text/plain")

    @app.route("/api/scan/result.csv")
    def api_result_csv():
        report = controller.session.report
        if report is None:
            abort(404)
        return Response(
            report["csv"], mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=valid.csv"},
        )

    @app.route("/api/ranges/remote")
    def api_remote_ranges():
        try:
            ranges = remote.fetch_sync()
        except RangeSourceError as exc:
            return jsonify({"error": str(exc)}), 502
        return jsonify({"ranges": ranges, "count": len(ranges)})

    @app.route("/health")
    def health():
        return jsonify({
            "status":   "ok",
            "scanning": controller.running,
        })

    return app


# -- Server runner ------------------------------------------------------------

def run_dashboard(cfg: dict) -> None:
    app = create_app(cfg)
    host = cfg.get("host", "127.0.0.1")
    port = cfg.get("port", 5000)
    log.info(f"[*] Control API at http://{host}:{port}")
    app.run(host=host, port=port, debug=False, use_reloader=False)
