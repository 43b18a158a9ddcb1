"""
tests/test_dashboard.py
Control API tests using Flask's test client and a canned-network engine.
Run: pytest tests/test_dashboard.py -v
"""

import sys
import os
import io
import urllib.error
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from core.results import ValidEntry
from core.scanner_engine import ScanEngine
from dashboard.app import ScanSession, create_app
from utils.constants import Stage
from tests.fakes import CannedProber


def _factory(**prober_kw):
    def make(observer, cancel):
        return ScanEngine(prober=CannedProber(**prober_kw), observer=observer, cancel=cancel)
    return make


@pytest.fixture
def make_client():
    def _make(**prober_kw):
        app = create_app({"secret_key": "test"}, engine_factory=_factory(**prober_kw))
        return app.test_client(), app.extensions["smartscan"]
    return _make


class TestScanSession:

    def test_snapshot_progress(self):
        s = ScanSession()
        s.start()
        s.on_stage(Stage.A, Stage.A.label, 4)
        s.on_progress(Stage.A, 1, 4)
        s.on_progress(Stage.A, 3, 4)
        s.on_valid(ValidEntry("10.0.0.1", 1.5))
        snap = s.snapshot()
        assert snap["status"] == "stage_a"
        assert snap["stages"]["A"] == {
            "label": "Stage A (sample)", "done": 3, "total": 4, "percent": 75,
        }
        assert snap["valid"] == [{"ip": "10.0.0.1", "ms": 1.5}]
        assert snap["summary"] is None

    def test_empty_stage_is_complete(self):
        s = ScanSession()
        s.on_stage(Stage.B, Stage.B.label, 0)
        assert s.snapshot()["stages"]["B"]["percent"] == 100

    def test_fail(self):
        s = ScanSession()
        s.fail("Fatal error during range parsing: Bad CIDR")
        snap = s.snapshot()
        assert snap["status"] == "failed"
        assert snap["error"].startswith("Fatal error")
        assert snap["logs"][-1] == snap["error"]


class TestScanApi:

    def test_full_scan(self, make_client):
        client, controller = make_client(
            open_ips={"10.0.0.10", "10.0.0.4"},
            latencies={"10.0.0.10": 3.0, "10.0.0.4": 1.0},
        )
        r = client.post("/api/scan", json={"ranges": ["10.0.0.0/24"], "concurrency": 4})
        assert r.status_code == 202
        controller.join(10)

        snap = client.get("/api/scan").get_json()
        assert snap["status"] == "done"
        assert snap["summary"]["hot_blocks"] == 1
        assert snap["summary"]["total_blocks"] == 1
        assert snap["summary"]["valid_count"] == 2
        assert snap["stages"]["A"]["percent"] == 100
        assert snap["stages"]["B"]["total"] == 256
        assert {v["ip"] for v in snap["valid"]} == {"10.0.0.10", "10.0.0.4"}

        txt = client.get("/api/scan/result.txt")
        assert txt.status_code == 200
        assert txt.get_data(as_text=True) == "10.0.0.4\n10.0.0.10"
        csv = client.get("/api/scan/result.csv")
        assert csv.mimetype == "text/csv"
        assert csv.get_data(as_text=True) == "ip,ping_ms\n10.0.0.4,1.000\n10.0.0.10,3.000"

    def test_results_404_before_scan(self, make_client):
        client, _ = make_client()
        r = client.get("/api/scan/result.csv")
        assert r.status_code == 404
        assert r.get_json() == {"error": "not found"}

    def test_bad_config_rejected(self, make_client):
        client, controller = make_client()
        r = client.post("/api/scan", json={"ranges": ["10.0.0.0/24"], "concurrency": 0})
        assert r.status_code == 400
        assert "concurrency" in r.get_json()["error"]
        assert not controller.running

    def test_single_string_ranges_rejected(self, make_client):
        client, controller = make_client()
        r = client.post("/api/scan", json={"ranges": "10.0.0.0/24"})
        assert r.status_code == 400
        assert "ranges" in r.get_json()["error"]
        assert not controller.running
        assert client.get("/api/scan").get_json()["status"] == "idle"

    def test_non_object_body(self, make_client):
        client, _ = make_client()
        assert client.post("/api/scan", json=["10.0.0.0/24"]).status_code == 400

    def test_invalid_range_reported(self, make_client):
        client, controller = make_client()
        assert client.post("/api/scan", json={"ranges": ["bogus"]}).status_code == 202
        controller.join(10)
        snap = client.get("/api/scan").get_json()
        assert snap["status"] == "failed"
        assert snap["error"].startswith("Fatal error during range parsing:")

    def test_one_scan_at_a_time_and_abort(self, make_client):
        client, controller = make_client(delay=0.05)
        body = {"ranges": ["10.0.0.0/22"], "concurrency": 1}
        assert client.post("/api/scan", json=body).status_code == 202
        assert client.post("/api/scan", json=body).status_code == 409

        r = client.post("/api/scan/abort")
        assert r.get_json() == {"aborting": True}
        controller.join(10)
        assert not controller.running

        snap = client.get("/api/scan").get_json()
        assert snap["status"] == "aborted"
        assert "Abort requested." in snap["logs"]
        assert snap["stages"]["A"]["done"] < 12
        assert "B" not in snap["stages"]

    def test_abort_when_idle(self, make_client):
        client, _ = make_client()
        assert client.post("/api/scan/abort").get_json() == {"aborting": False}


class TestMiscRoutes:

    def test_health(self, make_client):
        client, _ = make_client()
        assert client.get("/health").get_json() == {"status": "ok", "scanning": False}

    def test_unknown_route(self, make_client):
        client, _ = make_client()
        assert client.get("/nope").get_json() == {"error": "not found"}

    def test_method_not_allowed(self, make_client):
        client, _ = make_client()
        assert client.get("/api/scan/abort").status_code == 405

    def test_remote_ranges(self, make_client, monkeypatch):
        class _Resp(io.BytesIO):
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self.close()

        monkeypatch.setattr(
            "urllib.request.urlopen",
            lambda req, timeout: _Resp(b'{"addresses": ["10.0.0.0/8", "10.1.0.0/16"]}'),
        )
        client, _ = make_client()
        assert client.get("/api/ranges/remote").get_json() == {
            "ranges": ["10.0.0.0/8", "10.1.0.0/16"], "count": 2,
        }

    def test_remote_ranges_unavailable(self, make_client, monkeypatch):
        def down(req, timeout):
            raise urllib.error.URLError("offline")

        monkeypatch.setattr("urllib.request.urlopen", down)
        client, _ = make_client()
        r = client.get("/api/ranges/remote")
        assert r.status_code == 502
        assert "unreachable" in r.get_json()["error"]


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
