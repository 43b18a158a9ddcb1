"""
tests/test_recheck.py
Unit tests for the HTTP re-test of a saved address list.
Run: pytest tests/test_recheck.py -v
"""

import sys
import os
import asyncio
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

import main
from core.executor import CancelFlag
from core.recheck import RecheckError, load_address_list, recheck_addresses
from tests.fakes import CannedProber


class _CountingProber(CannedProber):
    """Tracks overlapping HEAD requests."""

    async def http_head_ok(self, address, host_header, timeout_ms):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().http_head_ok(address, host_header, timeout_ms)
        finally:
            self.in_flight -= 1


class _BrokenProber(CannedProber):

    async def http_head_ok(self, address, host_header, timeout_ms):
        if address == "10.0.0.2":
            raise RuntimeError("socket exploded")
        return await super().http_head_ok(address, host_header, timeout_ms)


# ─── Address list ─────────────────────────────────────────────────────────────

class TestAddressList:

    def test_blank_lines_skipped(self, tmp_path):
        p = tmp_path / "valid.txt"
        p.write_text("10.0.0.4\n\n  10.0.0.10  \n")
        assert load_address_list(p) == ["10.0.0.4", "10.0.0.10"]

    def test_empty_file(self, tmp_path):
        p = tmp_path / "valid.txt"
        p.write_text("")
        assert load_address_list(p) == []

    def test_missing(self, tmp_path):
        with pytest.raises(RecheckError, match="Cannot read address list"):
            load_address_list(tmp_path / "absent.txt")


# ─── Recheck ──────────────────────────────────────────────────────────────────

class TestRecheckAddresses:

    @pytest.mark.asyncio
    async def test_keeps_input_order(self):
        prober = CannedProber(http_ok={"10.0.0.9", "10.0.0.1"})
        report = await recheck_addresses(
            ["10.0.0.9", "10.0.0.5", "10.0.0.1"], prober=prober
        )
        assert report.checked == 3
        assert report.reachable == ["10.0.0.9", "10.0.0.1"]
        assert report.render_text() == "10.0.0.9\n10.0.0.1"
        assert not report.aborted
        assert prober.tcp_calls == []
        assert prober.ping_calls == []

    @pytest.mark.asyncio
    async def test_host_header_forwarded(self):
        prober = CannedProber()
        await recheck_addresses(["10.0.0.1"], prober=prober, host_header="example.com")
        assert prober.http_calls == [("10.0.0.1", "example.com")]

    @pytest.mark.asyncio
    async def test_failure_counts_as_no_response(self):
        prober = _BrokenProber()
        report = await recheck_addresses(
            ["10.0.0.1", "10.0.0.2", "10.0.0.3"], prober=prober
        )
        assert report.reachable == ["10.0.0.1", "10.0.0.3"]
        assert report.errors == 1

    @pytest.mark.asyncio
    async def test_concurrency_capped(self):
        prober = _CountingProber()
        addresses = [f"10.0.0.{i}" for i in range(1, 13)]
        report = await recheck_addresses(addresses, prober=prober, concurrency=3)
        assert prober.max_in_flight <= 3
        assert report.reachable == addresses

    @pytest.mark.asyncio
    async def test_abort_refuses_queued(self):
        cancel = CancelFlag()
        cancel.set()
        prober = CannedProber()
        report = await recheck_addresses(
            ["10.0.0.1", "10.0.0.2"], prober=prober, cancel=cancel
        )
        assert report.aborted
        assert report.reachable == []
        assert prober.http_calls == []

    @pytest.mark.asyncio
    async def test_empty_list(self):
        report = await recheck_addresses([], prober=CannedProber())
        assert report.checked == 0
        assert report.render_text() == ""


# ─── CLI runner ───────────────────────────────────────────────────────────────

class TestRunRecheck:

    @pytest.mark.asyncio
    async def test_reachable_file_written(self, tmp_path):
        src = tmp_path / "valid.txt"
        src.write_text("10.0.0.4\n10.0.0.10\n10.0.0.7")
        out = tmp_path / "out"
        prober = CannedProber(http_ok={"10.0.0.10", "10.0.0.4"})
        code = await main.run_recheck(src, out, prober=prober)
        assert code == main.EXIT_OK
        assert (out / "reachable.txt").read_text() == "10.0.0.4\n10.0.0.10"

    @pytest.mark.asyncio
    async def test_nothing_reachable(self, tmp_path):
        src = tmp_path / "valid.txt"
        src.write_text("10.0.0.4\n")
        code = await main.run_recheck(src, tmp_path, prober=CannedProber(http_ok=()))
        assert code == main.EXIT_OK
        assert (tmp_path / "reachable.txt").read_text() == ""

    @pytest.mark.asyncio
    async def test_missing_list_is_fatal(self, tmp_path):
        code = await main.run_recheck(
            tmp_path / "valid.txt", tmp_path, prober=CannedProber()
        )
        assert code == main.EXIT_FATAL
        assert not (tmp_path / "reachable.txt").exists()

    def test_flag_parsing(self):
        cli = main.build_cli()
        assert cli.parse_args([]).recheck is None
        assert cli.parse_args(["--recheck"]).recheck == ""
        assert cli.parse_args(["--recheck", "old.txt"]).recheck == "old.txt"

    def test_bad_concurrency_exits(self, tmp_path):
        with pytest.raises(SystemExit) as info:
            main.main([
                "--recheck", "--concurrency", "0", "--no-logo",
                "--config", str(tmp_path / "absent.yaml"), "--output", str(tmp_path),
            ])
        assert info.value.code == main.EXIT_FATAL
        assert not (tmp_path / "reachable.txt").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
