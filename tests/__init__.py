"""SmartScan Test Suite

Test modules:
    test_cidr        — Unit tests for core/cidr.py (parsing, bounds, sampling)
    test_executor    — Unit tests for the bounded FIFO executor and abort flag
    test_probes      — TCP / HEAD / ping probes against local servers
    test_scanner     — Stage controller end-to-end with a canned prober
    test_sources     — Remote, file and fallback range sources; CLI runner
    test_recheck     — HTTP re-test of a saved address list; reachable.txt
    test_config      — ScanConfig, YAML loading, timing presets, validators
    test_reporting   — Result ordering, text/CSV rendering, artifact writer
    test_dashboard   — Control API via Flask's test client
    test_layering    — Static import analysis enforcing architectural
                        layering rules (utils / core / reporting / dashboard)

Shared test doubles live in tests/fakes.py.

Run all tests:
    pytest tests/ -v

Run standalone (no pytest):
    python3 tests/run_all.py
    python3 tests/run_all.py -v       # verbose
    python3 tests/run_all.py --fast   # skip local socket tests
"""
