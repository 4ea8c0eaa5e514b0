from __future__ import annotations

import json
import math
from pathlib import Path

import pytest

from routing_bench.parse import MetricsRecord
from routing_bench.report import (
    BenchmarkResult,
    format_variant_lines,
    render_report,
    report_to_dict,
    summarize,
    write_json,
)


def _ok(name: str, rps: float, latency_ms: float = 1.0) -> BenchmarkResult:
    return BenchmarkResult(
        name=name,
        metrics=MetricsRecord(
            requests_per_sec=rps,
            latency_avg_ms=latency_ms,
            latency_stdev_ms=0.1,
            latency_max_ms=latency_ms * 10,
            total_requests=int(rps * 10),
        ),
    )


def test_benchmark_result_requires_exactly_one_outcome() -> None:
    with pytest.raises(ValueError):
        BenchmarkResult(name="x")
    with pytest.raises(ValueError):
        BenchmarkResult(name="x", metrics=MetricsRecord(), error="boom")
    assert not BenchmarkResult(name="x", error="boom").ok


def test_summarize_ranks_by_throughput() -> None:
    results = [_ok("A", 10.0, 3.0), _ok("B", 30.0, 1.0), _ok("C", 20.0, 1.5)]
    report = summarize(results)

    assert [e.name for e in report.ranked] == ["B", "C", "A"]
    assert [e.rank for e in report.ranked] == [1, 2, 3]
    assert report.baseline is report.ranked[0]
    assert report.baseline.slowdown is None
    assert report.baseline.rps_deficit is None

    c, a = report.ranked[1], report.ranked[2]
    assert c.slowdown == pytest.approx(1.5)
    assert a.slowdown == pytest.approx(3.0)
    assert a.rps_deficit == pytest.approx(20.0)
    assert a.latency_overhead_ms == pytest.approx(2.0)
    assert c.latency_overhead_ms == pytest.approx(0.5)


def test_summarize_does_not_mutate_input() -> None:
    results = [_ok("A", 10.0), _ok("B", 30.0)]
    snapshot = list(results)
    summarize(results)
    assert results == snapshot


def test_summarize_ties_keep_registration_order() -> None:
    report = summarize([_ok("A", 50.0), _ok("B", 50.0), _ok("C", 50.0)])
    assert [e.name for e in report.ranked] == ["A", "B", "C"]
    assert report.ranked[1].slowdown == pytest.approx(1.0)


def test_summarize_keeps_failures_separate() -> None:
    failed = BenchmarkResult(name="W", error="dependency missing")
    report = summarize([_ok("A", 10.0), failed, _ok("B", 20.0)])

    assert [e.name for e in report.ranked] == ["B", "A"]
    assert report.failed == (failed,)


def test_summarize_empty_and_all_failed() -> None:
    assert summarize([]).baseline is None
    report = summarize([BenchmarkResult(name="A", error="x")])
    assert report.ranked == ()
    assert len(report.failed) == 1


def test_zero_throughput_slowdown_is_infinite() -> None:
    report = summarize([_ok("A", 100.0), _ok("B", 0.0)])
    assert math.isinf(report.ranked[1].slowdown or 0.0)
    assert report_to_dict(report)["ranked"][1]["slowdown"] == "inf"  # type: ignore[index]


def test_format_variant_lines() -> None:
    assert format_variant_lines(_ok("Regex", 1234.5, 2.0)) == [
        "OK Regex",
        "  Req/sec: 1,234.50",
        "  Latency: 2.00ms (avg), 20.00ms (max)",
        "  Total: 12,345 requests",
    ]
    assert format_variant_lines(BenchmarkResult(name="W", error="boom")) == ["FAIL W", "  boom"]


def test_render_report() -> None:
    report = summarize(
        [_ok("Slow", 1000.0, 2.5), _ok("Fast", 4000.0, 1.0), BenchmarkResult(name="W", error="boom")]
    )
    lines = render_report(report, duration_s=10)

    assert lines[0] == "Ranking by requests/sec (fastest to slowest):"
    assert "1. Fast" in lines
    assert "   4,000 req/sec" in lines
    assert "   40,000 total requests in 10s" in lines
    assert "2. Slow" in lines
    assert "   4.00x slower than fastest" in lines
    assert "   -3,000 req/sec vs fastest" in lines
    assert "   +1.50ms routing overhead" in lines
    assert lines[-2:] == ["Failed variants:", "- W: boom"]
    # Only non-baseline entries get comparison lines.
    assert sum("slower than fastest" in line for line in lines) == 1


def test_write_json(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "report.json"
    write_json(summarize([_ok("A", 20.0), _ok("B", 10.0)]), out)

    data = json.loads(out.read_text(encoding="utf-8"))
    assert [e["name"] for e in data["ranked"]] == ["A", "B"]
    assert data["ranked"][0]["slowdown"] is None
    assert data["ranked"][1]["slowdown"] == pytest.approx(2.0)
    assert data["ranked"][1]["metrics"]["requests_per_sec"] == pytest.approx(10.0)
    assert data["failed"] == []
