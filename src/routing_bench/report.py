from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from .parse import MetricsRecord


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    """Outcome of one variant: either metrics or an error message, never both."""

    name: str
    metrics: MetricsRecord | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.metrics is None) == (self.error is None):
            raise ValueError(
                f"BenchmarkResult {self.name!r} needs exactly one of metrics/error"
            )

    @property
    def ok(self) -> bool:
        return self.metrics is not None


@dataclass(frozen=True, slots=True)
class RankedEntry:
    """
    One successful result in throughput order.

    Deltas are relative to the fastest entry and are None for that entry itself.
    """

    rank: int
    name: str
    metrics: MetricsRecord
    slowdown: float | None = None
    rps_deficit: float | None = None
    latency_overhead_ms: float | None = None


@dataclass(frozen=True, slots=True)
class Report:
    ranked: tuple[RankedEntry, ...]
    failed: tuple[BenchmarkResult, ...]

    @property
    def baseline(self) -> RankedEntry | None:
        return self.ranked[0] if self.ranked else None


def summarize(results: Sequence[BenchmarkResult]) -> Report:
    """
    Rank successful results by requests/sec, fastest first.

    Ties keep registration order (stable sort). `results` itself is not modified.
    """
    ok = [r for r in results if r.metrics is not None]
    ordered = sorted(ok, key=lambda r: r.metrics.requests_per_sec, reverse=True)  # type: ignore[union-attr]

    ranked: list[RankedEntry] = []
    for i, r in enumerate(ordered):
        assert r.metrics is not None
        if i == 0:
            ranked.append(RankedEntry(rank=1, name=r.name, metrics=r.metrics))
            continue

        base = ordered[0].metrics
        assert base is not None
        rps = r.metrics.requests_per_sec
        ranked.append(
            RankedEntry(
                rank=i + 1,
                name=r.name,
                metrics=r.metrics,
                slowdown=base.requests_per_sec / rps if rps > 0 else float("inf"),
                rps_deficit=base.requests_per_sec - rps,
                latency_overhead_ms=r.metrics.latency_avg_ms - base.latency_avg_ms,
            )
        )

    return Report(
        ranked=tuple(ranked),
        failed=tuple(r for r in results if r.error is not None),
    )


def _fmt_int(v: float) -> str:
    return f"{round(v):,}"


def format_variant_lines(result: BenchmarkResult) -> list[str]:
    """Per-variant block logged as soon as a variant finishes."""
    if result.metrics is None:
        return [f"FAIL {result.name}", f"  {result.error}"]

    m = result.metrics
    return [
        f"OK {result.name}",
        f"  Req/sec: {m.requests_per_sec:,.2f}",
        f"  Latency: {m.latency_avg_ms:.2f}ms (avg), {m.latency_max_ms:.2f}ms (max)",
        f"  Total: {m.total_requests:,} requests",
    ]


def render_report(report: Report, *, duration_s: int) -> list[str]:
    """Ranked listing, fastest to slowest. Presentation only."""
    lines: list[str] = ["Ranking by requests/sec (fastest to slowest):", ""]

    for e in report.ranked:
        m = e.metrics
        lines.append(f"{e.rank}. {e.name}")
        lines.append(f"   {_fmt_int(m.requests_per_sec)} req/sec")
        lines.append(
            f"   {m.latency_avg_ms:.2f}ms avg latency ({m.latency_max_ms:.2f}ms max, "
            f"{m.latency_stdev_ms:.2f}ms stdev)"
        )
        lines.append(f"   {m.total_requests:,} total requests in {duration_s}s")
        if e.slowdown is not None:
            lines.append(f"   {e.slowdown:.2f}x slower than fastest")
            lines.append(f"   -{_fmt_int(e.rps_deficit or 0.0)} req/sec vs fastest")
            lines.append(f"   {e.latency_overhead_ms or 0.0:+.2f}ms routing overhead")
        lines.append("")

    if report.failed:
        lines.append("Failed variants:")
        for r in report.failed:
            lines.append(f"- {r.name}: {r.error}")

    return lines


def report_to_dict(report: Report) -> dict[str, object]:
    return {
        "ranked": [
            {
                "rank": e.rank,
                "name": e.name,
                "metrics": asdict(e.metrics),
                "slowdown": _json_float(e.slowdown),
                "rps_deficit": e.rps_deficit,
                "latency_overhead_ms": e.latency_overhead_ms,
            }
            for e in report.ranked
        ],
        "failed": [{"name": r.name, "error": r.error} for r in report.failed],
    }


def _json_float(v: float | None) -> float | str | None:
    # JSON has no Infinity; keep the value readable instead of emitting invalid JSON.
    if v is not None and v == float("inf"):
        return "inf"
    return v


def write_json(report: Report, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report_to_dict(report), indent=2) + "\n", encoding="utf-8")


__all__ = [
    "BenchmarkResult",
    "RankedEntry",
    "Report",
    "format_variant_lines",
    "render_report",
    "report_to_dict",
    "summarize",
    "write_json",
]
