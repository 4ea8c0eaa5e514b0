"""
wrk report parsing.

The report is read line by line; each recognized line type is handled by an
independent rule so extra, missing or reordered lines (different wrk builds)
do not break parsing. Fields that never show up stay at zero.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

_THROUGHPUT_LABEL: Final[str] = "Requests/sec:"
_LATENCY_MARKER: Final[str] = "Latency"
_COMPLETION_MARKER: Final[str] = "requests in"

_DURATION_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"^(\d+(?:\.\d+)?)(us|µs|ms|s)$")
_TOTAL_REQUESTS_RE: Final[re.Pattern[str]] = re.compile(r"(\d+)\s+requests")

_MS_PER_UNIT: Final[dict[str, float]] = {
    "us": 1.0 / 1000.0,
    "µs": 1.0 / 1000.0,
    "ms": 1.0,
    "s": 1000.0,
}


@dataclass(frozen=True, slots=True)
class MetricsRecord:
    """Result of one measured wrk run. Latencies are in milliseconds."""

    requests_per_sec: float = 0.0
    latency_avg_ms: float = 0.0
    latency_stdev_ms: float = 0.0
    latency_max_ms: float = 0.0
    total_requests: int = 0


PartialFields = dict[str, float | int]
LineRule = Callable[[str], "PartialFields | None"]


def parse_report(text: str) -> MetricsRecord:
    """
    Parse a wrk stdout report into a MetricsRecord.

    Recognized lines:
        Latency     2.46ms    1.23ms  26.14ms   89.21%
        164521 requests in 5.10s, 32.70MB read
        Requests/sec:  32261.21

    Never raises: unknown lines are ignored and missing fields default to 0.
    A zero field is therefore not a reliable failure signal.
    """
    fields: PartialFields = {}
    for raw in text.splitlines():
        for rule in _RULES:
            partial = rule(raw)
            if partial is not None:
                fields.update(partial)
    return MetricsRecord(**fields)


def throughput_rule(line: str) -> PartialFields | None:
    if _THROUGHPUT_LABEL not in line:
        return None
    rest = line.split(_THROUGHPUT_LABEL, 1)[1].strip()
    token = rest.split()[0] if rest else ""
    return {"requests_per_sec": _to_float(token)}


def latency_rule(line: str) -> PartialFields | None:
    tokens = line.split()
    if not tokens or tokens[0] != _LATENCY_MARKER:
        return None
    # `wrk --latency` adds a "Latency Distribution" header; it carries no summary.
    if tokens[1:2] == ["Distribution"]:
        return None
    avg, stdev, max_ = (tokens[1:4] + ["", "", ""])[:3]
    return {
        "latency_avg_ms": duration_to_ms(avg),
        "latency_stdev_ms": duration_to_ms(stdev),
        "latency_max_ms": duration_to_ms(max_),
    }


def completion_rule(line: str) -> PartialFields | None:
    if _COMPLETION_MARKER not in line:
        return None
    m = _TOTAL_REQUESTS_RE.search(line)
    if m is None:
        return None
    return {"total_requests": int(m.group(1))}


_RULES: Final[tuple[LineRule, ...]] = (throughput_rule, latency_rule, completion_rule)


def duration_to_ms(token: str) -> float:
    """
    Normalize a wrk duration token ("500us", "2.46ms", "1.5s") to milliseconds.

    Tokens without a recognized unit (including wrk's "1.00m") yield 0.0.
    """
    m = _DURATION_TOKEN_RE.match(token.strip())
    if m is None:
        return 0.0
    return float(m.group(1)) * _MS_PER_UNIT[m.group(2)]


def _to_float(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        return 0.0


def detect_wrk_errors(stdout: str) -> list[str]:
    """Detect correctness issues in wrk output.

    wrk often returns exit code 0 even when there were request failures.

    We report the following:
    - Non-2xx or 3xx responses > 0
    - Socket errors counts > 0
    """
    errors: list[str] = []

    for raw in stdout.splitlines():
        line = raw.strip()

        if line.startswith("Non-2xx or 3xx responses:"):
            rest = line.removeprefix("Non-2xx or 3xx responses:").strip()
            token = rest.split()[0] if rest else ""
            try:
                n = int(token)
            except ValueError:
                continue
            if n > 0:
                errors.append(f"wrk non-2xx/3xx responses: {n}")

        if line.startswith("Socket errors:"):
            # Example: Socket errors: connect 0, read 12, write 0, timeout 0
            errors.extend(_parse_wrk_socket_errors_line(line))

    return errors


def _parse_wrk_socket_errors_line(line: str) -> list[str]:
    out: list[str] = []
    rest = line.removeprefix("Socket errors:").strip()
    for part in rest.split(","):
        toks = part.split()
        if len(toks) != 2:
            continue
        kind, n_s = toks
        try:
            n = int(n_s)
        except ValueError:
            continue
        if n > 0:
            out.append(f"wrk socket {kind}: {n}")
    return out


def tail_lines(text: str, n: int) -> str:
    if n <= 0:
        return ""
    lines = text.splitlines()
    if len(lines) <= n:
        return text
    return "\n".join(lines[-n:])
