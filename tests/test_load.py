from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path

import pytest

from routing_bench.errors import ProcessError
from routing_bench.load import run_load, wrk_argv

pytestmark = pytest.mark.skipif(os.name == "nt", reason="fake wrk is a shebang script")

FakeWrk = Callable[..., tuple[Path, Path]]

_FIXTURES = Path(__file__).parent / "fixtures"


def test_wrk_argv() -> None:
    assert wrk_argv("http://127.0.0.1:3000/health", 80, 4, 10) == [
        "wrk",
        "-c",
        "80",
        "-t",
        "4",
        "-d",
        "10s",
        "http://127.0.0.1:3000/health",
    ]


@pytest.mark.parametrize(("c", "t", "d"), [(0, 1, 1), (1, 0, 1), (1, 1, 0)])
def test_wrk_argv_rejects_non_positive(c: int, t: int, d: int) -> None:
    with pytest.raises(ValueError):
        wrk_argv("http://x", c, t, d)


def test_run_load_parses_stdout_and_passes_arguments(fake_wrk: FakeWrk) -> None:
    report = (_FIXTURES / "wrk_ok_stdout.txt").read_text(encoding="utf-8")
    wrk, argv_file = fake_wrk(stdout=report)

    seen: list[str] = []
    m = run_load("http://127.0.0.1:3000/health", 10, 2, 2, wrk=wrk, on_stdout_line=seen.append)

    assert m.requests_per_sec == pytest.approx(32261.21)
    assert m.total_requests == 322612
    assert json.loads(argv_file.read_text(encoding="utf-8")) == [
        "-c",
        "10",
        "-t",
        "2",
        "-d",
        "2s",
        "http://127.0.0.1:3000/health",
    ]
    assert any(line.startswith("Requests/sec:") for line in seen)


def test_run_load_non_zero_exit_raises_with_stderr(fake_wrk: FakeWrk) -> None:
    wrk, _ = fake_wrk(stderr="unable to connect to 127.0.0.1:3000\n", code=1)

    with pytest.raises(ProcessError) as excinfo:
        run_load("http://127.0.0.1:3000/health", 10, 2, 2, wrk=wrk)

    msg = str(excinfo.value)
    assert "exited with code 1" in msg
    assert "unable to connect" in msg


def test_run_load_missing_binary_raises(tmp_path: Path) -> None:
    with pytest.raises(ProcessError, match="failed to spawn"):
        run_load("http://127.0.0.1:3000/health", 10, 2, 2, wrk=tmp_path / "missing-wrk")


def test_run_load_empty_report_degrades_to_zero(fake_wrk: FakeWrk) -> None:
    wrk, _ = fake_wrk(stdout="")
    m = run_load("http://127.0.0.1:3000/health", 1, 1, 1, wrk=wrk)
    assert m.requests_per_sec == 0.0
    assert m.total_requests == 0
