from __future__ import annotations

import sys
from pathlib import Path

import pytest

from routing_bench.exec import format_command, run_captured_streaming


def test_format_command_quotes_only_when_needed() -> None:
    assert format_command(["wrk", "-c", "10", "http://127.0.0.1:3000/health"]) == (
        "wrk -c 10 http://127.0.0.1:3000/health"
    )
    assert format_command(["/opt/my tools/wrk", 'a"b']) == '"/opt/my tools/wrk" "a\\"b"'


def test_run_captured_streaming_streams_and_captures_both_pipes() -> None:
    code = (
        "import sys\n"
        "sys.stdout.write('progress 1\\rprogress 2\\rdone\\n')\n"
        "sys.stdout.write('Requests/sec: 10.00\\n')\n"
        "sys.stderr.write('warn: slow\\n')\n"
        "sys.exit(3)\n"
    )
    out_lines: list[str] = []
    err_lines: list[str] = []

    res = run_captured_streaming(
        [sys.executable, "-c", code],
        on_stdout_line=out_lines.append,
        on_stderr_line=err_lines.append,
    )

    assert res.returncode == 3
    assert out_lines == ["progress 1", "progress 2", "done", "Requests/sec: 10.00"]
    assert err_lines == ["warn: slow"]
    assert res.stdout.splitlines() == out_lines
    assert res.stderr == "warn: slow\n"


def test_run_captured_streaming_callback_errors_do_not_lose_output() -> None:
    def broken(line: str) -> None:
        raise RuntimeError("ui went away")

    res = run_captured_streaming(
        [sys.executable, "-c", "print('a'); print('b')"],
        on_stdout_line=broken,
    )

    assert res.returncode == 0
    assert res.stdout == "a\nb\n"


def test_run_captured_streaming_rejects_empty_argv() -> None:
    with pytest.raises(ValueError):
        run_captured_streaming([])


def test_run_captured_streaming_missing_executable_raises_oserror(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        run_captured_streaming([str(tmp_path / "missing")])
