"""
Load driver: run wrk against one URL and parse its report.
"""

from __future__ import annotations

import os
from pathlib import Path

from .errors import ProcessError
from .exec import LineCallback, format_command, run_captured_streaming
from .parse import MetricsRecord, parse_report, tail_lines

DEFAULT_WRK = "wrk"


def wrk_argv(
    url: str,
    concurrency: int,
    threads: int,
    duration_s: int,
    *,
    wrk: str | os.PathLike[str] = DEFAULT_WRK,
) -> list[str]:
    """Build `wrk -c <n> -t <n> -d <n>s <url>`."""
    for name, value in (
        ("concurrency", concurrency),
        ("threads", threads),
        ("duration_s", duration_s),
    ):
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")

    return [
        os.fspath(wrk),
        "-c",
        str(concurrency),
        "-t",
        str(threads),
        "-d",
        f"{duration_s}s",
        url,
    ]


def run_load(
    url: str,
    concurrency: int,
    threads: int,
    duration_s: int,
    *,
    wrk: str | os.PathLike[str] = DEFAULT_WRK,
    on_stdout_line: LineCallback | None = None,
    on_stderr_line: LineCallback | None = None,
) -> MetricsRecord:
    """
    Run wrk and return the parsed report.

    Blocks until wrk exits. There is no timeout beyond wrk's own `-d`
    duration: if wrk hangs, this call hangs.

    Raises
    ------
    ProcessError
        If wrk cannot be spawned or exits with a non-zero status. The message
        includes the tail of wrk's stderr.
    """
    argv = wrk_argv(url, concurrency, threads, duration_s, wrk=wrk)

    try:
        res = run_captured_streaming(
            argv,
            on_stdout_line=on_stdout_line,
            on_stderr_line=on_stderr_line,
        )
    except OSError as e:
        raise ProcessError(f"failed to spawn {format_command(argv)}: {e}") from e

    if res.returncode != 0:
        stderr = tail_lines(res.stderr, 20).strip()
        raise ProcessError(
            f"{Path(argv[0]).name} exited with code {res.returncode}"
            + (f": {stderr}" if stderr else "")
        )

    return parse_report(res.stdout)
