"""
Subprocess execution utilities.

Provides:
- run_captured_streaming: Execute a subprocess, capture stdout/stderr in full and
  stream output lines via callbacks.
- format_command: Format argv for logs.
"""

from __future__ import annotations

import os
import subprocess
import threading
from collections.abc import Callable, Iterable, Sequence
from contextlib import suppress
from dataclasses import dataclass

_DEFAULT_CHUNK_SIZE = 16 * 1024

LineCallback = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class RunResult:
    """Result of a subprocess execution."""

    returncode: int
    stdout: str
    stderr: str


def quote_for_display(s: str) -> str:
    """Quote string for display (not shell-safe, for logs only)."""
    if not any(c.isspace() or c in {'"', "\\"} for c in s):
        return s
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_command(argv: Sequence[str | os.PathLike[str]]) -> str:
    """Format argv as readable one-liner."""
    return " ".join(quote_for_display(os.fspath(a)) for a in argv)


def run_captured_streaming(
    argv: Sequence[str | os.PathLike[str]],
    *,
    on_stdout_line: LineCallback | None = None,
    on_stderr_line: LineCallback | None = None,
) -> RunResult:
    """Execute subprocess while streaming output via callbacks.

    stdout/stderr are read concurrently, calling `on_stdout_line(line)` /
    `on_stderr_line(line)` for each parsed line-like chunk (splits on `\\n`
    and `\\r`). Output is still fully captured and returned in the
    `RunResult`; the call returns only after the process has exited.

    Raises
    ------
    OSError
        If the executable cannot be spawned (e.g. not installed).
    """
    if not argv:
        raise ValueError("argv must be non-empty")

    proc = subprocess.Popen(
        [os.fspath(a) for a in argv],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        bufsize=0,
    )

    out_chunks: list[str] = []
    err_chunks: list[str] = []

    def _iter_lines_from_bytes(chunks: Iterable[bytes]) -> Iterable[str]:
        # Split on both \n and \r so tools that redraw a single line still show updates.
        buf = ""
        for b in chunks:
            buf += b.decode("utf-8", errors="replace")
            while True:
                idxs = [i for i in (buf.find("\n"), buf.find("\r")) if i != -1]
                if not idxs:
                    break
                i = min(idxs)
                line = buf[:i]
                buf = buf[i + 1 :]
                if line:
                    yield line
        if buf:
            yield buf

    def _reader(pipe, *, sink: list[str], cb: LineCallback | None) -> None:
        if pipe is None:
            return
        try:

            def chunk_iter() -> Iterable[bytes]:
                while True:
                    b = pipe.read(_DEFAULT_CHUNK_SIZE)
                    if not b:
                        break
                    yield b

            for line in _iter_lines_from_bytes(chunk_iter()):
                sink.append(line + "\n")
                if cb is not None:
                    with suppress(Exception):
                        cb(line)
        finally:
            with suppress(Exception):
                pipe.close()

    t_out = threading.Thread(
        target=_reader,
        args=(proc.stdout,),
        kwargs={"sink": out_chunks, "cb": on_stdout_line},
        name="exec-stdout",
        daemon=True,
    )
    t_err = threading.Thread(
        target=_reader,
        args=(proc.stderr,),
        kwargs={"sink": err_chunks, "cb": on_stderr_line},
        name="exec-stderr",
        daemon=True,
    )
    t_out.start()
    t_err.start()

    returncode = proc.wait()
    # Readers hit EOF once the child exits; join fully so no output is lost.
    t_out.join()
    t_err.join()

    return RunResult(
        returncode=int(returncode or 0),
        stdout="".join(out_chunks),
        stderr="".join(err_chunks),
    )
