from __future__ import annotations

import os
import shutil
from pathlib import Path

from .errors import BenchmarkError


class ToolDetectionError(BenchmarkError):
    """Raised when the wrk load tool cannot be found."""


def detect_wrk(explicit: Path | None = None) -> Path:
    """Locate the wrk executable.

    Parameters
    ----------
    explicit:
        Path given via `--wrk` / `ROUTING_BENCH_WRK`; takes precedence over PATH.

    Returns
    -------
    Path

    Raises
    ------
    ToolDetectionError
        If wrk is not installed (checked once, before any variant runs).
    """
    if explicit is not None:
        p = explicit.expanduser().resolve()
        if not p.is_file() or not os.access(p, os.X_OK):
            raise ToolDetectionError(f"wrk is not an executable file: {p}")
        return p

    found = _which(_exe_name("wrk"))
    if found is None:
        raise ToolDetectionError(
            "Missing required command: wrk (not found on PATH). "
            "Install wrk: https://github.com/wg/wrk"
        )
    return found


def _exe_name(base: str) -> str:
    """Return platform-specific executable name."""
    if os.name == "nt" and not base.lower().endswith(".exe"):
        return f"{base}.exe"
    return base


def _which(cmd: str) -> Path | None:
    """Find an executable on PATH."""
    found = shutil.which(cmd)
    if not found:
        return None
    return Path(found)
