from __future__ import annotations

import os
from pathlib import Path

import pytest

from routing_bench.errors import BenchmarkError
from routing_bench.tool_detection import ToolDetectionError, detect_wrk

pytestmark = pytest.mark.skipif(os.name == "nt", reason="relies on POSIX executable bits")


def _script(path: Path, *, executable: bool) -> Path:
    path.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    path.chmod(0o755 if executable else 0o644)
    return path


def test_detect_wrk_prefers_explicit_path(tmp_path: Path) -> None:
    wrk = _script(tmp_path / "my-wrk", executable=True)
    assert detect_wrk(wrk) == wrk.resolve()


def test_detect_wrk_rejects_non_executable(tmp_path: Path) -> None:
    wrk = _script(tmp_path / "wrk", executable=False)
    with pytest.raises(ToolDetectionError, match="not an executable"):
        detect_wrk(wrk)


def test_detect_wrk_searches_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    wrk = _script(tmp_path / "wrk", executable=True)
    monkeypatch.setenv("PATH", str(tmp_path))
    assert detect_wrk() == wrk


def test_detect_wrk_missing_is_a_benchmark_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(BenchmarkError, match="Missing required command: wrk"):
        detect_wrk()
