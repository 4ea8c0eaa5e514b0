from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

FakeWrk = Callable[..., tuple[Path, Path]]


@pytest.fixture
def fake_wrk(tmp_path: Path) -> FakeWrk:
    """
    Factory for a stand-in wrk executable.

    The script records its argv (as JSON) and replays the given stdout,
    stderr and exit code. Returns (script_path, argv_file).
    """

    def make(*, stdout: str = "", stderr: str = "", code: int = 0) -> tuple[Path, Path]:
        argv_file = tmp_path / "argv.json"
        script = tmp_path / "wrk"
        script.write_text(
            f"#!{sys.executable}\n"
            "import json, sys\n"
            f"open({str(argv_file)!r}, 'w').write(json.dumps(sys.argv[1:]))\n"
            f"sys.stdout.write({stdout!r})\n"
            f"sys.stderr.write({stderr!r})\n"
            f"sys.exit({code})\n",
            encoding="utf-8",
        )
        script.chmod(0o755)
        return script, argv_file

    return make
