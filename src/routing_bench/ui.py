from __future__ import annotations

import sys
import time
from collections import deque
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from .exec import format_command
from .report import BenchmarkResult, format_variant_lines


def console_for_color_mode(color: str) -> Console:
    mode = color.strip().lower()
    if mode == "always":
        # ANSI colors even when piped (e.g. into `tail -f`).
        return Console(force_terminal=True)
    if mode == "never":
        return Console(no_color=True)
    if mode == "auto":
        return Console()
    raise ValueError(f"Invalid color mode: {color!r} (expected auto|always|never)")


def _is_interactive_default() -> bool:
    # Live view only on a TTY; CI logs and redirects get plain lines.
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


@dataclass(frozen=True, slots=True)
class CommandInfo:
    label: str
    argv: Sequence[str]


class RunUI:
    """
    Console output for a benchmark run.

    On a TTY a Rich Live view shows the variant progress bar, the current
    variant and phase, the running wrk command, a table of finished variants
    and the last lines of wrk output.

    Otherwise every event becomes one plain, grep-friendly line and wrk
    output only goes to the in-memory tail.
    """

    def __init__(
        self,
        *,
        tail_lines: int = 10,
        color: str = "auto",
        console: Console | None = None,
        live: bool | None = None,
    ) -> None:
        self.console = console if console is not None else console_for_color_mode(color)
        self._live_enabled = _is_interactive_default() if live is None else live

        self._tail: deque[Text] = deque(maxlen=tail_lines)
        self._current_cmd: CommandInfo | None = None
        self._status: Mapping[str, str] | None = None
        self._finished: list[BenchmarkResult] = []
        self._warnings = 0

        self._overall = Progress(
            TextColumn("[bold]variants[/bold]"),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._overall_task_id = self._overall.add_task("variants", total=0)

        self._phase = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}[/bold]"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._phase_task_id = self._phase.add_task("idle", total=None)

        self._live: Live | None = None
        self._last_refresh_s = 0.0

    @property
    def warnings(self) -> int:
        return self._warnings

    def set_total_steps(self, total: int) -> None:
        self._overall.update(self._overall_task_id, total=total, completed=0)
        self._refresh()

    def set_status(self, values: Mapping[str, str]) -> None:
        self._status = values
        if not self._live_enabled:
            parts = " ".join(f"{k}={v}" for k, v in values.items())
            self.console.print(f"STATUS {parts}")
        self._refresh()

    def start(self) -> None:
        if not self._live_enabled:
            return
        self._live = Live(self._render(), console=self.console, refresh_per_second=4)
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return

        total = self._overall.tasks[self._overall_task_id].total
        if total is not None:
            self._overall.update(self._overall_task_id, completed=total)
            self._refresh(force=True)

        self._live.stop()
        self._live = None

    def _refresh(self, *, force: bool = False) -> None:
        if self._live is None:
            return
        now = time.monotonic()
        if not force and (now - self._last_refresh_s) < 0.20:
            return
        self._last_refresh_s = now
        self._live.update(self._render())

    def tail(self, message: str, *, style: str | None = None) -> None:
        """Append to the rolling wrk output buffer. Never printed in plain mode."""
        self._tail.append(Text(message, style=style or ""))
        self._refresh()

    def log(self, message: str, *, style: str | None = None) -> None:
        """One event line: printed in plain mode, added to the tail in live mode."""
        if self._live_enabled:
            self.tail(message, style=style)
            return

        text = Text(message, style=style or "")
        self.console.print(text)
        self._tail.append(text)

    def warn(self, message: str) -> None:
        self._warnings += 1
        self.log(f"WARNING: {message}", style="bold yellow")

    def set_phase(self, variant: str, phase: str) -> None:
        """Mark the phase (warmup, measure, ...) the current variant is in."""
        desc = f"{variant}: {phase}"
        if self._live_enabled:
            self._phase.update(self._phase_task_id, description=desc)
            self._refresh()
        else:
            self.console.print(Text("--- ", style="cyan") + Text(desc))

    def set_current_command(self, *, label: str, argv: Sequence[str]) -> None:
        self._current_cmd = CommandInfo(label=label, argv=[str(a) for a in argv])
        if self._live_enabled:
            self._refresh()
        else:
            cmd = self._current_cmd
            line = Text(f"cmd[{cmd.label}]: ", style="bold") + Text(format_command(cmd.argv))
            self.console.print(line)

    def record_result(self, result: BenchmarkResult) -> None:
        """Show a finished variant (results table in live mode, a short block otherwise)."""
        self._finished.append(result)
        if self._live_enabled:
            self._refresh(force=True)
            return
        style = None if result.ok else "red"
        for line in format_variant_lines(result):
            self.log(line, style=style)

    @contextmanager
    def step(self, title: str) -> Iterator[None]:
        if not self._live_enabled:
            self.console.print(Text("==> ", style="bold cyan") + Text(title))
            try:
                yield
            finally:
                self.console.print(Text("<== ", style="bold cyan") + Text(title))
            return

        self._phase.update(self._phase_task_id, description=title)
        self._refresh()
        try:
            yield
        finally:
            self._overall.advance(self._overall_task_id, 1)
            self._phase.update(self._phase_task_id, description="idle")
            self._refresh()

    def _render(self) -> Group:
        return Group(
            self._render_status(),
            self._overall,
            self._phase,
            self._render_command(),
            self._render_finished(),
            self._render_tail(),
        )

    def _render_status(self) -> Text:
        if not self._status:
            return Text("STATUS -", style="dim")
        parts = " ".join(f"{k}={v}" for k, v in self._status.items())
        line = Text(f"STATUS {parts}")
        if self._warnings:
            line.append(f"  warnings={self._warnings}", style="bold yellow")
        return line

    def _render_command(self) -> Text:
        if self._current_cmd is None:
            return Text("CMD -", style="dim")
        cmd = self._current_cmd
        return Text(f"CMD[{cmd.label}] ", style="bold") + Text(format_command(cmd.argv))

    def _render_finished(self) -> Text:
        if not self._finished:
            return Text("RESULTS (none yet)", style="dim")

        width = max(len(r.name) for r in self._finished)
        body = Text()
        body.append("RESULTS", style="bold")
        for r in self._finished:
            body.append(f"\n  {r.name:<{width}}  ")
            if r.metrics is None:
                body.append(f"FAIL {r.error}", style="red")
                continue
            m = r.metrics
            body.append(f"{m.requests_per_sec:>12,.0f} req/sec  {m.latency_avg_ms:.2f}ms avg")
        return body

    def _render_tail(self) -> Text:
        if not self._tail:
            return Text("WRK OUTPUT (empty)", style="dim")

        body = Text("WRK OUTPUT\n", style="bold")
        body.append(Text("\n").join(self._tail))
        return body
