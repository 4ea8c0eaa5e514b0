from __future__ import annotations

import contextlib
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.text import Text

from .config import Config, RunTuning, validate_config, validate_ports
from .errors import BenchmarkError
from .exec import LineCallback
from .load import run_load, wrk_argv
from .orchestrator import LoadRunner, probe_url, run_all
from .parse import MetricsRecord
from .report import BenchmarkResult, Report, render_report, summarize, write_json
from .routes import default_routes
from .server import serving
from .tool_detection import detect_wrk
from .ui import RunUI, console_for_color_mode
from .variants import VariantRegistration, default_variants, select_variants


@dataclass(frozen=True, slots=True)
class RunOutcome:
    results: tuple[BenchmarkResult, ...]
    report: Report

    @property
    def failures(self) -> int:
        return len(self.report.failed)


def run(cfg: Config, *, color: str = "auto") -> RunOutcome:
    """
    Orchestrate a full benchmark run.

    This coordinates:
      - config validation
      - wrk detection (fatal when missing, before any server starts)
      - benchmarking every selected variant sequentially
      - ranking and printing the summary (and optionally writing JSON)

    Variant failures are part of the outcome, not exceptions. The caller (CLI)
    is responsible for translating fatal errors into exit codes.
    """
    validate_config(cfg)

    variants = select_variants(
        default_variants(base_port=cfg.base_port, probe_path=cfg.probe_path),
        cfg.only,
    )
    validate_ports([v.port for v in variants])

    ui = RunUI(color=color)
    ui.start()
    stopped = False
    try:
        with ui.step("detect tools"):
            wrk = detect_wrk(cfg.wrk)

        measured = cfg.tuning.measured()
        ui.set_status(
            {
                "wrk": str(wrk),
                "measured": f"c={measured.connections} t={measured.threads} d={measured.duration_s}s",
                "warmup": _warmup_status(cfg.tuning),
                "routes": str(len(default_routes())),
            }
        )
        ui.set_total_steps(len(variants))

        results = run_all(
            variants,
            tuning=cfg.tuning,
            ui=ui,
            load=_wrk_runner(wrk, ui),
        )
        report = summarize(results)

        ui.stop()
        stopped = True

        _print_summary(ui, cfg, wrk=wrk, report=report)

        if cfg.json_out is not None:
            write_json(report, cfg.json_out)
            ui.console.print(Text(f"JSON report written to {cfg.json_out}", style="dim"))

        return RunOutcome(results=tuple(results), report=report)
    finally:
        if not stopped:
            ui.stop()


def _warmup_status(t: RunTuning) -> str:
    w = t.warmup()
    return f"c={w.connections} t={w.threads} d={w.duration_s}s"


def _wrk_runner(wrk: Path, ui: RunUI) -> LoadRunner:
    def load(
        url: str,
        concurrency: int,
        threads: int,
        duration_s: int,
        *,
        on_stdout_line: LineCallback | None = None,
        on_stderr_line: LineCallback | None = None,
    ) -> MetricsRecord:
        ui.set_current_command(
            label="wrk", argv=wrk_argv(url, concurrency, threads, duration_s, wrk=wrk)
        )
        return run_load(
            url,
            concurrency,
            threads,
            duration_s,
            wrk=wrk,
            on_stdout_line=on_stdout_line,
            on_stderr_line=on_stderr_line,
        )

    return load


def _print_summary(ui: RunUI, cfg: Config, *, wrk: Path, report: Report) -> None:
    console = ui.console
    measured = cfg.tuning.measured()

    console.print(Text("CONDITIONS:", style="bold cyan"))
    console.print(Text(f"- tool[wrk]={wrk}"))
    console.print(
        f"- measured: connections={measured.connections} threads={measured.threads} "
        f"duration={measured.duration_s}s"
    )
    console.print(f"- warmup: {_warmup_status(cfg.tuning)}")
    console.print(f"- routes={len(default_routes())} probe_path={cfg.probe_path}")
    console.print("- order: variants run one at a time (no overlapping servers or wrk processes)")

    console.print(Text("SUMMARY:", style="bold green"))
    for line in render_report(report, duration_s=measured.duration_s):
        console.print(_style_summary_line(line))

    if not report.ranked:
        console.print(Text("No variant produced metrics.", style="bold red"))


_RANK_RE = re.compile(r"^(\d+)\. ")


def _style_summary_line(line: str) -> Text:
    # Make summary blocks scannable in CI logs.
    t = Text(line)

    if _RANK_RE.match(line) or line.startswith("Failed variants:"):
        t.stylize("bold")
        return t

    if line.startswith("- ") and ": " in line:
        t.stylize("red")
        return t

    if line.endswith(" req/sec"):
        t.stylize("cyan")
    elif "x slower than fastest" in line:
        t.stylize("yellow")

    return t


@dataclass(frozen=True, slots=True)
class ServedVariant:
    variant: VariantRegistration
    url: str


def serve(
    cfg: Config,
    *,
    color: str = "auto",
    wait: Callable[[], None] | None = None,
) -> list[ServedVariant]:
    """
    Start every selected variant on its port and keep them up for manual testing.

    No load is applied. Variants that cannot start (missing optional router,
    port in use) are skipped with a message. Blocks in `wait` (default: until
    Ctrl-C), then closes every server.
    """
    validate_config(cfg)

    variants = select_variants(
        default_variants(base_port=cfg.base_port, probe_path=cfg.probe_path),
        cfg.only,
    )
    validate_ports([v.port for v in variants])

    console = console_for_color_mode(color)
    console.print(Text("Starting variant servers for manual testing...", style="bold cyan"))
    console.print(Text(f"routes={len(default_routes())}"))

    served: list[ServedVariant] = []
    with contextlib.ExitStack() as stack:
        for i, v in enumerate(variants, start=1):
            try:
                stack.enter_context(serving(v.server_factory, v.port))
            except BenchmarkError as e:
                console.print(Text(f"{i}. {v.name}: skipped ({e})", style="yellow"))
                continue

            url = probe_url(v)
            served.append(ServedVariant(variant=v, url=url))
            console.print(Text(f"{i}. {v.name}: ") + Text(url, style="cyan"))

        if not served:
            console.print(Text("No variant server started.", style="bold red"))
            return served

        console.print(Text("Press Ctrl-C to stop.", style="dim"))
        try:
            (wait or _wait_for_interrupt)()
        except KeyboardInterrupt:
            console.print()
        console.print(Text(f"Stopping {len(served)} server(s).", style="dim"))

    return served


def _wait_for_interrupt() -> None:
    while True:
        time.sleep(1.0)
