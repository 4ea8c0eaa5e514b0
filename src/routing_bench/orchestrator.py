from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Protocol

from .config import DEFAULT_HOST, RunTuning, validate_ports
from .errors import BenchmarkError
from .exec import LineCallback
from .load import run_load
from .parse import MetricsRecord, detect_wrk_errors
from .report import BenchmarkResult
from .server import with_server
from .ui import RunUI
from .variants import VariantRegistration


class LoadRunner(Protocol):
    def __call__(
        self,
        url: str,
        concurrency: int,
        threads: int,
        duration_s: int,
        *,
        on_stdout_line: LineCallback | None = None,
        on_stderr_line: LineCallback | None = None,
    ) -> MetricsRecord: ...


def probe_url(variant: VariantRegistration, *, host: str = DEFAULT_HOST) -> str:
    return f"http://{host}:{variant.port}{variant.probe_path}"


def run_all(
    variants: Sequence[VariantRegistration],
    *,
    tuning: RunTuning,
    ui: RunUI,
    load: LoadRunner = run_load,
    sleep: Callable[[float], None] = time.sleep,
    ready_timeout_s: float = 5.0,
) -> list[BenchmarkResult]:
    """
    Benchmark every variant, one at a time, in registration order.

    A failing variant is recorded as an error result and the loop moves on;
    only KeyboardInterrupt-style exits stop the run early.
    """
    validate_ports([v.port for v in variants])

    results: list[BenchmarkResult] = []
    for variant in variants:
        with ui.step(f"benchmark: {variant.name}"):
            result = benchmark_variant(
                variant,
                tuning=tuning,
                ui=ui,
                load=load,
                sleep=sleep,
                ready_timeout_s=ready_timeout_s,
            )
        results.append(result)
        ui.record_result(result)
    return results


def benchmark_variant(
    variant: VariantRegistration,
    *,
    tuning: RunTuning,
    ui: RunUI,
    load: LoadRunner = run_load,
    sleep: Callable[[float], None] = time.sleep,
    ready_timeout_s: float = 5.0,
) -> BenchmarkResult:
    """
    Start the variant, warm it up, measure it, shut it down.

    Steps:
    1. Start the server and wait until it is listening.
    2. Settle delay.
    3. Warmup load (metrics discarded).
    4. Inter-phase delay.
    5. Measured load.
    The server is closed whether or not the loads succeed.
    """
    url = probe_url(variant)
    warmup = tuning.warmup()
    measured = tuning.measured()

    def measure() -> MetricsRecord:
        sleep(tuning.settle_delay_s)

        ui.set_phase(variant.name, f"warmup ({warmup.duration_s}s)")
        load(
            url,
            warmup.connections,
            warmup.threads,
            warmup.duration_s,
            on_stdout_line=lambda line: ui.tail(line, style="dim"),
            on_stderr_line=lambda line: ui.tail(line, style="dim"),
        )

        sleep(tuning.inter_phase_delay_s)

        ui.set_phase(variant.name, f"measure ({measured.duration_s}s)")
        stdout_lines: list[str] = []

        def on_stdout(line: str) -> None:
            stdout_lines.append(line)
            ui.tail(line)

        metrics = load(
            url,
            measured.connections,
            measured.threads,
            measured.duration_s,
            on_stdout_line=on_stdout,
            on_stderr_line=lambda line: ui.tail(line, style="dim"),
        )

        for problem in detect_wrk_errors("\n".join(stdout_lines)):
            ui.warn(f"{variant.name}: {problem}")

        return metrics

    try:
        metrics = with_server(
            variant.server_factory,
            variant.port,
            measure,
            ready_timeout_s=ready_timeout_s,
        )
    except BenchmarkError as e:
        return BenchmarkResult(name=variant.name, error=str(e))
    except Exception as e:
        # Anything else is still confined to this variant.
        return BenchmarkResult(name=variant.name, error=f"unexpected {type(e).__name__}: {e}")

    return BenchmarkResult(name=variant.name, metrics=metrics)
