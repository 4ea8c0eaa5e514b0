from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .app import run as run_suite
from .app import serve as serve_variants
from .config import Config, ConfigError, RunTuning
from .routes import default_routes

app = typer.Typer(
    add_completion=False,
    pretty_exceptions_enable=True,
    help="Benchmark HTTP routing strategies under wrk load.",
)


@app.command()
def run(
    wrk: Annotated[
        Path | None,
        typer.Option(
            "--wrk",
            help="Path to the wrk executable (defaults to wrk on PATH).",
            envvar="ROUTING_BENCH_WRK",
            dir_okay=False,
        ),
    ] = None,
    duration: Annotated[
        str,
        typer.Option(
            "--duration",
            help="Measured run duration in whole seconds (e.g. 10s).",
            envvar="ROUTING_BENCH_DURATION",
        ),
    ] = "10s",
    connections: Annotated[
        int,
        typer.Option(
            "--connections",
            help="wrk connections for the measured run.",
            envvar="ROUTING_BENCH_CONNECTIONS",
            min=1,
        ),
    ] = 80,
    threads: Annotated[
        int,
        typer.Option(
            "--threads",
            help="wrk threads for the measured run.",
            envvar="ROUTING_BENCH_THREADS",
            min=1,
        ),
    ] = 4,
    warmup_duration: Annotated[
        str,
        typer.Option(
            "--warmup-duration",
            help="Warmup duration in whole seconds (results discarded).",
            envvar="ROUTING_BENCH_WARMUP_DURATION",
        ),
    ] = "2s",
    warmup_connections: Annotated[
        int,
        typer.Option(
            "--warmup-connections",
            help="wrk connections for the warmup run.",
            min=1,
        ),
    ] = 10,
    warmup_threads: Annotated[
        int,
        typer.Option(
            "--warmup-threads",
            help="wrk threads for the warmup run.",
            min=1,
        ),
    ] = 2,
    settle_delay: Annotated[
        float,
        typer.Option(
            "--settle-delay",
            help="Seconds to wait after a server is listening before the warmup.",
            min=0.0,
        ),
    ] = 0.1,
    inter_phase_delay: Annotated[
        float,
        typer.Option(
            "--inter-phase-delay",
            help="Seconds to wait between the warmup and the measured run.",
            min=0.0,
        ),
    ] = 0.5,
    base_port: Annotated[
        int,
        typer.Option(
            "--base-port",
            help="Port of the first variant; each following variant uses the next port.",
            envvar="ROUTING_BENCH_BASE_PORT",
            min=1,
            max=65535,
        ),
    ] = 3000,
    probe_path: Annotated[
        str,
        typer.Option(
            "--probe-path",
            help="Request path wrk hits on every variant.",
        ),
    ] = "/health",
    only: Annotated[
        list[str] | None,
        typer.Option(
            "--only",
            help="Benchmark only this variant (repeatable): minimal, manual, urlsplit, regex, werkzeug.",
        ),
    ] = None,
    json_out: Annotated[
        Path | None,
        typer.Option(
            "--json-out",
            help="Also write the ranked report as JSON to this path.",
            dir_okay=False,
        ),
    ] = None,
    color: Annotated[
        str,
        typer.Option(
            "--color",
            help="Color output mode (auto|always|never). Use always when piping to tail.",
            envvar="ROUTING_BENCH_COLOR",
            show_default=True,
        ),
    ] = "auto",
) -> None:
    """
    Run every routing variant through a warmup and a measured wrk load, then rank them.

    Variants that fail (missing optional router, port in use, wrk error) are
    reported and do not fail the run.
    """
    color_norm = _normalize_color(color)

    cfg = Config(
        tuning=RunTuning(
            duration=duration,
            connections=connections,
            threads=threads,
            warmup_duration=warmup_duration,
            warmup_connections=warmup_connections,
            warmup_threads=warmup_threads,
            settle_delay_s=settle_delay,
            inter_phase_delay_s=inter_phase_delay,
        ),
        base_port=base_port,
        probe_path=probe_path,
        wrk=wrk,
        only=tuple(only or ()),
        json_out=json_out,
    )

    try:
        outcome = run_suite(cfg, color=color_norm)
    except ConfigError as e:
        typer.secho(f"CONFIG ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from e
    except Exception as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e

    if outcome.failures:
        # Exit code stays 0 for variant failures.
        typer.secho(
            f"{outcome.failures} of {len(outcome.results)} variant(s) failed"
            " (see \"Failed variants\" above).",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def routes() -> None:
    """Print the generated route table used by the pattern-based variants."""
    table = default_routes()
    for r in table:
        typer.echo(f"{r.pattern}\t{r.handler}")
    typer.echo(f"# {len(table)} routes", err=True)


@app.command()
def serve(
    base_port: Annotated[
        int,
        typer.Option(
            "--base-port",
            help="Port of the first variant; each following variant uses the next port.",
            envvar="ROUTING_BENCH_BASE_PORT",
            min=1,
            max=65535,
        ),
    ] = 3000,
    probe_path: Annotated[
        str,
        typer.Option(
            "--probe-path",
            help="Path printed in each variant's URL.",
        ),
    ] = "/health",
    only: Annotated[
        list[str] | None,
        typer.Option(
            "--only",
            help="Start only this variant (repeatable).",
        ),
    ] = None,
    color: Annotated[
        str,
        typer.Option(
            "--color",
            help="Color output mode (auto|always|never).",
            envvar="ROUTING_BENCH_COLOR",
            show_default=True,
        ),
    ] = "auto",
) -> None:
    """
    Start every variant on consecutive ports for manual testing (no load).

    Prints one URL per variant and serves until Ctrl-C.
    """
    color_norm = _normalize_color(color)
    cfg = Config(base_port=base_port, probe_path=probe_path, only=tuple(only or ()))

    try:
        served = serve_variants(cfg, color=color_norm)
    except ConfigError as e:
        typer.secho(f"CONFIG ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from e
    except Exception as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e

    if not served:
        raise typer.Exit(code=1)


def _normalize_color(color: str) -> str:
    color_norm = color.strip().lower()
    if color_norm not in {"auto", "always", "never"}:
        typer.secho(
            f"CONFIG ERROR: invalid --color value {color!r} (expected one of: auto, always, never)",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=2)
    return color_norm


@app.callback(invoke_without_command=True)
def _default(ctx: typer.Context) -> None:
    """
    Default behavior: run the benchmark.
    """
    if ctx.invoked_subcommand is not None:
        return

    # Build a real `run` context so option defaults and ROUTING_BENCH_* env vars
    # are resolved exactly as for `routing-bench run`.
    run_cmd = ctx.command.get_command(ctx, "run")  # type: ignore[attr-defined]
    assert run_cmd is not None
    with run_cmd.make_context("run", [], parent=ctx) as run_ctx:
        run_cmd.invoke(run_ctx)
