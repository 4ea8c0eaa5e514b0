from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

_DURATION_RE: Final[re.Pattern[str]] = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)\s*$")

DEFAULT_HOST: Final[str] = "127.0.0.1"


class ConfigError(ValueError):
    """Raised when CLI/env configuration values are invalid."""


@dataclass(frozen=True, slots=True)
class LoadSpec:
    """Parameters for one wrk invocation."""

    connections: int
    threads: int
    duration_s: int


@dataclass(frozen=True, slots=True)
class RunTuning:
    """
    Load and timing settings shared by every variant.

    Durations stay as strings (e.g. "10s") so they read the same way they are
    typed on the command line; wrk itself receives whole seconds.
    """

    duration: str = "10s"
    connections: int = 80
    threads: int = 4

    warmup_duration: str = "2s"
    warmup_connections: int = 10
    warmup_threads: int = 2

    # Pause after the server reports ready, and between warmup and measurement.
    settle_delay_s: float = 0.1
    inter_phase_delay_s: float = 0.5

    def measured(self) -> LoadSpec:
        return LoadSpec(
            connections=self.connections,
            threads=self.threads,
            duration_s=parse_duration_to_whole_seconds(self.duration),
        )

    def warmup(self) -> LoadSpec:
        return LoadSpec(
            connections=self.warmup_connections,
            threads=self.warmup_threads,
            duration_s=parse_duration_to_whole_seconds(self.warmup_duration),
        )


@dataclass(frozen=True, slots=True)
class Config:
    """
    Typed config used by the runner.

    Notes:
    - `wrk` is an explicit path to the load tool; None means "look it up on PATH".
    - `only` restricts the run to the named variants (empty means all).
    """

    tuning: RunTuning = RunTuning()
    base_port: int = 3000
    probe_path: str = "/health"
    wrk: Path | None = None
    only: tuple[str, ...] = ()
    json_out: Path | None = None


def parse_duration_to_seconds(value: str) -> float:
    """
    Parse durations like "5s", "2.5s", "200ms", "1m" to seconds.

    It is *not* a general-purpose parser; it supports only what this tool needs.
    """
    m = _DURATION_RE.match(value)
    if not m:
        raise ConfigError(
            f"Invalid duration {value!r}. Expected formats like '200ms', '5s', '1m' (decimals allowed)."
        )

    amount_s = float(m.group(1))
    unit = m.group(2)

    if unit == "ms":
        return amount_s / 1000.0
    if unit == "s":
        return amount_s
    if unit == "m":
        return amount_s * 60.0

    # Should be unreachable due to regex.
    raise ConfigError(f"Unsupported duration unit in {value!r}.")


def parse_duration_to_whole_seconds(value: str) -> int:
    """
    Parse a duration and require a positive whole number of seconds.

    wrk's `-d` flag is passed as `<n>s`, so fractional durations are rejected
    rather than silently rounded.
    """
    seconds = parse_duration_to_seconds(value)
    if seconds <= 0:
        raise ConfigError(f"Duration must be > 0, got {value!r}.")
    if not seconds.is_integer():
        raise ConfigError(f"Duration must be a whole number of seconds, got {value!r}.")
    return int(seconds)


def validate_tuning(t: RunTuning) -> None:
    """
    Validate runner tuning settings.

    - durations must parse to whole seconds
    - connections/threads must be positive and threads <= connections (a wrk rule)
    - delays must be non-negative
    """
    parse_duration_to_whole_seconds(t.duration)
    parse_duration_to_whole_seconds(t.warmup_duration)

    pairs = (
        ("connections", t.connections, "threads", t.threads),
        ("warmup_connections", t.warmup_connections, "warmup_threads", t.warmup_threads),
    )
    for conn_name, conns, thr_name, threads in pairs:
        if conns <= 0:
            raise ConfigError(f"{conn_name} must be > 0, got {conns}.")
        if threads <= 0:
            raise ConfigError(f"{thr_name} must be > 0, got {threads}.")
        if threads > conns:
            raise ConfigError(
                f"{thr_name} ({threads}) must not exceed {conn_name} ({conns}); wrk refuses that."
            )

    if t.settle_delay_s < 0:
        raise ConfigError(f"settle_delay_s must be >= 0, got {t.settle_delay_s}.")
    if t.inter_phase_delay_s < 0:
        raise ConfigError(f"inter_phase_delay_s must be >= 0, got {t.inter_phase_delay_s}.")


def validate_config(cfg: Config) -> None:
    validate_tuning(cfg.tuning)

    if not (1 <= cfg.base_port <= 65535):
        raise ConfigError(f"base_port must be in 1..65535, got {cfg.base_port}.")
    if not cfg.probe_path.startswith("/"):
        raise ConfigError(f"probe_path must start with '/', got {cfg.probe_path!r}.")
    if cfg.wrk is not None and not cfg.wrk.exists():
        raise ConfigError(f"wrk path does not exist: {cfg.wrk}")


def validate_ports(ports: list[int]) -> None:
    """Each variant needs its own port; duplicates would collide on bind."""
    seen: set[int] = set()
    for port in ports:
        if not (0 <= port <= 65535):
            raise ConfigError(f"port out of range: {port}")
        if port in seen:
            raise ConfigError(f"port {port} is assigned to more than one variant")
        seen.add(port)
