"""
routing-bench

Measures HTTP request-routing overhead: starts one HTTP server per routing
strategy, drives each with wrk (warmup, then a measured run) and ranks the
variants by throughput.

Public API surface is intentionally small; prefer using the CLI entrypoint.
"""

from __future__ import annotations

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml.
__version__ = "0.1.0"
