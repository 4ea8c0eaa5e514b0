from __future__ import annotations


class BenchmarkError(RuntimeError):
    """Base class for benchmark failures (per-variant, except ToolDetectionError)."""


class DependencyMissingError(BenchmarkError):
    """Raised when a variant's optional router library is not available."""


class BindError(BenchmarkError):
    """Raised when a variant server cannot bind its assigned port."""


class ServerError(BenchmarkError):
    """Raised when a variant server does not become ready."""


class ProcessError(BenchmarkError):
    """Raised when the load tool cannot be spawned or exits with a non-zero status."""
