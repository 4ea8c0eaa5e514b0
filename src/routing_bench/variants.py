"""
Router variants under test.

Each variant is an HTTP server whose per-request work is one routing
strategy. The resolvers return the matched handler name (or, for the
parse-only strategies, the parsed path); the server ignores the value, so
only the cost of computing it shows up in the measurement.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import urlsplit

from .config import ConfigError
from .routes import RouteDescriptor, default_routes
from .server import RouteResolver, RoutingHTTPServer, ServerFactory


@dataclass(frozen=True, slots=True)
class VariantRegistration:
    """
    A variant scheduled for benchmarking.

    `server_factory` may return None when the variant's router library is not
    installed; the run records that as a result-level error.
    """

    key: str
    name: str
    server_factory: ServerFactory
    port: int
    probe_path: str = "/health"


def resolve_minimal(method: str, target: str) -> str | None:
    return None


def resolve_manual(method: str, target: str) -> str | None:
    q = target.find("?")
    return target if q == -1 else target[:q]


def resolve_urlsplit(method: str, target: str) -> str | None:
    return urlsplit(target).path


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    parts = [
        "([^/]+)" if segment.startswith(":") else re.escape(segment)
        for segment in pattern.split("/")
    ]
    return re.compile("^" + "/".join(parts) + "$")


def compile_regex_router(routes: Sequence[RouteDescriptor]) -> RouteResolver:
    """Sequential scan over one compiled regex per route; first match wins."""
    compiled = [(_pattern_to_regex(r.pattern), r.handler) for r in routes]

    def resolve(method: str, target: str) -> str | None:
        pathname = urlsplit(target).path
        for regex, handler in compiled:
            if regex.match(pathname) is not None:
                return handler
        return None

    return resolve


def compile_werkzeug_router(routes: Sequence[RouteDescriptor]) -> RouteResolver | None:
    """
    Build a resolver on werkzeug's routing map.

    The map compiles all rules into one state-machine matcher, the tree-style
    counterpart to the sequential regex scan (it is not a radix trie).

    Returns None when werkzeug is not installed.
    """
    try:
        from werkzeug.exceptions import HTTPException
        from werkzeug.routing import Map, Rule
    except ImportError:
        return None

    url_map = Map(
        [Rule(_werkzeug_rule_path(r.pattern), endpoint=r.handler, methods=["GET"]) for r in routes]
    )
    adapter = url_map.bind("localhost")

    def resolve(method: str, target: str) -> str | None:
        try:
            endpoint, _args = adapter.match(urlsplit(target).path, method=method)
        except HTTPException:
            return None
        return str(endpoint)

    return resolve


def _werkzeug_rule_path(pattern: str) -> str:
    return "/".join(
        f"<{segment[1:]}>" if segment.startswith(":") else segment
        for segment in pattern.split("/")
    )


def minimal_server() -> RoutingHTTPServer:
    return RoutingHTTPServer(resolve_minimal)


def manual_parse_server() -> RoutingHTTPServer:
    return RoutingHTTPServer(resolve_manual)


def urlsplit_server() -> RoutingHTTPServer:
    return RoutingHTTPServer(resolve_urlsplit)


def regex_server() -> RoutingHTTPServer:
    return RoutingHTTPServer(compile_regex_router(default_routes()))


def werkzeug_server() -> RoutingHTTPServer | None:
    resolve = compile_werkzeug_router(default_routes())
    if resolve is None:
        return None
    return RoutingHTTPServer(resolve)


_DEFAULT_VARIANTS: tuple[tuple[str, str, ServerFactory], ...] = (
    ("minimal", "Minimal (no URL parsing)", minimal_server),
    ("manual", "Manual string parsing", manual_parse_server),
    ("urlsplit", "urlsplit parsing", urlsplit_server),
    ("regex", "Regex routing (sequential)", regex_server),
    ("werkzeug", "werkzeug routing", werkzeug_server),
)


def default_variants(*, base_port: int = 3000, probe_path: str = "/health") -> list[VariantRegistration]:
    """All variants in benchmark order, one port each starting at `base_port`."""
    return [
        VariantRegistration(
            key=key,
            name=name,
            server_factory=factory,
            port=base_port + i,
            probe_path=probe_path,
        )
        for i, (key, name, factory) in enumerate(_DEFAULT_VARIANTS)
    ]


def select_variants(
    variants: Sequence[VariantRegistration], keys: Sequence[str]
) -> list[VariantRegistration]:
    """
    Keep only the variants named in `keys`, preserving registration order.

    An empty `keys` keeps everything.
    """
    if not keys:
        return list(variants)

    wanted = {k.strip().lower() for k in keys}
    known = {v.key for v in variants}
    unknown = sorted(wanted - known)
    if unknown:
        raise ConfigError(
            f"Unknown variant(s): {', '.join(unknown)} (expected one of: {', '.join(sorted(known))})"
        )
    return [v for v in variants if v.key in wanted]
