"""
Route table shared by the pattern-based router variants.

The table is generated deterministically and never mutated; every caller of
`default_routes()` gets the same tuple.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cache
from typing import Final

MIN_ROUTES: Final[int] = 100
_NESTED_LIMIT: Final[int] = 90

RESOURCES: Final[tuple[str, ...]] = (
    "users",
    "posts",
    "comments",
    "products",
    "orders",
    "invoices",
    "payments",
    "reviews",
    "notifications",
    "messages",
)
ADMIN_ACTIONS: Final[tuple[str, ...]] = (
    "list",
    "create",
    "update",
    "delete",
    "search",
    "export",
    "import",
    "validate",
)


@dataclass(frozen=True, slots=True)
class RouteDescriptor:
    """A path pattern (`:name` marks a parameter segment) and its handler name."""

    pattern: str
    handler: str


def generate_routes() -> tuple[RouteDescriptor, ...]:
    routes: list[RouteDescriptor] = [
        RouteDescriptor("/health", "health"),
        RouteDescriptor("/metrics", "metrics"),
        RouteDescriptor("/api/status", "status"),
        RouteDescriptor("/api/version", "version"),
    ]

    for resource in RESOURCES:
        routes.append(RouteDescriptor(f"/api/{resource}", f"list_{resource}"))
        routes.append(RouteDescriptor(f"/api/{resource}/:id", f"get_{resource}"))
        routes.append(RouteDescriptor(f"/api/{resource}/:id/edit", f"edit_{resource}"))
        routes.append(RouteDescriptor(f"/api/{resource}/:id/delete", f"delete_{resource}"))

        for nested in RESOURCES:
            if nested != resource and len(routes) < _NESTED_LIMIT:
                routes.append(
                    RouteDescriptor(f"/api/{resource}/:id/{nested}", f"get_{resource}_{nested}")
                )

    for action in ADMIN_ACTIONS:
        if len(routes) >= MIN_ROUTES:
            break
        routes.append(RouteDescriptor(f"/api/admin/{action}", f"admin_{action}"))

    n = 1
    while len(routes) < MIN_ROUTES:
        routes.append(RouteDescriptor(f"/static/files/file{n}.txt", f"serve_file_{n}"))
        n += 1

    return tuple(routes)


@cache
def default_routes() -> tuple[RouteDescriptor, ...]:
    return generate_routes()
