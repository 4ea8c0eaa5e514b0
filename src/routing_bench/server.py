"""
Variant server lifecycle management.

Provides:
- Server: the listen/close contract every variant server implements.
- RoutingHTTPServer: stdlib HTTP server that runs a route resolver per request.
- serving / with_server: start a server, wait until ready, always close it.
"""

from __future__ import annotations

import contextlib
import json
import threading
from collections.abc import Callable, Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Final, Protocol, TypeVar

from .config import DEFAULT_HOST
from .errors import BindError, DependencyMissingError, ServerError

T = TypeVar("T")

RouteResolver = Callable[[str, str], "str | None"]

_RESPONSE_BODY: Final[bytes] = json.dumps({"message": "hello world"}).encode("utf-8")


class Server(Protocol):
    def listen(self, port: int, on_ready: Callable[[], None]) -> None: ...

    def close(self) -> None: ...


ServerFactory = Callable[[], "Server | None"]


class _RoutingHandler(BaseHTTPRequestHandler):
    # Keep-alive, otherwise wrk measures connection setup instead of routing.
    protocol_version = "HTTP/1.1"

    def do_GET(self) -> None:
        self.server.resolve(self.command, self.path)  # type: ignore[attr-defined]
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(_RESPONSE_BODY)))
        self.end_headers()
        self.wfile.write(_RESPONSE_BODY)

    do_POST = do_GET
    do_PUT = do_GET
    do_DELETE = do_GET

    def log_message(self, format: str, *args: object) -> None:
        # Per-request access logs would dominate the measurement.
        return


class _ResolvingHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], resolve: RouteResolver) -> None:
        self.resolve = resolve
        super().__init__(address, _RoutingHandler)


class RoutingHTTPServer:
    """
    HTTP server that passes every request through a route resolver.

    The response is the same for every request; only the routing work
    differs between variants. Serving happens on a background thread between
    `listen()` and `close()`.
    """

    def __init__(self, resolve: RouteResolver, *, host: str = DEFAULT_HOST) -> None:
        self._resolve = resolve
        self._host = host
        self._httpd: _ResolvingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int | None:
        """Bound port (useful when listening on port 0), or None when not listening."""
        if self._httpd is None:
            return None
        return int(self._httpd.server_address[1])

    def listen(self, port: int, on_ready: Callable[[], None]) -> None:
        """
        Bind and start serving.

        Raises
        ------
        OSError
            If the port cannot be bound.
        """
        if self._httpd is not None:
            raise RuntimeError("server is already listening")

        self._httpd = _ResolvingHTTPServer((self._host, port), self._resolve)
        self._thread = threading.Thread(
            target=self._httpd.serve_forever,
            kwargs={"poll_interval": 0.05},
            name=f"routing-server-{port}",
            daemon=True,
        )
        self._thread.start()
        on_ready()

    def close(self) -> None:
        """Stop serving and release the port (safe to call multiple times)."""
        httpd, thread = self._httpd, self._thread
        self._httpd = None
        self._thread = None
        if httpd is None:
            return

        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join(timeout=2.0)


@contextlib.contextmanager
def serving(
    factory: ServerFactory, port: int, *, ready_timeout_s: float = 5.0
) -> Iterator[Server]:
    """
    Start the server built by `factory` on `port` and yield it once ready.

    The server is closed on exit, whether the body succeeded or raised.

    Raises
    ------
    DependencyMissingError
        If `factory()` returns None (optional router library unavailable).
    BindError
        If the port cannot be bound.
    ServerError
        If the server does not signal readiness within `ready_timeout_s`.
    """
    if ready_timeout_s <= 0:
        raise ValueError("ready_timeout_s must be > 0")

    server = factory()
    if server is None:
        raise DependencyMissingError("dependency missing (server factory returned no server)")

    ready = threading.Event()
    try:
        try:
            server.listen(port, ready.set)
        except OSError as e:
            raise BindError(f"failed to bind port {port}: {e}") from e

        if not ready.wait(ready_timeout_s):
            raise ServerError(f"server on port {port} not ready after {ready_timeout_s:.1f}s")

        yield server
    finally:
        server.close()


def with_server(
    factory: ServerFactory,
    port: int,
    body: Callable[[], T],
    *,
    ready_timeout_s: float = 5.0,
) -> T:
    """Run `body()` while the server from `factory` is listening on `port`."""
    with serving(factory, port, ready_timeout_s=ready_timeout_s):
        return body()
