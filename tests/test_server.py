from __future__ import annotations

import json
import socket
import urllib.request
from collections.abc import Callable

import pytest

from routing_bench.errors import BindError, DependencyMissingError, ServerError
from routing_bench.server import RoutingHTTPServer, serving, with_server

_NO_PROXY_OPENER = urllib.request.build_opener(urllib.request.ProxyHandler({}))


class FakeServer:
    def __init__(self, *, ready: bool = True, bind_error: bool = False) -> None:
        self.ready = ready
        self.bind_error = bind_error
        self.listened_on: int | None = None
        self.closed = 0

    def listen(self, port: int, on_ready: Callable[[], None]) -> None:
        if self.bind_error:
            raise OSError(98, "Address already in use")
        self.listened_on = port
        if self.ready:
            on_ready()

    def close(self) -> None:
        self.closed += 1


def _get(url: str) -> tuple[int, dict[str, object]]:
    with _NO_PROXY_OPENER.open(url, timeout=5) as resp:
        return resp.status, json.loads(resp.read())


def test_with_server_serves_requests_and_closes() -> None:
    calls: list[tuple[str, str]] = []

    def resolve(method: str, target: str) -> str | None:
        calls.append((method, target))
        return "health"

    srv = RoutingHTTPServer(resolve)

    def body() -> tuple[int, dict[str, object]]:
        return _get(f"http://127.0.0.1:{srv.port}/health?x=1")

    status, payload = with_server(lambda: srv, 0, body)

    assert status == 200
    assert payload == {"message": "hello world"}
    assert calls == [("GET", "/health?x=1")]
    assert srv.port is None


def test_with_server_keeps_connection_alive_for_multiple_requests() -> None:
    srv = RoutingHTTPServer(lambda method, target: None)
    with serving(lambda: srv, 0):
        for _ in range(3):
            status, _ = _get(f"http://127.0.0.1:{srv.port}/metrics")
            assert status == 200


def test_with_server_factory_returning_none_skips_body() -> None:
    ran: list[bool] = []

    with pytest.raises(DependencyMissingError, match="dependency missing"):
        with_server(lambda: None, 3000, lambda: ran.append(True))

    assert ran == []


def test_with_server_closes_when_body_raises() -> None:
    fake = FakeServer()

    def body() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        with_server(lambda: fake, 3100, body)

    assert fake.listened_on == 3100
    assert fake.closed == 1


def test_with_server_bind_error() -> None:
    fake = FakeServer(bind_error=True)
    with pytest.raises(BindError, match="3101"):
        with_server(lambda: fake, 3101, lambda: None)
    assert fake.closed == 1


def test_with_server_real_port_conflict_raises_bind_error() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
        holder.bind(("127.0.0.1", 0))
        holder.listen()
        port = holder.getsockname()[1]

        with pytest.raises(BindError):
            with_server(lambda: RoutingHTTPServer(lambda m, t: None), port, lambda: None)


def test_with_server_times_out_when_never_ready() -> None:
    fake = FakeServer(ready=False)
    with pytest.raises(ServerError, match="not ready"):
        with_server(lambda: fake, 3102, lambda: None, ready_timeout_s=0.05)
    assert fake.closed == 1


def test_routing_http_server_close_is_idempotent() -> None:
    srv = RoutingHTTPServer(lambda m, t: None)
    srv.close()
    srv.listen(0, lambda: None)
    assert srv.port is not None
    srv.close()
    srv.close()
    assert srv.port is None
