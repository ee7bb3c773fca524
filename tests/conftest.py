"""
Pytest fixtures for Signum Explorer tests.

Temporary SQLite watermark store, a manually advanced clock, and httpx.MockTransport
backed fake nodes keyed by host.
"""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from signum_explorer.signum_api.transport import HttpTransport

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockNodes:
    """Routes each request to the handler registered for its scheme://host and records the call."""

    def __init__(self, handlers: dict[str, Handler]) -> None:
        self.handlers = dict(handlers)
        self.calls: list[tuple[str, httpx.Request]] = []
        self.transport = HttpTransport(transport=httpx.MockTransport(self._dispatch))

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        host = f"{request.url.scheme}://{request.url.host}"
        self.calls.append((host, request))
        return self.handlers[host](request)

    @property
    def hosts_called(self) -> list[str]:
        return [host for host, _ in self.calls]


class FakeNode:
    """
    One Signum node answering from a requestType -> payload map (a payload may be
    a callable taking the query params). Unknown request types get a 404.
    """

    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.queries: list[dict] = []
        self.methods: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.queries.append(params)
        self.methods.append(request.method)
        payload = self.responses.get(params["requestType"])
        if callable(payload):
            payload = payload(params)
        if payload is None:
            return httpx.Response(404)
        return httpx.Response(200, json=payload)

    def of_type(self, request_type: str) -> list[dict]:
        return [q for q in self.queries if q["requestType"] == request_type]


def json_handler(payload: dict, status_code: int = 200) -> Handler:
    return lambda request: httpx.Response(status_code, json=payload)


def raising_handler(message: str, exc_type: type[httpx.HTTPError] = httpx.ConnectError) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type(message, request=request)

    return handler


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_nodes():
    """Factory: mock_nodes({"https://h1": handler, ...}) -> MockNodes. Transports are closed after the test."""
    created: list[MockNodes] = []

    def factory(handlers: dict[str, Handler]) -> MockNodes:
        nodes = MockNodes(handlers)
        created.append(nodes)
        return nodes

    yield factory
    for nodes in created:
        nodes.transport.close()


@pytest.fixture
def store(tmp_path, monkeypatch):
    """WatermarkStore on a fresh temporary SQLite file with tables created."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    from signum_explorer.database import WatermarkStore

    watermark_store = WatermarkStore(f"sqlite:///{tmp_path / 'watermarks.db'}")
    watermark_store.init_db()
    yield watermark_store
    watermark_store.dispose()
