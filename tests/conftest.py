"""Shared test fixtures for queuewire."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from queuewire.api.client import ApiClient
from queuewire.api.session import Session
from queuewire.config import SyncConfig
from queuewire.models import Job

API_PREFIX = "/api/v1"


# ---------------------------------------------------------------------------
# Push channel fakes
# ---------------------------------------------------------------------------


class FakeSocket:
    """In-memory stand-in for a websocket connection.

    Frames the client sends are recorded in ``sent``.  Frames fed with
    ``feed`` are yielded to the client's reader; ``drop`` simulates the server
    closing the connection.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(message) for message in self.sent]

    async def send(self, message: str) -> None:
        if self.closed:
            raise OSError("socket closed")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def feed(self, frame: dict[str, Any] | str) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        self._inbox.put_nowait(None)

    def __aiter__(self) -> FakeSocket:
        return self

    async def __anext__(self) -> str:
        message = await self._inbox.get()
        if message is None:
            raise StopAsyncIteration
        return message


class FakeConnector:
    """Connector that hands out FakeSockets.

    Set ``gate`` to hold handshakes open until the event is set, or ``error``
    to make every handshake fail with that exception.
    """

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self.gate: asyncio.Event | None = None
        self.error: BaseException | None = None

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        socket = FakeSocket()
        self.sockets.append(socket)
        return socket


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


# ---------------------------------------------------------------------------
# REST fakes
# ---------------------------------------------------------------------------


class FakeServer:
    """Routes ``httpx.MockTransport`` requests to canned responses.

    Paths are given relative to the API prefix, e.g. ``/groups/g1/queue``.
    Unrouted requests answer 404 with an ``{"error": ...}`` body.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self.routes[(method, path)] = (status, body)

    def handle(self, method: str, path: str, handler: Callable[[httpx.Request], Any]) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if (r.method, _relative(r)) == (method, path)]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        target = self.routes.get((request.method, _relative(request)))
        if target is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(target):
            return target(request)
        status, body = target
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


def _relative(request: httpx.Request) -> str:
    return request.url.path.removeprefix(API_PREFIX)


def job_dict(job_id: str, group_id: str = "g1", **fields: Any) -> dict[str, Any]:
    return {"id": job_id, "group_id": group_id, "status": "pending", **fields}


def make_job(job_id: str, group_id: str = "g1", **fields: Any) -> Job:
    return Job.from_dict(job_dict(job_id, group_id, **fields))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(reconnect_delay=0.01)


@pytest.fixture
def session() -> Session:
    return Session("secret-token")


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def api(config: SyncConfig, session: Session, server: FakeServer) -> ApiClient:
    return ApiClient(config, session, transport=server.transport)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()
