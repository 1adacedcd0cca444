"""
Shared test fixtures and pytest configuration.

HTTP traffic goes through ``FakeSparqlServer`` mounted on an
``httpx.MockTransport``; persistence uses the memory key-value backend
unless a test asks for a ``tmp_path`` SQLite file.

Markers:
    @pytest.mark.asyncio  — coroutine tests (pytest-asyncio)
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
import pytest

from squirt.domain.projection import PostProjection
from squirt.endpoints.registry import EndpointRegistry
from squirt.errors import ErrorHandler, PersistenceError
from squirt.events import EventBus, Notification
from squirt.rdf.store import QuadStore
from squirt.sparql.client import SparqlClient
from squirt.storage.kv import KeyValueStore, MemoryKeyValueStore

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

QUERY_URL = "http://localhost:4030/semem/query"
UPDATE_URL = "http://localhost:4030/semem/update"


class FakeSparqlServer:
    """
    Minimal SPARQL protocol responder.

    ASK answers ``ask_result``, CONSTRUCT answers ``construct_body``, SELECT
    answers ``select_result`` and updates answer 204. URLs in ``down`` raise
    a connection error; URLs in ``status`` answer that HTTP status.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.ask_result: object = True
        self.construct_body = ""
        self.select_result: dict = {"head": {"vars": []}, "results": {"bindings": []}}
        self.down: set[str] = set()
        self.status: dict[str, int] = {}
        self.timeouts: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        if url in self.timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if url in self.status:
            return httpx.Response(self.status[url], text="endpoint exploded")

        body = request.content.decode("utf-8")
        if request.headers["content-type"] == "application/sparql-update":
            return httpx.Response(204)
        if body.lstrip().upper().startswith("ASK"):
            if isinstance(self.ask_result, bool):
                return httpx.Response(200, json={"head": {}, "boolean": self.ask_result})
            return httpx.Response(200, text=str(self.ask_result))
        if "CONSTRUCT" in body:
            return httpx.Response(200, text=self.construct_body, headers={"Content-Type": "text/turtle"})
        return httpx.Response(200, json=self.select_result)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def bodies(self) -> list[str]:
        return [r.content.decode("utf-8") for r in self.requests]


class FailingKeyValueStore(KeyValueStore):
    """Key-value store whose writes always fail."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        raise PersistenceError("disk full", key=key)

    def remove(self, key: str) -> None:
        raise PersistenceError("disk full", key=key)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def notifications(events):
    received: list[Notification] = []
    events.notifications.subscribe(received.append)
    return received


@pytest.fixture
def error_handler(events):
    return ErrorHandler(events.notifications)


@pytest.fixture
def store():
    return QuadStore()


@pytest.fixture
def projection(store, events, clock):
    return PostProjection(store, events, clock=clock)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def sparql():
    return FakeSparqlServer()


@pytest.fixture
def client(sparql):
    return SparqlClient(timeout=5.0, transport=sparql.transport)


@pytest.fixture
def registry(kv, client, events, error_handler, clock):
    return EndpointRegistry(kv, client, events, error_handler, clock=clock)
