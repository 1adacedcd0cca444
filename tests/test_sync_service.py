"""Tests for squirt.sync — pulling from and pushing to SPARQL endpoints."""

import pytest

from squirt.errors import DomainError, GraphParseError, NetworkError, ProtocolError
from squirt.events import SyncEvent
from squirt.rdf.namespaces import DC
from squirt.rdf.store import QuadStore
from squirt.rdf.terms import DEFAULT_GRAPH, IRI, Literal, Quad
from squirt.storage.cache import GraphCache
from squirt.sync.service import SyncService

from conftest import FIXED_NOW, QUERY_URL, UPDATE_URL

GRAPH = "http://example.org/graph"
INJECTED_GRAPH = "http://example.org/g> { } } ; DROP ALL ; INSERT DATA { GRAPH <http://example.org/g"

TURTLE = """\
@prefix dc: <http://purl.org/dc/terms/> .
<http://example.org/a> dc:title "Remote A" .
<http://example.org/b> dc:title "Remote B" .
"""


@pytest.fixture
def sync(store, registry, client, error_handler, events, clock):
    return SyncService(store, registry, client, error_handler, events, clock=clock)


@pytest.fixture
def active(registry):
    """Both default endpoints registered and marked active."""
    registry.initialize()
    registry.update_endpoint(QUERY_URL, status="active")
    registry.update_endpoint(UPDATE_URL, status="active")
    return registry


def _local(store: QuadStore) -> None:
    store.add(Quad(IRI("http://example.org/local"), DC["title"], Literal("Local")))


class TestLoad:
    @pytest.mark.asyncio
    async def test_requires_active_query_endpoint(self, sync, registry, sparql, notifications):
        registry.initialize()
        with pytest.raises(DomainError, match="query endpoint not configured"):
            await sync.load_from_endpoint()
        assert sparql.requests == []
        assert [n.kind for n in notifications] == ["error"]

    @pytest.mark.asyncio
    async def test_merges_into_store(self, sync, active, store, sparql, events, notifications):
        loaded: list[SyncEvent] = []
        events.graph_loaded.subscribe(loaded.append)
        _local(store)
        sparql.construct_body = TURTLE

        assert await sync.load_from_endpoint() == 2

        assert len(store) == 3
        assert store.first(subject=IRI("http://example.org/a")).graph is DEFAULT_GRAPH
        assert "CONSTRUCT" in sparql.bodies()[-1]
        assert loaded == [SyncEvent(endpoint=QUERY_URL, graph=None, quads=2, timestamp=FIXED_NOW)]
        assert notifications[-1].kind == "success"

    @pytest.mark.asyncio
    async def test_reload_adds_nothing_new(self, sync, active, store, sparql):
        sparql.construct_body = TURTLE
        await sync.load_from_endpoint()
        assert await sync.load_from_endpoint() == 0
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_named_graph(self, sync, active, store, sparql):
        sparql.construct_body = TURTLE
        await sync.load_from_endpoint(GRAPH)
        assert f"GRAPH <{GRAPH}>" in sparql.bodies()[-1]
        assert {quad.graph for quad in store} == {IRI(GRAPH)}

    @pytest.mark.asyncio
    async def test_empty_response(self, sync, active, store, sparql, events):
        loaded: list[SyncEvent] = []
        events.graph_loaded.subscribe(loaded.append)
        sparql.construct_body = ""
        assert await sync.load_from_endpoint() == 0
        assert len(store) == 0
        assert loaded == []

    @pytest.mark.asyncio
    async def test_load_is_cached(self, sync, active, store, sparql, kv):
        cache = GraphCache(kv)
        cache.attach(store)
        sparql.construct_body = TURTLE
        await sync.load_from_endpoint()
        assert len(cache.load()) == 2

    @pytest.mark.asyncio
    async def test_parse_failure_leaves_store_untouched(self, sync, active, store, sparql, notifications):
        _local(store)
        sparql.construct_body = "<http://example.org/a> dc:broken"
        with pytest.raises(GraphParseError):
            await sync.load_from_endpoint()
        assert len(store) == 1
        assert notifications[-1].kind == "error"

    @pytest.mark.asyncio
    async def test_network_failure(self, sync, active, store, sparql, notifications, error_handler):
        sparql.down.add(QUERY_URL)
        with pytest.raises(NetworkError):
            await sync.load_from_endpoint()
        assert len(store) == 0
        assert notifications[-1].kind == "error"
        assert error_handler.history[-1].details["context"] == "Loading from endpoint"

    @pytest.mark.asyncio
    async def test_invalid_graph(self, sync, active, sparql):
        with pytest.raises(DomainError):
            await sync.load_from_endpoint("not a graph iri")
        assert sparql.requests == []

    @pytest.mark.asyncio
    async def test_graph_cannot_inject_query_text(self, sync, active, sparql):
        with pytest.raises(DomainError):
            await sync.load_from_endpoint(INJECTED_GRAPH)
        assert sparql.requests == []


class TestSync:
    def test_missing_graph_raises_at_call(self, sync, active, sparql, notifications):
        with pytest.raises(DomainError, match="Graph URI must be specified"):
            sync.sync_with_endpoint(None)
        with pytest.raises(DomainError):
            sync.sync_with_endpoint("")
        assert sparql.requests == []
        assert [n.kind for n in notifications] == ["error", "error"]

    def test_malformed_graph_raises_at_call(self, sync, active):
        with pytest.raises(DomainError):
            sync.sync_with_endpoint("no scheme")

    def test_graph_cannot_inject_update_operations(self, sync, active, store, sparql):
        store.add(Quad(IRI("http://example.org/p1"), DC["title"], Literal("kept")))
        with pytest.raises(DomainError):
            sync.sync_with_endpoint(INJECTED_GRAPH)
        assert sparql.requests == []
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_requires_active_update_endpoint(self, sync, registry, store, sparql):
        registry.initialize()
        registry.update_endpoint(QUERY_URL, status="active")
        _local(store)
        with pytest.raises(DomainError, match="update endpoint not configured"):
            await sync.sync_with_endpoint(GRAPH)
        assert sparql.requests == []

    @pytest.mark.asyncio
    async def test_pushes_clear_and_insert(self, sync, active, store, sparql, events, notifications):
        synced: list[SyncEvent] = []
        events.graph_synced.subscribe(synced.append)
        _local(store)

        assert await sync.sync_with_endpoint(GRAPH) == 1

        request = sparql.requests[-1]
        body = request.content.decode("utf-8")
        assert str(request.url) == UPDATE_URL
        assert request.headers["content-type"] == "application/sparql-update"
        assert body.startswith(f"CLEAR SILENT GRAPH <{GRAPH}>;")
        assert f"INSERT DATA {{ GRAPH <{GRAPH}> {{" in body
        assert '<http://example.org/local> <http://purl.org/dc/terms/title> "Local" .' in body
        assert synced == [SyncEvent(endpoint=UPDATE_URL, graph=GRAPH, quads=1, timestamp=FIXED_NOW)]
        assert notifications[-1].kind == "success"

    @pytest.mark.asyncio
    async def test_pushes_given_store(self, sync, active, store, sparql):
        _local(store)
        other = QuadStore([
            Quad(IRI("http://example.org/x"), DC["title"], Literal("X")),
            Quad(IRI("http://example.org/y"), DC["title"], Literal("Y"), IRI(GRAPH)),
        ])
        assert await sync.sync_with_endpoint(GRAPH, other) == 2
        body = sparql.bodies()[-1]
        assert "http://example.org/x" in body
        assert "http://example.org/local" not in body

    @pytest.mark.asyncio
    async def test_empty_store_sends_nothing(self, sync, active, sparql):
        assert await sync.sync_with_endpoint(GRAPH) == 0
        assert sparql.requests == []

    @pytest.mark.asyncio
    async def test_failure_keeps_local_store(self, sync, active, store, sparql, notifications):
        _local(store)
        sparql.status[UPDATE_URL] = 500
        with pytest.raises(ProtocolError) as info:
            await sync.sync_with_endpoint(GRAPH)
        assert info.value.status_code == 500
        assert len(store) == 1
        assert notifications[-1].kind == "error"
