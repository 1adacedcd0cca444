"""Tests for squirt.app — composition root and lifecycle."""

import pytest

from squirt.app import build_app
from squirt.config import Settings
from squirt.endpoints.models import EndpointStatus
from squirt.storage.cache import CACHE_KEY
from squirt.storage.kv import MemoryKeyValueStore, SQLiteKeyValueStore

from conftest import QUERY_URL, UPDATE_URL, wait_for

GRAPH = "http://example.org/graph"


@pytest.fixture
def settings():
    return Settings(storage_backend="memory", health_interval=3600.0)


class TestBuildApp:
    def test_wiring(self, settings, sparql):
        app = build_app(settings, transport=sparql.transport)
        assert isinstance(app.kv, MemoryKeyValueStore)
        assert app.posts.store is app.store
        assert app.client.timeout == settings.http_timeout
        assert app.monitor.interval == 3600.0
        assert not app.started

    def test_sqlite_backend(self, tmp_path, sparql):
        app = build_app(Settings(data_dir=tmp_path), transport=sparql.transport)
        assert isinstance(app.kv, SQLiteKeyValueStore)
        app.kv.close()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_seeds_default_endpoints(self, settings, sparql):
        app = build_app(settings, transport=sparql.transport)
        await app.start(monitor=False)
        assert [e.url for e in app.registry.endpoints()] == [QUERY_URL, UPDATE_URL]
        assert app.started
        assert sparql.requests == []
        await app.stop()

    @pytest.mark.asyncio
    async def test_posts_survive_restart(self, settings, sparql):
        kv = MemoryKeyValueStore()
        app = build_app(settings, kv=kv, transport=sparql.transport)
        await app.start(monitor=False)
        created = app.posts.create_post({"type": "entry", "content": "persist me"})
        assert kv.get(CACHE_KEY) is not None
        await app.stop()

        again = build_app(settings, kv=kv, transport=sparql.transport)
        post = again.posts.get_post(created.id)
        assert post is not None
        assert post.content == "persist me"

    @pytest.mark.asyncio
    async def test_monitor_activates_endpoints_and_sync_works(self, settings, sparql):
        app = build_app(settings, transport=sparql.transport)
        await app.start()
        await wait_for(lambda: all(e.status == EndpointStatus.ACTIVE for e in app.registry.endpoints()))

        app.posts.create_post({"type": "entry", "content": "to the server"})
        assert await app.sync.sync_with_endpoint(GRAPH) > 0
        assert "INSERT DATA" in sparql.bodies()[-1]
        await app.stop()
        assert not app.monitor.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, settings, sparql):
        app = build_app(settings, transport=sparql.transport)
        await app.stop()
        await app.start(monitor=False)
        await app.stop()
        await app.stop()
        assert not app.started
