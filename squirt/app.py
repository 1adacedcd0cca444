"""
Composition root.

``build_app`` wires the quad store, cache, projection, SPARQL client,
endpoint registry, health monitor and sync service around one event
bus and one error handler. Nothing in the core reaches for globals; every
collaborator is handed in here.

Usage:
    app = build_app()
    await app.start()
    app.posts.create_post({"type": "entry", "content": "hello"})
    await app.sync.sync_with_endpoint("http://example.org/graph")
    await app.stop()

Decision: D-015
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from squirt.config import Settings
from squirt.domain.projection import PostProjection
from squirt.endpoints.monitor import HealthMonitor
from squirt.endpoints.registry import EndpointRegistry
from squirt.errors import ErrorHandler
from squirt.events import EventBus, Subscription
from squirt.rdf.store import QuadStore
from squirt.sparql.client import SparqlClient
from squirt.storage.cache import GraphCache
from squirt.storage.kv import KeyValueStore, build_kv_store
from squirt.sync.service import SyncService

LOG = logging.getLogger("squirt.app")


@dataclass
class SquirtApp:
    settings: Settings
    events: EventBus
    errors: ErrorHandler
    kv: KeyValueStore
    store: QuadStore
    cache: GraphCache
    posts: PostProjection
    client: SparqlClient
    registry: EndpointRegistry
    monitor: HealthMonitor
    sync: SyncService
    _cache_subscription: Subscription | None = field(default=None, repr=False)
    _started: bool = field(default=False, repr=False)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self, monitor: bool = True) -> None:
        """Bootstrap endpoints, hook the cache up to the store and start health monitoring."""
        if self._started:
            return
        self.registry.initialize(self.settings.configured_endpoints())
        self._cache_subscription = self.cache.attach(self.store)
        if monitor:
            self.monitor.start()
        self._started = True
        LOG.info(
            "squirt started: %d quads, %d endpoints, storage=%s",
            len(self.store),
            len(self.registry),
            self.settings.storage_backend,
        )

    async def stop(self) -> None:
        """Stop monitoring, release HTTP and storage resources. Safe to call more than once."""
        if not self._started:
            return
        self._started = False
        await self.monitor.stop()
        await self.registry.cancel_probes()
        if self._cache_subscription is not None:
            self._cache_subscription.cancel()
            self._cache_subscription = None
        await self.client.close()
        self.kv.close()
        LOG.info("squirt stopped")


def build_app(
    settings: Settings | None = None,
    *,
    kv: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SquirtApp:
    """
    Build an application from ``settings`` (default: from the environment).

    Args:
        settings: Resolved settings
        kv: Key-value store to use instead of the configured backend
        transport: httpx transport for the SPARQL client (tests)
    """
    settings = settings or Settings.from_env()
    events = EventBus()
    errors = ErrorHandler(events.notifications)
    kv = kv if kv is not None else build_kv_store(settings.storage_backend, settings.data_dir)

    cache = GraphCache(kv, errors)
    store = cache.load()
    client = SparqlClient(timeout=settings.http_timeout, transport=transport)
    registry = EndpointRegistry(kv, client, events, errors)

    return SquirtApp(
        settings=settings,
        events=events,
        errors=errors,
        kv=kv,
        store=store,
        cache=cache,
        posts=PostProjection(store, events),
        client=client,
        registry=registry,
        monitor=HealthMonitor(registry, events, interval=settings.health_interval),
        sync=SyncService(store, registry, client, errors, events),
    )
