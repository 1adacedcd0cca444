"""
Synchronization between the local quad store and remote SPARQL endpoints.

Pull: CONSTRUCT against the active query endpoint, parse into a scratch
store and merge into the live store only once parsing succeeded. The
graph cache persists the merge through its store subscription.

Push: ``CLEAR SILENT GRAPH`` followed by ``INSERT DATA`` against the
active update endpoint, sent as one request. SPARQL 1.1 does not make
that sequence atomic; a failure after the CLEAR leaves the remote graph
empty and the local store untouched.

Failures are reported on the notification channel and re-raised after
classification (NetworkError, ProtocolError, DomainError).

Decision: D-013
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from squirt.domain.projection import require_url
from squirt.endpoints.models import Endpoint, EndpointType
from squirt.endpoints.registry import EndpointRegistry
from squirt.errors import DomainError, ErrorHandler
from squirt.events import EventBus, SyncEvent
from squirt.rdf import codec
from squirt.rdf.store import QuadStore
from squirt.rdf.terms import DEFAULT_GRAPH, IRI
from squirt.sparql.client import SparqlClient
from squirt.sparql.queries import clear_and_insert, construct_query

LOG = logging.getLogger("sync.service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncService:
    def __init__(
        self,
        store: QuadStore,
        registry: EndpointRegistry,
        client: SparqlClient,
        error_handler: ErrorHandler,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._registry = registry
        self._client = client
        self._errors = error_handler
        self._events = events if events is not None else EventBus()
        self._clock = clock

    async def load_from_endpoint(self, graph: str | None = None) -> int:
        """
        Pull data from the active query endpoint and merge it into the store.

        With ``graph`` only that named graph is fetched and its triples land
        in the same named graph locally; otherwise the endpoint's default
        dataset is fetched into the default graph.

        Returns:
            Number of quads that were new to the store

        Raises:
            DomainError: No active query endpoint (no request is made) or an unparsable response
            NetworkError, ProtocolError: The request failed
        """
        endpoint = self._require_endpoint(
            EndpointType.QUERY, "SPARQL query endpoint not configured or inactive for loading."
        )
        target = IRI(require_url("graph", graph)) if graph else DEFAULT_GRAPH
        LOG.info("Loading data from SPARQL endpoint: %s (Graph: %s)...", endpoint.url, graph or "Default")

        try:
            text = await self._client.construct(endpoint.url, construct_query(graph), endpoint.credentials)
            fetched = codec.parse_triples(text, graph=target)
        except Exception as exc:
            self._errors.handle(exc, context="Loading from endpoint", rethrow=True)

        if not len(fetched):
            LOG.info("No data returned from endpoint %s", endpoint.url)
            return 0

        added = self._store.add_all(fetched)
        LOG.info("Loaded %d quads (%d new) from %s", len(fetched), added, endpoint.url)
        self._events.graph_loaded.publish(
            SyncEvent(endpoint=endpoint.url, graph=graph, quads=added, timestamp=self._clock())
        )
        self._errors.notify("success", f"Loaded {added} new quads from {endpoint.label or endpoint.url}")
        return added

    def sync_with_endpoint(self, graph: str | None, store: QuadStore | None = None) -> Awaitable[int]:
        """
        Push ``store`` (default: the live store) into ``graph`` on the active update endpoint.

        ``graph`` is checked before anything else happens: a missing or
        malformed graph raises ``DomainError`` here, at call time, rather
        than from the returned awaitable.

        Returns:
            Awaitable resolving to the number of quads pushed (0 when the store is empty)
        """
        if not graph:
            error = DomainError("Graph URI must be specified for sync operation.")
            self._errors.handle(error, context="Sync")
            raise error
        target = IRI(require_url("graph", graph))
        return self._push(target, store if store is not None else self._store)

    async def _push(self, graph: IRI, store: QuadStore) -> int:
        endpoint = self._require_endpoint(
            EndpointType.UPDATE, "SPARQL update endpoint not configured or inactive for syncing."
        )
        if not len(store):
            LOG.info("No data to sync.")
            return 0

        LOG.info("Syncing data with SPARQL endpoint: %s (Graph: %s)...", endpoint.url, graph)
        try:
            update = clear_and_insert(graph, codec.serialize_triples(store))
            await self._client.update(endpoint.url, update, endpoint.credentials)
        except Exception as exc:
            self._errors.handle(exc, context="Syncing with endpoint", rethrow=True)

        count = len(store)
        LOG.info("Successfully synced %d quads to endpoint (Graph: %s)", count, graph)
        self._events.graph_synced.publish(
            SyncEvent(endpoint=endpoint.url, graph=graph.value, quads=count, timestamp=self._clock())
        )
        self._errors.notify("success", f"Synced {count} quads to {endpoint.label or endpoint.url}")
        return count

    def _require_endpoint(self, type: EndpointType, message: str) -> Endpoint:
        endpoint = self._registry.get_active_endpoint(type)
        if endpoint is None:
            error = DomainError(message, endpoint_type=type.value)
            self._errors.handle(error, context="Sync")
            raise error
        return endpoint
