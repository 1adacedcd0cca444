"""
Endpoint registry with health-check state machine.

Holds the ordered set of SPARQL endpoints keyed by URL, persists every
mutation through the key-value capability and runs the probes that move
endpoints between ``checking``, ``active`` and ``inactive``.

Persistence failures are reported through the ErrorHandler and never
interrupt the in-memory operation that triggered them.

Decision: D-010
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from squirt.domain.ids import format_timestamp
from squirt.endpoints.bootstrap import DEFAULT_ENDPOINTS, resolve_bootstrap_endpoints
from squirt.endpoints.models import (
    ALLOWED_TRANSITIONS,
    Credentials,
    Endpoint,
    EndpointCheckResult,
    EndpointStatus,
    EndpointType,
    HealthSummary,
)
from squirt.errors import ConfigurationError, ErrorHandler, PersistenceError
from squirt.events import EndpointEvent, EndpointStatusEvent, EventBus
from squirt.sparql.client import SparqlClient
from squirt.storage.kv import KeyValueStore

LOG = logging.getLogger("endpoints.registry")

ENDPOINTS_KEY = "endpoints"
LAST_USED_KEY = "endpoints.last_used"

_MUTABLE_FIELDS = frozenset({"label", "type", "status", "last_checked", "last_error", "credentials"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EndpointRegistry:
    """
    Registry of SPARQL endpoints.

    Args:
        kv: Key-value store the endpoint list is persisted to
        client: SPARQL client used for health probes
        events: Event bus for endpoint notifications
        error_handler: Receives persistence failures
        defaults: Endpoints used when nothing else is configured
    """

    def __init__(
        self,
        kv: KeyValueStore,
        client: SparqlClient,
        events: EventBus | None = None,
        error_handler: ErrorHandler | None = None,
        defaults: Iterable[Endpoint] = DEFAULT_ENDPOINTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kv = kv
        self._client = client
        self._events = events if events is not None else EventBus()
        self._errors = error_handler
        self._defaults = tuple(defaults)
        self._clock = clock
        self._endpoints: dict[str, Endpoint] = {}
        self._pending: set[asyncio.Task[bool]] = set()

    # ── Bootstrap ─────────────────────────────────────────────────────

    def initialize(self, configured: Iterable[Endpoint] | None = None) -> list[Endpoint]:
        """Seed the registry (last used, persisted, configured, defaults) and persist the result."""
        endpoints = resolve_bootstrap_endpoints(
            last_used=self._load_last_used(),
            persisted=self._load_persisted(),
            configured=configured or (),
            defaults=self._defaults,
        )
        self._endpoints = {endpoint.url: endpoint for endpoint in endpoints}
        self._save()
        LOG.info("Loaded %d endpoints", len(endpoints))
        return self.endpoints()

    def _load_persisted(self) -> list[Endpoint]:
        raw = self._read(ENDPOINTS_KEY)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
            return [Endpoint.model_validate(item) for item in data]
        except (ValueError, TypeError, ValidationError) as exc:
            LOG.warning("Invalid endpoint data found in storage, ignoring: %s", exc)
            self._remove(ENDPOINTS_KEY)
            return []

    def _load_last_used(self) -> Endpoint | None:
        raw = self._read(LAST_USED_KEY)
        if raw is None:
            return None
        try:
            return Endpoint.model_validate_json(raw)
        except (ValueError, ValidationError) as exc:
            LOG.warning("Invalid last-used endpoint in storage, ignoring: %s", exc)
            self._remove(LAST_USED_KEY)
            return None

    # ── Queries ───────────────────────────────────────────────────────

    def endpoints(self) -> list[Endpoint]:
        return list(self._endpoints.values())

    def get_endpoint(self, url: str) -> Endpoint | None:
        return self._endpoints.get(url)

    def get_active_endpoint(self, type: EndpointType | str) -> Endpoint | None:
        """First active endpoint of ``type`` in registration order."""
        wanted = EndpointType(type)
        for endpoint in self._endpoints.values():
            if endpoint.type == wanted and endpoint.status == EndpointStatus.ACTIVE:
                return endpoint
        return None

    def __len__(self) -> int:
        return len(self._endpoints)

    # ── Mutation ──────────────────────────────────────────────────────

    def add_endpoint(
        self,
        url: str,
        label: str,
        type: EndpointType | str = EndpointType.QUERY,
        credentials: Credentials | dict[str, str] | None = None,
    ) -> Endpoint:
        """
        Register a new endpoint in ``unknown`` status.

        A probe is scheduled right away when called from inside a running
        event loop; ``wait_for_probes`` awaits it.

        Raises:
            ConfigurationError: URL already registered or malformed fields
        """
        if url in self._endpoints:
            raise ConfigurationError(f"Endpoint with URL {url} already exists", url=url)
        try:
            endpoint = Endpoint(url=url, label=label, type=type, credentials=credentials)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid endpoint {url}: {exc.error_count()} error(s)", url=url) from exc

        self._endpoints[url] = endpoint
        self._save()
        LOG.info("Added %s endpoint %s", endpoint.type, url)
        self._events.endpoint_added.publish(EndpointEvent(url=url))
        self._schedule_probe(url)
        return endpoint

    def remove_endpoint(self, url: str) -> bool:
        if self._endpoints.pop(url, None) is None:
            return False
        self._save()
        LOG.info("Removed endpoint %s", url)
        self._events.endpoint_removed.publish(EndpointEvent(url=url))
        return True

    def update_endpoint(self, url: str, **updates: Any) -> Endpoint:
        """
        Merge ``updates`` into the endpoint at ``url``.

        The URL itself cannot change. A transition into ``active`` records
        the endpoint as last used.

        Raises:
            ConfigurationError: Unknown URL, URL change or invalid field values
        """
        current = self._endpoints.get(url)
        if current is None:
            raise ConfigurationError(f"Endpoint with URL {url} not found", url=url)
        if "url" in updates and updates.pop("url") != url:
            raise ConfigurationError("Endpoint URL cannot be changed", url=url)
        unknown = set(updates) - _MUTABLE_FIELDS
        if unknown:
            raise ConfigurationError(f"Unknown endpoint fields: {sorted(unknown)}", url=url)

        try:
            updated = Endpoint.model_validate({**current.model_dump(), **updates})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid update for {url}: {exc.error_count()} error(s)", url=url) from exc

        if updated.status != current.status and updated.status not in ALLOWED_TRANSITIONS[current.status]:
            LOG.debug("Endpoint %s moved %s -> %s outside a health check", url, current.status, updated.status)

        self._endpoints[url] = updated
        self._save()
        self._events.endpoint_updated.publish(EndpointEvent(url=url, updates=updates))

        if updated.status != current.status:
            if updated.status == EndpointStatus.ACTIVE:
                self._save_last_used(updated)
            self._events.endpoint_status_changed.publish(
                EndpointStatusEvent(url=url, status=updated.status, error=updated.last_error)
            )
        return updated

    def clear_storage(self) -> None:
        """Forget every endpoint, in memory and persisted."""
        self._endpoints.clear()
        self._remove(ENDPOINTS_KEY)
        self._remove(LAST_USED_KEY)
        LOG.info("Cleared endpoint storage")

    # ── Health checks ─────────────────────────────────────────────────

    async def check_endpoint(self, url: str) -> bool:
        """
        Probe one endpoint: checking -> active | inactive.

        Probe failures mark the endpoint inactive with ``last_error``; they
        are not raised.

        Raises:
            ConfigurationError: Unknown URL
        """
        endpoint = self._endpoints.get(url)
        if endpoint is None:
            raise ConfigurationError(f"Endpoint with URL {url} not found", url=url)
        self.update_endpoint(url, status=EndpointStatus.CHECKING)
        result = await self._probe(endpoint)
        return result.is_active

    async def check_endpoints_health(self) -> HealthSummary:
        """Probe every endpoint concurrently. One failing endpoint never affects the others."""
        endpoints = self.endpoints()
        if not endpoints:
            LOG.info("No endpoints to check")
            summary = HealthSummary()
            self._events.endpoints_checked.publish(summary)
            return summary

        LOG.info("Checking health of %d endpoints...", len(endpoints))
        for endpoint in endpoints:
            self.update_endpoint(endpoint.url, status=EndpointStatus.CHECKING)

        results = await asyncio.gather(*(self._probe(endpoint) for endpoint in endpoints))
        summary = HealthSummary.from_results(list(results))
        LOG.info(
            "Endpoint health: %d/%d active (query=%s, update=%s)",
            sum(1 for r in results if r.is_active),
            len(results),
            summary.query_active,
            summary.update_active,
        )
        self._events.endpoints_checked.publish(summary)
        return summary

    async def _probe(self, endpoint: Endpoint) -> EndpointCheckResult:
        error: str | None = None
        try:
            active = await self._client.probe(endpoint.url, endpoint.credentials)
        except Exception as exc:
            LOG.warning("Error checking endpoint %s: %s", endpoint.url, exc)
            active = False
            error = str(exc) or type(exc).__name__

        if endpoint.url in self._endpoints:
            self.update_endpoint(
                endpoint.url,
                status=EndpointStatus.ACTIVE if active else EndpointStatus.INACTIVE,
                last_checked=format_timestamp(self._clock()),
                last_error=error,
            )
        return EndpointCheckResult(
            url=endpoint.url, label=endpoint.label, type=endpoint.type, is_active=active, error=error
        )

    def _schedule_probe(self, url: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._checked_quietly(url))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _checked_quietly(self, url: str) -> bool:
        try:
            return await self.check_endpoint(url)
        except ConfigurationError:
            LOG.debug("Endpoint %s was removed before its first probe", url)
            return False

    async def wait_for_probes(self) -> None:
        """Await probes scheduled by ``add_endpoint``."""
        pending = [task for task in self._pending if not task.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._pending if not task.done()]

    async def cancel_probes(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()

    # ── Persistence ───────────────────────────────────────────────────

    def _save(self) -> None:
        payload = json.dumps([endpoint.model_dump(mode="json") for endpoint in self._endpoints.values()])
        self._write(ENDPOINTS_KEY, payload.encode("utf-8"))

    def _save_last_used(self, endpoint: Endpoint) -> None:
        self._write(LAST_USED_KEY, endpoint.model_dump_json().encode("utf-8"))

    def _read(self, key: str) -> bytes | None:
        try:
            return self._kv.get(key)
        except PersistenceError as exc:
            self._report(exc, f"Loading {key}")
            return None

    def _write(self, key: str, value: bytes) -> None:
        try:
            self._kv.set(key, value)
        except PersistenceError as exc:
            self._report(exc, f"Saving {key}")

    def _remove(self, key: str) -> None:
        try:
            self._kv.remove(key)
        except PersistenceError as exc:
            self._report(exc, f"Removing {key}")

    def _report(self, exc: PersistenceError, context: str) -> None:
        if self._errors is not None:
            self._errors.handle(exc, context=context, show_to_user=False)
        else:
            LOG.error("%s failed: %s", context, exc)
