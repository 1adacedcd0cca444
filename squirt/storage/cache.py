"""
Write-through cache of the quad store.

The whole store is serialized to the canonical N-Quads form and written
under a single key. ``attach`` subscribes to the store's change channel
so every mutation is persisted; a failed save or clear is reported and
the in-memory store is left as it is.

Decision: D-006
"""

from __future__ import annotations

import logging

from squirt.errors import ErrorHandler, GraphParseError, PersistenceError
from squirt.events import Subscription
from squirt.rdf import codec
from squirt.rdf.store import QuadStore, StoreChange
from squirt.storage.kv import KeyValueStore

LOG = logging.getLogger("storage.cache")

CACHE_KEY = "squirt_rdf_cache"


class GraphCache:
    def __init__(
        self,
        kv: KeyValueStore,
        error_handler: ErrorHandler | None = None,
        key: str = CACHE_KEY,
    ) -> None:
        self._kv = kv
        self._errors = error_handler
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> QuadStore:
        """Read the cached store. Missing or unreadable data yields an empty store."""
        try:
            raw = self._kv.get(self._key)
        except PersistenceError as exc:
            LOG.warning("Could not read cache %s: %s", self._key, exc)
            return QuadStore()

        if raw is None:
            LOG.debug("No cached graph under %s", self._key)
            return QuadStore()

        try:
            store = codec.parse(raw.decode("utf-8"))
        except (UnicodeDecodeError, GraphParseError) as exc:
            LOG.warning("Discarding corrupt graph cache %s: %s", self._key, exc)
            return QuadStore()

        LOG.info("Loaded %d quads from cache", len(store))
        return store

    def save(self, store: QuadStore) -> bool:
        """Persist ``store``. Returns False (after reporting) when serializing or writing failed."""
        try:
            try:
                data = codec.serialize(store).encode("utf-8")
            except Exception as exc:
                raise PersistenceError(f"Could not serialize graph cache: {exc}", key=self._key) from exc
            self._kv.set(self._key, data)
        except PersistenceError as exc:
            self._report(exc, "Saving graph cache")
            return False
        LOG.debug("Saved %d quads to cache", len(store))
        return True

    def clear(self) -> bool:
        try:
            self._kv.remove(self._key)
        except PersistenceError as exc:
            self._report(exc, "Clearing graph cache")
            return False
        return True

    def attach(self, store: QuadStore) -> Subscription:
        """Save ``store`` after every change to it."""

        def _on_change(change: StoreChange) -> None:
            self.save(store)

        return store.changed.subscribe(_on_change)

    def _report(self, error: PersistenceError, context: str) -> None:
        if self._errors is not None:
            self._errors.handle(error, context=context)
        else:
            LOG.error("%s failed: %s", context, error)
