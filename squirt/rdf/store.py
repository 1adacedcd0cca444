"""
In-memory quad store.

A set of ``Quad`` records with three auxiliary indices (subject,
predicate, graph). ``match`` starts from the smallest index bucket that
applies to the pattern and filters the remaining positions, so lookups
with any bound subject, predicate or graph avoid a full scan.

The store is not thread-safe. Callers sequence dependent mutations.

Decision: D-002
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Iterator

from squirt.events import Channel
from squirt.rdf.terms import Graph, IRI, Quad, Subject, Term

LOG = logging.getLogger("rdf.store")


@dataclass(frozen=True)
class StoreChange:
    added: int = 0
    removed: int = 0


class QuadStore:
    """Mutable set of quads with pattern lookup."""

    def __init__(self, quads: Iterable[Quad] = ()) -> None:
        self._quads: set[Quad] = set()
        self._by_subject: dict[Subject, set[Quad]] = defaultdict(set)
        self._by_predicate: dict[IRI, set[Quad]] = defaultdict(set)
        self._by_graph: dict[Graph, set[Quad]] = defaultdict(set)
        self.changed: Channel[StoreChange] = Channel("store_changed")
        for quad in quads:
            self._insert(quad)

    # ── Mutation ──────────────────────────────────────────────────────

    def add(self, quad: Quad) -> bool:
        """Add a quad. Returns False (and changes nothing) if it is already present."""
        if not self._insert(quad):
            return False
        self.changed.publish(StoreChange(added=1))
        return True

    def add_all(self, quads: Iterable[Quad]) -> int:
        """Add many quads with a single change notification. Returns how many were new."""
        added = sum(1 for quad in quads if self._insert(quad))
        if added:
            self.changed.publish(StoreChange(added=added))
        return added

    def delete(self, quad: Quad) -> bool:
        if not self._remove(quad):
            return False
        self.changed.publish(StoreChange(removed=1))
        return True

    def delete_all(self, quads: Iterable[Quad]) -> int:
        removed = sum(1 for quad in list(quads) if self._remove(quad))
        if removed:
            self.changed.publish(StoreChange(removed=removed))
        return removed

    def remove_matches(
        self,
        subject: Subject | None = None,
        predicate: IRI | None = None,
        obj: Term | None = None,
        graph: Graph | None = None,
    ) -> int:
        return self.delete_all(self.match(subject, predicate, obj, graph))

    def clear(self) -> None:
        removed = len(self._quads)
        self._quads.clear()
        self._by_subject.clear()
        self._by_predicate.clear()
        self._by_graph.clear()
        if removed:
            self.changed.publish(StoreChange(removed=removed))

    def _insert(self, quad: Quad) -> bool:
        if quad in self._quads:
            return False
        self._quads.add(quad)
        self._by_subject[quad.subject].add(quad)
        self._by_predicate[quad.predicate].add(quad)
        self._by_graph[quad.graph].add(quad)
        return True

    def _remove(self, quad: Quad) -> bool:
        if quad not in self._quads:
            return False
        self._quads.discard(quad)
        for index, key in (
            (self._by_subject, quad.subject),
            (self._by_predicate, quad.predicate),
            (self._by_graph, quad.graph),
        ):
            bucket = index.get(key)
            if bucket is not None:
                bucket.discard(quad)
                if not bucket:
                    del index[key]
        return True

    # ── Lookup ────────────────────────────────────────────────────────

    def match(
        self,
        subject: Subject | None = None,
        predicate: IRI | None = None,
        obj: Term | None = None,
        graph: Graph | None = None,
    ) -> list[Quad]:
        """
        Return the quads matching a pattern.

        ``None`` in any position is a wildcard. Pass ``DEFAULT_GRAPH`` as
        ``graph`` to restrict the lookup to the default graph.
        """
        buckets: list[set[Quad]] = []
        if subject is not None:
            buckets.append(self._by_subject.get(subject, set()))
        if predicate is not None:
            buckets.append(self._by_predicate.get(predicate, set()))
        if graph is not None:
            buckets.append(self._by_graph.get(graph, set()))

        candidates = min(buckets, key=len) if buckets else self._quads
        if not candidates:
            return []

        return [
            q
            for q in candidates
            if (subject is None or q.subject == subject)
            and (predicate is None or q.predicate == predicate)
            and (obj is None or q.object == obj)
            and (graph is None or q.graph == graph)
        ]

    def first(
        self,
        subject: Subject | None = None,
        predicate: IRI | None = None,
        obj: Term | None = None,
        graph: Graph | None = None,
    ) -> Quad | None:
        matches = self.match(subject, predicate, obj, graph)
        return matches[0] if matches else None

    def subjects(self) -> set[Subject]:
        return set(self._by_subject)

    def graphs(self) -> set[Graph]:
        return set(self._by_graph)

    def size(self) -> int:
        return len(self._quads)

    def copy(self) -> "QuadStore":
        return QuadStore(self._quads)

    def __len__(self) -> int:
        return len(self._quads)

    def __contains__(self, quad: object) -> bool:
        return quad in self._quads

    def __iter__(self) -> Iterator[Quad]:
        return iter(list(self._quads))

    def __repr__(self) -> str:
        return f"QuadStore(size={len(self._quads)})"
