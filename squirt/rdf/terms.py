"""
RDF term and quad model.

Terms form a closed union: ``IRI``, ``Literal`` and ``BlankNode``. All
three are frozen dataclasses, so they compare and hash structurally and
can be used directly as index keys. ``DEFAULT_GRAPH`` stands in for the
absent graph component of a quad. IRIs must be absolute and free of
the characters SPARQL and N-Quads cannot carry between angle brackets;
anything else raises ``DomainError``.

Decision: D-001
"""

from __future__ import annotations

import itertools
import re
import uuid
from dataclasses import dataclass
from typing import NamedTuple, Union

from squirt.errors import DomainError

# Absolute IRIs only, without the characters the IRIREF production excludes
_SCHEME = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")
_FORBIDDEN = re.compile(r'[\x00-\x20<>"{}|^`\\]')


@dataclass(frozen=True, slots=True)
class IRI:
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise DomainError("IRI value must be a non-empty string", value=self.value)
        if not _SCHEME.match(self.value):
            raise DomainError(f"IRI must be absolute: {self.value!r}", value=self.value)
        if _FORBIDDEN.search(self.value):
            raise DomainError(f"IRI contains characters not allowed in an IRI: {self.value!r}", value=self.value)

    def __str__(self) -> str:
        return self.value

    def n3(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True, slots=True)
class Literal:
    value: str
    datatype: IRI | None = None
    language: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise DomainError("Literal value must be a string", value=self.value)
        if self.datatype is not None and self.language is not None:
            raise DomainError("Literal cannot carry both a datatype and a language tag", value=self.value)

    def __str__(self) -> str:
        return self.value


_bnode_counter = itertools.count()
_bnode_prefix = uuid.uuid4().hex[:8]


@dataclass(frozen=True, slots=True)
class BlankNode:
    id: str

    @classmethod
    def fresh(cls) -> "BlankNode":
        """A blank node with a label unique within this process."""
        return cls(f"b{_bnode_prefix}{next(_bnode_counter)}")

    def __str__(self) -> str:
        return f"_:{self.id}"


class _DefaultGraph:
    """Singleton marking the default (unnamed) graph."""

    _instance: "_DefaultGraph | None" = None

    def __new__(cls) -> "_DefaultGraph":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DEFAULT_GRAPH"

    def __reduce__(self) -> str:
        return "DEFAULT_GRAPH"


DEFAULT_GRAPH = _DefaultGraph()

Term = Union[IRI, Literal, BlankNode]
Subject = Union[IRI, BlankNode]
Graph = Union[IRI, _DefaultGraph]


class Quad(NamedTuple):
    subject: Subject
    predicate: IRI
    object: Term
    graph: Graph = DEFAULT_GRAPH

    @classmethod
    def of(cls, subject: Subject, predicate: IRI, obj: Term, graph: Graph | None = None) -> "Quad":
        """Build a quad, checking that each position holds an allowed term kind."""
        if not isinstance(subject, (IRI, BlankNode)):
            raise DomainError("Quad subject must be an IRI or blank node", subject=repr(subject))
        if not isinstance(predicate, IRI):
            raise DomainError("Quad predicate must be an IRI", predicate=repr(predicate))
        if not isinstance(obj, (IRI, Literal, BlankNode)):
            raise DomainError("Quad object must be an RDF term", object=repr(obj))
        if graph is None:
            graph = DEFAULT_GRAPH
        if not isinstance(graph, (IRI, _DefaultGraph)):
            raise DomainError("Quad graph must be an IRI or DEFAULT_GRAPH", graph=repr(graph))
        return cls(subject, predicate, obj, graph)

    @property
    def in_default_graph(self) -> bool:
        return self.graph is DEFAULT_GRAPH
