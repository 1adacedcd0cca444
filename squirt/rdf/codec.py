"""
Graph serialization via rdflib.

Three textual forms are used:

- canonical (N-Quads): the cache format. Named graphs survive, every
  typed literal is written as ``"lexical"^^<datatype>`` (Turtle-style
  shorthand would rewrite ``"01"^^xsd:integer`` as ``1``) and blank
  nodes are written as skolem IRIs so their labels survive a round trip.
- Turtle: what CONSTRUCT responses are parsed from.
- N-Triples: the body of ``INSERT DATA`` updates (valid SPARQL syntax
  inside a ``GRAPH`` block, no prefix declarations needed).

rdflib normalizes typed literals on creation by default, which would
rewrite e.g. ``2024-01-01T00:00:00.000Z``. Parsing runs with
normalization switched off so lexical forms come back untouched.

Decision: D-003
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

import rdflib
from rdflib import BNode, URIRef
from rdflib import Literal as RDFLiteral
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID, Dataset
from rdflib.graph import Graph as RDFGraph

from squirt.errors import DomainError, GraphParseError
from squirt.rdf.namespaces import PREFIXES
from squirt.rdf.store import QuadStore
from squirt.rdf.terms import DEFAULT_GRAPH, IRI, BlankNode, Graph, Literal, Quad, Term

LOG = logging.getLogger("rdf.codec")

CANONICAL_FORMAT = "nquads"
WIRE_FORMAT = "turtle"
INSERT_FORMAT = "nt"

# Skolem IRIs for blank nodes in the canonical form (RDF 1.1 §3.5 style).
GENID_PREFIX = "urn:x-squirt:genid:"


@contextmanager
def _lexical_literals() -> Iterator[None]:
    previous = rdflib.NORMALIZE_LITERALS
    rdflib.NORMALIZE_LITERALS = False
    try:
        yield
    finally:
        rdflib.NORMALIZE_LITERALS = previous


# ── Term conversion ───────────────────────────────────────────────────


def to_rdflib(term: Term, skolemize: bool = False) -> rdflib.term.Node:
    if isinstance(term, IRI):
        return URIRef(term.value)
    if isinstance(term, BlankNode):
        if skolemize:
            return URIRef(GENID_PREFIX + term.id)
        return BNode(term.id)
    if isinstance(term, Literal):
        datatype = URIRef(term.datatype.value) if term.datatype is not None else None
        return RDFLiteral(term.value, lang=term.language, datatype=datatype, normalize=False)
    raise TypeError(f"Not an RDF term: {term!r}")


def from_rdflib(node: rdflib.term.Node) -> Term:
    if isinstance(node, URIRef):
        value = str(node)
        if value.startswith(GENID_PREFIX):
            return BlankNode(value[len(GENID_PREFIX):])
        return IRI(value)
    if isinstance(node, BNode):
        return BlankNode(str(node))
    if isinstance(node, RDFLiteral):
        datatype = IRI(str(node.datatype)) if node.datatype is not None else None
        return Literal(str(node), datatype=datatype, language=node.language)
    raise TypeError(f"Unsupported rdflib node: {node!r}")


def _graph_from_context(context: object) -> Graph:
    if context is None:
        return DEFAULT_GRAPH
    identifier = getattr(context, "identifier", context)
    if identifier is None or identifier == DATASET_DEFAULT_GRAPH_ID:
        return DEFAULT_GRAPH
    if isinstance(identifier, BNode):
        # Blank graph labels carry no meaning across documents.
        return DEFAULT_GRAPH
    return IRI(str(identifier))


def _bind_prefixes(graph: RDFGraph) -> None:
    for prefix, namespace in PREFIXES.items():
        graph.bind(prefix, rdflib.Namespace(str(namespace)), override=True, replace=True)


# ── Canonical (cache) form ───────────────────────────────────────────


def serialize(store: Iterable[Quad]) -> str:
    """Serialize quads to the canonical N-Quads form."""
    dataset = Dataset()
    for quad in store:
        triple = (
            to_rdflib(quad.subject, skolemize=True),
            to_rdflib(quad.predicate),
            to_rdflib(quad.object, skolemize=True),
        )
        if quad.graph is DEFAULT_GRAPH:
            dataset.default_context.add(triple)
        else:
            dataset.graph(URIRef(quad.graph.value)).add(triple)
    return dataset.serialize(format=CANONICAL_FORMAT)


def parse(text: str) -> QuadStore:
    """Parse the canonical N-Quads form into a new store."""
    store = QuadStore()
    if not text or not text.strip():
        return store

    dataset = Dataset()
    try:
        with _lexical_literals():
            # publicID pins graph-less lines to the default graph on every rdflib version
            dataset.parse(data=text, format=CANONICAL_FORMAT, publicID=str(DATASET_DEFAULT_GRAPH_ID))
        store.add_all(
            Quad(from_rdflib(s), from_rdflib(p), from_rdflib(o), _graph_from_context(c))  # type: ignore[arg-type]
            for s, p, o, c in dataset.quads((None, None, None, None))
        )
    except DomainError as exc:
        raise GraphParseError(f"Invalid term in {CANONICAL_FORMAT} data: {exc}") from exc
    except Exception as exc:
        raise GraphParseError(f"Failed to parse {CANONICAL_FORMAT} data: {exc}") from exc
    return store


# ── Wire forms ────────────────────────────────────────────────────────


def parse_triples(text: str, fmt: str = WIRE_FORMAT, graph: Graph = DEFAULT_GRAPH) -> QuadStore:
    """Parse a triple document (e.g. a CONSTRUCT result) into a new store under ``graph``."""
    store = QuadStore()
    if not text or not text.strip():
        return store

    parsed = RDFGraph()
    try:
        with _lexical_literals():
            parsed.parse(data=text, format=fmt)
        store.add_all(
            Quad(from_rdflib(s), from_rdflib(p), from_rdflib(o), graph)  # type: ignore[arg-type]
            for s, p, o in parsed
        )
    except DomainError as exc:
        raise GraphParseError(f"Invalid term in {fmt} data: {exc}") from exc
    except Exception as exc:
        raise GraphParseError(f"Failed to parse {fmt} data: {exc}") from exc
    LOG.debug("Parsed %d triples from %s", len(store), fmt)
    return store


def serialize_triples(quads: Iterable[Quad], fmt: str = INSERT_FORMAT) -> str:
    """Serialize the triples of ``quads`` (graph component dropped)."""
    graph = RDFGraph()
    if fmt != "nt":
        _bind_prefixes(graph)
    for quad in quads:
        graph.add((to_rdflib(quad.subject), to_rdflib(quad.predicate), to_rdflib(quad.object)))
    return graph.serialize(format=fmt)
