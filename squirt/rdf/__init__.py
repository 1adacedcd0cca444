"""
RDF layer: terms, vocabularies, the in-memory quad store and its codecs.

Usage:
    from squirt.rdf import IRI, Literal, Quad, QuadStore, SQUIRT

    store = QuadStore()
    store.add(Quad.of(IRI("http://example.org/a"), SQUIRT["content"], Literal("hello")))
    store.match(predicate=SQUIRT["content"])

Decision: D-001, D-002, D-003
"""

from __future__ import annotations

from squirt.rdf.namespaces import DC, FOAF, RDF, RDFS, SQUIRT, XSD, Namespace
from squirt.rdf.store import QuadStore, StoreChange
from squirt.rdf.terms import DEFAULT_GRAPH, IRI, BlankNode, Graph, Literal, Quad, Term

__all__ = [
    "DC",
    "DEFAULT_GRAPH",
    "FOAF",
    "IRI",
    "RDF",
    "RDFS",
    "SQUIRT",
    "XSD",
    "BlankNode",
    "Graph",
    "Literal",
    "Namespace",
    "Quad",
    "QuadStore",
    "StoreChange",
    "Term",
]
