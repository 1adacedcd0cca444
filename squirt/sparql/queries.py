"""SPARQL query and update text used by the health probe and the sync service."""

from __future__ import annotations

from squirt.rdf.terms import IRI

PROBE_QUERY = "ASK { ?s ?p ?o } LIMIT 1"


def _graph_ref(graph: IRI | str) -> str:
    # IRI() rejects anything that could close the angle brackets
    return (graph if isinstance(graph, IRI) else IRI(graph)).n3()


def construct_query(graph: IRI | str | None = None) -> str:
    """CONSTRUCT every triple, either of the default dataset or of one named graph."""
    if graph:
        return f"CONSTRUCT {{ ?s ?p ?o }} WHERE {{ GRAPH {_graph_ref(graph)} {{ ?s ?p ?o }} }}"
    return "CONSTRUCT { ?s ?p ?o } WHERE { ?s ?p ?o }"


def clear_and_insert(graph: IRI | str, ntriples: str) -> str:
    """
    Replace the contents of ``graph`` with ``ntriples``.

    Both operations travel in one request but SPARQL 1.1 does not make the
    sequence atomic: a failure after CLEAR leaves the graph empty.
    """
    ref = _graph_ref(graph)
    return f"CLEAR SILENT GRAPH {ref};\nINSERT DATA {{ GRAPH {ref} {{\n{ntriples.strip()}\n}} }}"
