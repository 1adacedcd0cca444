"""
SPARQL 1.1 protocol client and the query text it sends.

Decision: D-009
"""

from squirt.sparql.client import SparqlClient, QueryKind
from squirt.sparql.queries import PROBE_QUERY, clear_and_insert, construct_query

__all__ = [
    "PROBE_QUERY",
    "QueryKind",
    "SparqlClient",
    "clear_and_insert",
    "construct_query",
]
