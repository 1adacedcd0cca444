"""
SPARQL 1.1 protocol client.

Uses httpx for async HTTP. Queries and updates are sent as POST bodies
(``application/sparql-query`` / ``application/sparql-update``) with
optional HTTP Basic auth. Every call has an explicit timeout.

Errors are classified at this boundary:
- transport failures and timeouts -> NetworkError
- non-2xx responses -> ProtocolError carrying status and body
- result documents that cannot be read -> ProtocolError

Decision: D-009
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

from squirt.errors import DomainError, NetworkError, ProtocolError
from squirt.rdf.terms import IRI, BlankNode, Literal, Term
from squirt.sparql.queries import PROBE_QUERY

if TYPE_CHECKING:
    from squirt.endpoints.models import Credentials

LOG = logging.getLogger("sparql.client")

DEFAULT_TIMEOUT = 30.0

QUERY_CONTENT_TYPE = "application/sparql-query"
UPDATE_CONTENT_TYPE = "application/sparql-update"
RESULTS_JSON = "application/sparql-results+json"
TURTLE = "text/turtle"

# Upper bound on response text carried inside a ProtocolError
MAX_ERROR_BODY = 2000


class QueryKind(StrEnum):
    ASK = "ask"
    SELECT = "select"
    CONSTRUCT = "construct"


_ACCEPT = {
    QueryKind.ASK: f"{RESULTS_JSON}, application/json",
    QueryKind.SELECT: f"{RESULTS_JSON}, application/json",
    QueryKind.CONSTRUCT: f"{TURTLE}, application/n-triples;q=0.9",
}

Binding = dict[str, Term]


class SparqlClient:
    """
    Async client for SPARQL query and update endpoints.

    Args:
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def query(
        self,
        url: str,
        query_text: str,
        kind: QueryKind | str = QueryKind.SELECT,
        credentials: Credentials | None = None,
    ) -> bool | list[Binding] | str:
        """
        Run a query and decode its result.

        Returns:
            ``bool`` for ASK, a list of variable bindings for SELECT and the
            raw Turtle document for CONSTRUCT.
        """
        kind = QueryKind(kind)
        response = await self._post(url, query_text, QUERY_CONTENT_TYPE, _ACCEPT[kind], credentials)

        if kind is QueryKind.CONSTRUCT:
            return response.text

        document = _json_document(url, response)
        if kind is QueryKind.ASK:
            return _boolean_result(url, document)
        return _select_bindings(url, document)

    async def ask(self, url: str, query_text: str, credentials: Credentials | None = None) -> bool:
        return await self.query(url, query_text, QueryKind.ASK, credentials)  # type: ignore[return-value]

    async def select(self, url: str, query_text: str, credentials: Credentials | None = None) -> list[Binding]:
        return await self.query(url, query_text, QueryKind.SELECT, credentials)  # type: ignore[return-value]

    async def construct(self, url: str, query_text: str, credentials: Credentials | None = None) -> str:
        return await self.query(url, query_text, QueryKind.CONSTRUCT, credentials)  # type: ignore[return-value]

    async def update(self, url: str, update_text: str, credentials: Credentials | None = None) -> None:
        await self._post(url, update_text, UPDATE_CONTENT_TYPE, "application/json, */*", credentials)
        LOG.debug("Update accepted by %s (%d chars)", url, len(update_text))

    async def probe(self, url: str, credentials: Credentials | None = None) -> bool:
        """
        Send the minimal ASK probe.

        True when the endpoint answered with a well-formed boolean, False
        when it answered 2xx with anything else. Transport and HTTP
        failures propagate as ``NetworkError`` / ``ProtocolError``.
        """
        try:
            await self.query(url, PROBE_QUERY, QueryKind.ASK, credentials)
        except ProtocolError as exc:
            if exc.status_code is not None and not 200 <= exc.status_code < 300:
                raise
            LOG.warning("Endpoint %s answered the probe with a malformed result: %s", url, exc)
            return False
        return True

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(
        self,
        url: str,
        body: str,
        content_type: str,
        accept: str,
        credentials: Credentials | None,
    ) -> httpx.Response:
        headers = {"Content-Type": content_type, "Accept": accept}
        auth = httpx.BasicAuth(credentials.user, credentials.password) if credentials else None
        try:
            response = await self._client.post(url, content=body.encode("utf-8"), headers=headers, auth=auth)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request to {url} timed out after {self._timeout}s", endpoint=url) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error when contacting {url}: {exc}", endpoint=url) from exc

        if not response.is_success:
            text = response.text[:MAX_ERROR_BODY]
            raise ProtocolError(
                f"SPARQL request failed: {response.status_code} {text}".strip(),
                status_code=response.status_code,
                body=text,
                endpoint=url,
            )
        return response


# ── Result decoding ───────────────────────────────────────────────────


def _json_document(url: str, response: httpx.Response) -> dict[str, Any]:
    try:
        document = response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"Endpoint {url} returned a result that is not JSON",
            status_code=response.status_code,
            body=response.text[:MAX_ERROR_BODY],
            endpoint=url,
        ) from exc
    if not isinstance(document, dict):
        raise ProtocolError(
            f"Endpoint {url} returned an unexpected result document",
            status_code=response.status_code,
            body=response.text[:MAX_ERROR_BODY],
            endpoint=url,
        )
    return document


def _boolean_result(url: str, document: dict[str, Any]) -> bool:
    value = document.get("boolean")
    if not isinstance(value, bool):
        raise ProtocolError(f"ASK result from {url} has no boolean", status_code=200, endpoint=url)
    return value


def _select_bindings(url: str, document: dict[str, Any]) -> list[Binding]:
    try:
        rows = document["results"]["bindings"]
        return [{name: binding_term(cell) for name, cell in row.items()} for row in rows]
    except (KeyError, TypeError, AttributeError, ValueError, DomainError) as exc:
        raise ProtocolError(f"Malformed SELECT result from {url}: {exc}", status_code=200, endpoint=url) from exc


def binding_term(cell: dict[str, Any]) -> Term:
    """Convert one SPARQL JSON results cell into a term."""
    kind = cell["type"]
    value = cell["value"]
    if kind == "uri":
        return IRI(value)
    if kind == "bnode":
        return BlankNode(value)
    if kind in ("literal", "typed-literal"):
        datatype = cell.get("datatype")
        return Literal(value, datatype=IRI(datatype) if datatype else None, language=cell.get("xml:lang"))
    raise ValueError(f"Unknown binding type {kind!r}")
