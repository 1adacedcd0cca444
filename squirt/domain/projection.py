"""
Post projection over the quad store.

Posts are never stored as records. ``create_post`` turns a ``PostInput``
into quads; ``get_post``/``get_posts`` compute ``Post`` values back out of
the store using the type→predicate table in ``squirt.domain.models``.

Creates and updates are all-or-nothing: every field is validated and the
full quad list is built before the store is touched.

Decision: D-005
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from pydantic import AnyUrl, TypeAdapter, ValidationError

from squirt.domain.ids import format_timestamp, generate_post_id, parse_timestamp
from squirt.domain.models import (
    ACCOUNT_HOMEPAGE_PREDICATE,
    ACCOUNT_PREDICATE,
    CONTENT_REQUIRED,
    POST_TYPES,
    XSD_DATETIME,
    CreatedPost,
    FieldMapping,
    Post,
    PostInput,
    PostType,
    fields_for,
)
from squirt.errors import DomainError
from squirt.events import EventBus, PostEvent
from squirt.rdf.namespaces import DC, FOAF, RDF, SQUIRT
from squirt.rdf.store import QuadStore
from squirt.rdf.terms import DEFAULT_GRAPH, IRI, BlankNode, Graph, Literal, Quad, Term

LOG = logging.getLogger("domain.projection")

_URL = TypeAdapter(AnyUrl)

RDF_TYPE = RDF["type"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _mbox_iri(value: str) -> str:
    return value if value.startswith("mailto:") else f"mailto:{value}"


def require_url(field_name: str, value: str) -> str:
    """Raise ``DomainError`` unless ``value`` is an absolute URL that is also a valid IRI."""
    try:
        IRI(value)
        _URL.validate_python(value)
    except (DomainError, ValidationError) as exc:
        raise DomainError(f"Invalid URL for {field_name}: {value!r}", field=field_name, value=value) from exc
    return value


class PostProjection:
    """
    Create, read, update and delete posts as quads.

    Args:
        store: The live quad store (single source of truth)
        events: Optional event bus; post_created/updated/deleted are published on it
        clock: Returns the current time; injectable for tests
    """

    def __init__(
        self,
        store: QuadStore,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._events = events
        self._clock = clock

    @property
    def store(self) -> QuadStore:
        return self._store

    # ── Write side ────────────────────────────────────────────────────

    def create_post(self, data: PostInput | Mapping[str, Any]) -> CreatedPost:
        post = self._coerce(data)
        post_id, quads = self.build_quads(post)
        added = self._store.add_all(quads)
        LOG.info("Created %s post %s (%d quads)", post.type, post_id, added)
        if self._events is not None:
            self._events.post_created.publish(PostEvent(id=post_id, type=post.type))
        return CreatedPost(post_id, added)

    def update_post(self, post_id: str, data: PostInput | Mapping[str, Any]) -> CreatedPost:
        """Replace every quad of an existing post. ``created`` is kept unless supplied."""
        subject = self._subject(post_id)
        existing = self._owned_quads(subject)
        if not existing:
            raise DomainError(f"Post not found: {post_id}", id=post_id)

        post = self._coerce(data).model_copy(update={"id": post_id})
        if not post.created:
            previous = self._store.first(subject, DC["created"])
            if previous is not None:
                post = post.model_copy(update={"created": previous.object.value})  # type: ignore[union-attr]

        _, quads = self.build_quads(post, modified=True)

        self._store.delete_all(existing)
        added = self._store.add_all(quads)
        LOG.info("Updated %s post %s (%d quads)", post.type, post_id, added)
        if self._events is not None:
            self._events.post_updated.publish(PostEvent(id=post_id, type=post.type))
        return CreatedPost(post_id, added)

    def delete_post(self, post_id: str) -> bool:
        """Remove every quad of ``post_id`` in every graph. False when nothing matched."""
        if not post_id:
            return False
        quads = self._owned_quads(self._subject(post_id))
        if not quads:
            LOG.warning("Attempted to delete non-existent post: %s", post_id)
            return False

        removed = self._store.delete_all(quads)
        LOG.info("Deleted post %s (%d quads)", post_id, removed)
        if self._events is not None:
            self._events.post_deleted.publish(PostEvent(id=post_id))
        return True

    def build_quads(self, post: PostInput, modified: bool = False) -> tuple[str, list[Quad]]:
        """
        Validate ``post`` and build its quads without touching the store.

        Raises:
            DomainError: Unknown type, missing required field or malformed URL
        """
        self._validate(post)
        moment = self._clock()
        now = format_timestamp(moment)
        post_id = post.id or generate_post_id(post.title, post.content, post.url, now=moment)
        subject = IRI(post_id)
        graph: Graph = IRI(post.graph) if post.graph else DEFAULT_GRAPH

        quads: list[Quad] = []

        def emit(predicate: IRI, obj: Term, subj: IRI | BlankNode = subject) -> None:
            quads.append(Quad(subj, predicate, obj, graph))

        emit(RDF_TYPE, SQUIRT[post.type])
        emit(SQUIRT["content"], Literal(post.content or ""))
        emit(DC["created"], Literal(post.created or now, datatype=XSD_DATETIME))

        if post.title:
            emit(DC["title"], Literal(post.title))

        for tag in _clean_tags(post.tags):
            emit(SQUIRT["tag"], Literal(tag))

        if post.type == PostType.LINK:
            emit(SQUIRT["url"], IRI(post.url))  # type: ignore[arg-type]

        if post.type == PostType.WIKI or modified:
            emit(DC["modified"], Literal(now, datatype=XSD_DATETIME))

        if post.type == PostType.CHAT and not post.created:
            emit(DC["date"], Literal(now, datatype=XSD_DATETIME))

        if post.type == PostType.PROFILE:
            if post.foaf_name:
                emit(FOAF["name"], Literal(post.foaf_name))
            if post.foaf_nick:
                emit(FOAF["nick"], Literal(post.foaf_nick))
            if post.foaf_mbox:
                emit(FOAF["mbox"], IRI(_mbox_iri(post.foaf_mbox)))
            if post.foaf_homepage:
                emit(FOAF["homepage"], IRI(post.foaf_homepage))
            if post.foaf_img:
                emit(FOAF["img"], IRI(post.foaf_img))
            for account in post.foaf_accounts:
                node = BlankNode.fresh()
                emit(ACCOUNT_PREDICATE, node)
                emit(ACCOUNT_HOMEPAGE_PREDICATE, IRI(account), subj=node)

        return post_id, quads

    def _coerce(self, data: PostInput | Mapping[str, Any]) -> PostInput:
        if isinstance(data, PostInput):
            return data
        try:
            return PostInput.model_validate(dict(data))
        except ValidationError as exc:
            raise DomainError(f"Invalid post data: {exc.error_count()} error(s)", errors=exc.errors()) from exc

    def _validate(self, post: PostInput) -> None:
        if post.type not in POST_TYPES:
            raise DomainError(f"Unknown post type: {post.type!r}", type=post.type)

        if post.type in CONTENT_REQUIRED and not (post.content or "").strip():
            raise DomainError(f"A {post.type} post requires content", type=post.type)

        if post.type == PostType.LINK:
            if not post.url:
                raise DomainError("A link post requires a url", type=post.type)
            require_url("url", post.url)

        if post.type == PostType.PROFILE:
            for name in ("foaf_homepage", "foaf_img"):
                value = getattr(post, name)
                if value:
                    require_url(name, value)
            if post.foaf_mbox:
                require_url("foaf_mbox", _mbox_iri(post.foaf_mbox))
            for account in post.foaf_accounts:
                require_url("foaf_accounts", account)

        if post.id:
            require_url("id", post.id)
        if post.graph:
            require_url("graph", post.graph)
        if post.created and parse_timestamp(post.created) is None:
            raise DomainError(f"Invalid created timestamp: {post.created!r}", created=post.created)

    # ── Read side ─────────────────────────────────────────────────────

    def get_post(self, post_id: str) -> Post | None:
        """Project all quads whose subject is ``post_id``, across every graph."""
        if not post_id:
            return None
        subject = self._subject(post_id)
        for quad in self._store.match(subject, RDF_TYPE):
            post_type = _post_type(quad.object)
            if post_type is not None:
                return self._project(subject, post_type, quad.graph, None)
        return None

    def get_posts(
        self,
        type: str | None = None,
        tag: str | None = None,
        graph: str | None = None,
        limit: int | None = None,
    ) -> list[Post]:
        """
        List posts, newest first.

        Candidates come from a single scan of ``rdf:type`` quads (restricted
        to ``graph`` when given) with the type filter applied there. Fields
        are then looked up per candidate, the tag filter applied, the result
        sorted by ``modified`` falling back to ``created`` (unparsable or
        missing dates last) and truncated to ``limit``.
        """
        graph_filter: Graph | None = IRI(graph) if graph else None

        candidates: dict[IRI, tuple[str, Graph]] = {}
        for quad in self._store.match(None, RDF_TYPE, None, graph_filter):
            if not isinstance(quad.subject, IRI):
                continue
            post_type = _post_type(quad.object)
            if post_type is None or (type and post_type != type):
                continue
            candidates.setdefault(quad.subject, (post_type, quad.graph))

        posts = [
            self._project(subject, post_type, post_graph, graph_filter)
            for subject, (post_type, post_graph) in candidates.items()
        ]

        if tag and tag.strip():
            wanted = tag.strip()
            posts = [post for post in posts if wanted in post.tags]

        posts.sort(key=_recency_key)

        if limit and limit > 0:
            posts = posts[:limit]
        return posts

    def _project(self, subject: IRI, post_type: str, post_graph: Graph, graph_filter: Graph | None) -> Post:
        values: dict[str, Any] = {
            "id": subject.value,
            "type": post_type,
            "graph": None if post_graph is DEFAULT_GRAPH else str(post_graph),
        }
        for mapping in fields_for(post_type):
            values[mapping.name] = self._read_field(subject, mapping, graph_filter)

        if post_type == PostType.PROFILE:
            accounts = []
            for quad in self._store.match(subject, ACCOUNT_PREDICATE, None, graph_filter):
                homepage = self._store.first(quad.object, ACCOUNT_HOMEPAGE_PREDICATE, None, graph_filter)  # type: ignore[arg-type]
                if homepage is not None:
                    accounts.append(homepage.object.value)  # type: ignore[union-attr]
            values["foaf_accounts"] = sorted(accounts)

        return Post(**values)

    def _read_field(self, subject: IRI, mapping: FieldMapping, graph: Graph | None) -> Any:
        matches = self._store.match(subject, mapping.predicate, None, graph)
        if mapping.multi:
            return sorted(_term_value(q.object) for q in matches)
        return _term_value(matches[0].object) if matches else None

    def _owned_quads(self, subject: IRI) -> list[Quad]:
        """All quads of ``subject`` plus those of the account blank nodes it links to."""
        quads = self._store.match(subject)
        owned = [
            q.object for q in quads if q.predicate == ACCOUNT_PREDICATE and isinstance(q.object, BlankNode)
        ]
        for node in owned:
            quads.extend(self._store.match(node))
        return quads

    @staticmethod
    def _subject(post_id: str) -> IRI:
        return IRI(post_id)


def _post_type(obj: Term) -> str | None:
    if not isinstance(obj, IRI):
        return None
    return SQUIRT.local_name(obj)


def _term_value(term: Term) -> str:
    if isinstance(term, BlankNode):
        return str(term)
    return term.value


def _clean_tags(tags: list[str]) -> list[str]:
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def _recency_key(post: Post) -> tuple[int, float]:
    moment = parse_timestamp(post.modified or post.created)
    if moment is None:
        return (1, 0.0)
    return (0, -moment.timestamp())
