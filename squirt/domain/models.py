"""
Post records and the type→predicate mapping table.

``PostInput`` is what callers hand to the projection; ``Post`` is what
the projection computes back out of the quad store. Neither is stored:
the quad store is the only source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from squirt.rdf.namespaces import DC, FOAF, SQUIRT, XSD
from squirt.rdf.terms import IRI


class PostType(StrEnum):
    ENTRY = "entry"
    LINK = "link"
    WIKI = "wiki"
    PROFILE = "profile"
    CHAT = "chat"


POST_TYPES = frozenset(t.value for t in PostType)
CONTENT_REQUIRED = frozenset({PostType.ENTRY, PostType.WIKI, PostType.CHAT})

XSD_DATETIME = XSD["dateTime"]


class PostInput(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    content: Optional[str] = None
    title: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    graph: Optional[str] = None
    id: Optional[str] = Field(default=None, alias="customId")
    created: Optional[str] = None
    foaf_name: Optional[str] = Field(default=None, alias="foafName")
    foaf_nick: Optional[str] = Field(default=None, alias="foafNick")
    foaf_mbox: Optional[str] = Field(default=None, alias="foafMbox")
    foaf_homepage: Optional[str] = Field(default=None, alias="foafHomepage")
    foaf_img: Optional[str] = Field(default=None, alias="foafImg")
    foaf_accounts: list[str] = Field(default_factory=list, alias="foafAccounts")


class Post(BaseModel):
    id: str
    type: str
    graph: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    date: Optional[str] = None
    foaf_name: Optional[str] = None
    foaf_nick: Optional[str] = None
    foaf_mbox: Optional[str] = None
    foaf_homepage: Optional[str] = None
    foaf_img: Optional[str] = None
    foaf_accounts: list[str] = Field(default_factory=list)


class CreatedPost(NamedTuple):
    id: str
    quads_added: int


@dataclass(frozen=True)
class FieldMapping:
    """How one ``Post`` attribute maps onto a predicate."""

    name: str
    predicate: IRI
    multi: bool = False
    as_iri: bool = False
    datatype: IRI | None = None


COMMON_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("content", SQUIRT["content"]),
    FieldMapping("title", DC["title"]),
    FieldMapping("created", DC["created"], datatype=XSD_DATETIME),
    FieldMapping("modified", DC["modified"], datatype=XSD_DATETIME),
    FieldMapping("tags", SQUIRT["tag"], multi=True),
)

TYPE_FIELDS: dict[str, tuple[FieldMapping, ...]] = {
    PostType.ENTRY: (),
    PostType.LINK: (FieldMapping("url", SQUIRT["url"], as_iri=True),),
    PostType.WIKI: (),
    PostType.PROFILE: (
        FieldMapping("foaf_name", FOAF["name"]),
        FieldMapping("foaf_nick", FOAF["nick"]),
        FieldMapping("foaf_mbox", FOAF["mbox"], as_iri=True),
        FieldMapping("foaf_homepage", FOAF["homepage"], as_iri=True),
        FieldMapping("foaf_img", FOAF["img"], as_iri=True),
    ),
    PostType.CHAT: (FieldMapping("date", DC["date"], datatype=XSD_DATETIME),),
}

# Profile accounts are blank nodes: <post> foaf:account _:a . _:a foaf:accountServiceHomepage <url>
ACCOUNT_PREDICATE = FOAF["account"]
ACCOUNT_HOMEPAGE_PREDICATE = FOAF["accountServiceHomepage"]


def fields_for(post_type: str) -> tuple[FieldMapping, ...]:
    """Mapped fields for a type; unknown squirt types get the common fields only."""
    return COMMON_FIELDS + TYPE_FIELDS.get(post_type, ())
