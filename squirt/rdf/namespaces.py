"""Vocabularies used by the post projection."""

from __future__ import annotations

from squirt.rdf.terms import IRI


class Namespace(str):
    """An IRI prefix; ``NS["local"]`` mints an ``IRI`` in it."""

    def term(self, name: str) -> IRI:
        return IRI(f"{self}{name}")

    def __getitem__(self, name: str) -> IRI:  # type: ignore[override]
        return self.term(name)

    def local_name(self, iri: IRI | str) -> str | None:
        """Return the part of ``iri`` after this prefix, or None if it lies outside."""
        value = str(iri)
        if value.startswith(self) and len(value) > len(self):
            return value[len(self):]
        return None


RDF = Namespace("http://www.w3.org/1999/02/22-rdf-syntax-ns#")
RDFS = Namespace("http://www.w3.org/2000/01/rdf-schema#")
XSD = Namespace("http://www.w3.org/2001/XMLSchema#")
DC = Namespace("http://purl.org/dc/terms/")
FOAF = Namespace("http://xmlns.com/foaf/0.1/")
SQUIRT = Namespace("http://purl.org/stuff/squirt/")

PREFIXES: dict[str, Namespace] = {
    "rdf": RDF,
    "rdfs": RDFS,
    "xsd": XSD,
    "dc": DC,
    "foaf": FOAF,
    "squirt": SQUIRT,
}
