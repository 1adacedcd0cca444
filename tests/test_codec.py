"""Tests for squirt.rdf.codec — N-Quads cache form and wire formats."""

import pytest

from squirt.errors import GraphParseError
from squirt.rdf import codec
from squirt.rdf.namespaces import DC, FOAF, RDF, SQUIRT, XSD
from squirt.rdf.store import QuadStore
from squirt.rdf.terms import DEFAULT_GRAPH, IRI, BlankNode, Literal, Quad

POST = IRI("http://purl.org/stuff/squirt/post_2024-05-01_5e918d2")
GRAPH = IRI("http://example.org/graphs/journal")


@pytest.fixture
def mixed_store():
    account = BlankNode("acct1")
    return QuadStore([
        Quad(POST, RDF["type"], SQUIRT["entry"]),
        Quad(POST, SQUIRT["content"], Literal("hello\nworld \"quoted\"")),
        Quad(POST, DC["created"], Literal("2024-05-01T12:00:00.000Z", datatype=XSD["dateTime"])),
        Quad(POST, DC["title"], Literal("Bonjour", language="fr")),
        Quad(POST, SQUIRT["tag"], Literal("rdf"), GRAPH),
        Quad(POST, FOAF["account"], account, GRAPH),
        Quad(account, FOAF["accountServiceHomepage"], IRI("https://social.example/"), GRAPH),
    ])


class TestCanonicalRoundTrip:
    def test_round_trip_preserves_quads(self, mixed_store):
        restored = codec.parse(codec.serialize(mixed_store))
        assert set(restored) == set(mixed_store)

    def test_blank_node_labels_survive(self, mixed_store):
        restored = codec.parse(codec.serialize(mixed_store))
        assert restored.match(BlankNode("acct1"))

    def test_lexical_form_kept(self, mixed_store):
        restored = codec.parse(codec.serialize(mixed_store))
        created = restored.first(POST, DC["created"]).object
        assert created == Literal("2024-05-01T12:00:00.000Z", datatype=XSD["dateTime"])

    def test_named_graph_kept(self, mixed_store):
        restored = codec.parse(codec.serialize(mixed_store))
        assert restored.graphs() == {DEFAULT_GRAPH, GRAPH}
        assert restored.first(POST, SQUIRT["tag"]).graph == GRAPH

    def test_serialized_form_is_nquads(self, mixed_store):
        text = codec.serialize(mixed_store)
        lines = [line for line in text.splitlines() if line.strip()]
        assert len(lines) == len(mixed_store)
        assert sum(line.endswith("<http://example.org/graphs/journal> .") for line in lines) == 3
        assert codec.GENID_PREFIX in text
        assert "@prefix" not in text

    @pytest.mark.parametrize(
        "lexical, datatype",
        [
            ("1.5", "double"),
            ("1", "boolean"),
            ("True", "boolean"),
            ("01", "integer"),
            ("+7", "integer"),
            ("1e0", "float"),
            ("2.50", "decimal"),
            ("2024-05-01T12:00:00Z", "dateTime"),
        ],
    )
    def test_typed_literal_lexical_form_survives(self, lexical, datatype):
        store = QuadStore([
            Quad(POST, SQUIRT["value"], Literal(lexical, datatype=XSD[datatype])),
            Quad(POST, SQUIRT["value"], Literal(lexical, datatype=XSD[datatype]), GRAPH),
        ])
        restored = codec.parse(codec.serialize(store))
        assert set(restored) == set(store)

    def test_empty_input(self):
        assert len(codec.parse("")) == 0
        assert len(codec.parse("   \n")) == 0

    def test_empty_store_round_trip(self):
        assert len(codec.parse(codec.serialize(QuadStore()))) == 0

    def test_garbage_raises_parse_error(self):
        with pytest.raises(GraphParseError):
            codec.parse("this is { not nquads <<")

    def test_invalid_iri_raises_parse_error(self):
        with pytest.raises(GraphParseError):
            codec.parse("<urn:a> <http://example.org/p> <http://example.org/{x}> .\n")


class TestWireFormats:
    def test_parse_turtle_into_default_graph(self):
        text = (
            "@prefix dc: <http://purl.org/dc/terms/> .\n"
            "<http://example.org/p1> dc:title \"One\" ; dc:created \"2024-01-01T00:00:00.000Z\"^^"
            "<http://www.w3.org/2001/XMLSchema#dateTime> .\n"
        )
        store = codec.parse_triples(text)
        assert len(store) == 2
        assert all(q.graph is DEFAULT_GRAPH for q in store)
        created = store.first(IRI("http://example.org/p1"), DC["created"]).object
        assert created.value == "2024-01-01T00:00:00.000Z"

    def test_parse_turtle_into_named_graph(self):
        store = codec.parse_triples("<http://example.org/a> <http://example.org/b> \"c\" .", graph=GRAPH)
        assert [q.graph for q in store] == [GRAPH]

    def test_parse_turtle_error(self):
        with pytest.raises(GraphParseError):
            codec.parse_triples("<http://example.org/a> <broken")

    def test_serialize_ntriples(self, mixed_store):
        text = codec.serialize_triples(mixed_store.match(POST, DC["created"]))
        assert text.strip() == (
            "<http://purl.org/stuff/squirt/post_2024-05-01_5e918d2> <http://purl.org/dc/terms/created> "
            "\"2024-05-01T12:00:00.000Z\"^^<http://www.w3.org/2001/XMLSchema#dateTime> ."
        )

    def test_ntriples_drops_graph_component(self, mixed_store):
        text = codec.serialize_triples(mixed_store)
        assert "journal" not in text
        assert len([line for line in text.splitlines() if line.strip()]) == len(mixed_store)


class TestTermConversion:
    def test_round_trip_terms(self):
        for term in (
            IRI("http://example.org/x"),
            Literal("plain"),
            Literal("chat", language="en"),
            Literal("42", datatype=XSD["integer"]),
            BlankNode("b0"),
        ):
            assert codec.from_rdflib(codec.to_rdflib(term)) == term

    def test_skolemized_blank_node(self):
        node = codec.to_rdflib(BlankNode("b7"), skolemize=True)
        assert str(node) == codec.GENID_PREFIX + "b7"
        assert codec.from_rdflib(node) == BlankNode("b7")
