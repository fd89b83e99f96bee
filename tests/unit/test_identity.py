"""
Unit tests for schema identities (validator cache keys).
"""
import pytest
from schema_engine.identity import SchemaContainer, SchemaIdentity, canonical_json


class TestSchemaIdentity:
    """Test suite for SchemaContainer / SchemaIdentity equality."""

    @pytest.fixture
    def document(self):
        return {
            "definitions": {"name": {"type": "string"}},
            "properties": {"name": {"$ref": "#/definitions/name"}},
        }

    def test_canonical_json_ignores_key_order(self):
        """Key order does not change the canonical form."""
        assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})

    def test_equal_fragments_in_same_container_are_equal(self, document):
        """Fragments reached the same way share one identity."""
        container = SchemaContainer("http://example.com/s", document)
        a = SchemaIdentity(container, {"type": "string"})
        b = SchemaIdentity(container, {"type": "string"})

        assert a == b
        assert hash(a) == hash(b)

    def test_equal_containers_are_equal(self, document):
        """Containers compare by locator and content, not object identity."""
        a = SchemaContainer("http://example.com/s", document)
        b = SchemaContainer("http://example.com/s", dict(document))

        assert a == b
        assert SchemaIdentity.root(a) == SchemaIdentity.root(b)

    def test_same_fragment_different_base_is_not_equal(self, document):
        """A $ref fragment under another base URI may resolve differently."""
        fragment = {"$ref": "#/definitions/name"}
        a = SchemaIdentity(SchemaContainer("http://example.com/a", document), fragment)
        b = SchemaIdentity(SchemaContainer("http://example.com/b", document), fragment)

        assert a != b

    def test_same_locator_different_document_is_not_equal(self, document):
        """Two documents under one URI are different resolution contexts."""
        other = {"definitions": {"name": {"type": "integer"}}}
        fragment = {"$ref": "#/definitions/name"}
        a = SchemaIdentity(SchemaContainer("urn:x", document), fragment)
        b = SchemaIdentity(SchemaContainer("urn:x", other), fragment)

        assert a != b

    def test_pointer_is_not_part_of_equality(self, document):
        """The pointer is only used for diagnostics."""
        container = SchemaContainer("urn:x", document)
        a = SchemaIdentity(container, {"type": "string"}, "/definitions/name")
        b = SchemaIdentity(container, {"type": "string"}, "/properties/other")

        assert a == b

    def test_child_pointer_escapes_tokens(self, document):
        """Child pointers escape '~' and '/'."""
        root = SchemaIdentity.root(SchemaContainer("urn:x", document))
        child = root.child({}, "properties", "a/b~c")

        assert child.pointer == "/properties/a~1b~0c"
        assert child.location == "urn:x#/properties/a~1b~0c"

    def test_has_ref(self, document):
        """has_ref only looks at the fragment's own members."""
        container = SchemaContainer("urn:x", document)

        assert SchemaIdentity(container, {"$ref": "#"}).has_ref
        assert not SchemaIdentity.root(container).has_ref
        assert not SchemaIdentity(container, "not a schema").has_ref

    def test_usable_as_dict_key(self, document):
        """Identities work as mapping keys."""
        container = SchemaContainer("urn:x", document)
        table = {SchemaIdentity(container, {"minimum": 1}): "cached"}

        assert table[SchemaIdentity(container, {"minimum": 1})] == "cached"
