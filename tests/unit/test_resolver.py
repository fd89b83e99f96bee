"""
Unit tests for $ref resolution.
"""
import pytest
from schema_engine.exceptions import ResolutionError, SchemaNotFoundError
from schema_engine.identity import SchemaIdentity
from schema_engine.registry import SchemaRegistry
from schema_engine.resolver import RefResolver, parse_pointer


class TestRefResolver:
    """Test suite for RefResolver."""

    @pytest.fixture
    def registry(self):
        registry = SchemaRegistry(preload_builtin=False)
        registry.register({
            "definitions": {
                "name": {"type": "string"},
                "a/b": {"type": "integer"},
                "chained": {"$ref": "#/definitions/name"},
            },
            "allOf": [{"minimum": 0}, {"maximum": 10}],
        }, "http://example.com/root.json")
        registry.register({
            "definitions": {"flag": {"type": "boolean"}},
        }, "http://example.com/other.json")
        return registry

    @pytest.fixture
    def resolver(self, registry):
        return RefResolver(registry)

    @pytest.fixture
    def root(self, registry):
        return SchemaIdentity.root(registry.lookup("http://example.com/root.json"))

    def with_ref(self, root, ref):
        return root.child({"$ref": ref}, "test")

    def test_local_pointer(self, resolver, root):
        """A local JSON pointer resolves inside the same document."""
        resolved = resolver.resolve(self.with_ref(root, "#/definitions/name"))

        assert resolved.fragment == {"type": "string"}
        assert resolved.container is root.container
        assert resolved.pointer == "/definitions/name"

    def test_empty_fragment_is_document_root(self, resolver, root):
        """'#' points at the whole document."""
        resolved = resolver.resolve(self.with_ref(root, "#"))

        assert resolved == root

    def test_absolute_uri_to_other_document(self, resolver, root):
        """Absolute URIs are looked up in the registry."""
        resolved = resolver.resolve(self.with_ref(root, "http://example.com/other.json#/definitions/flag"))

        assert resolved.fragment == {"type": "boolean"}
        assert resolved.base_uri == "http://example.com/other.json"

    def test_relative_uri_to_other_document(self, resolver, root):
        """Relative URIs are joined with the base URI first."""
        resolved = resolver.resolve(self.with_ref(root, "other.json#/definitions/flag"))

        assert resolved.fragment == {"type": "boolean"}

    def test_escaped_pointer_and_array_index(self, resolver, root):
        """'~1' decodes to '/', and array members are addressed by index."""
        assert resolver.resolve(self.with_ref(root, "#/definitions/a~1b")).fragment == {"type": "integer"}
        assert resolver.resolve(self.with_ref(root, "#/allOf/1")).fragment == {"maximum": 10}

    def test_resolution_does_not_chase_second_ref(self, resolver, root):
        """Only one hop is resolved per call."""
        resolved = resolver.resolve(self.with_ref(root, "#/definitions/chained"))

        assert resolved.has_ref

    def test_dangling_pointer(self, resolver, root):
        """A missing member is a resolution error."""
        with pytest.raises(ResolutionError, match="dangling"):
            resolver.resolve(self.with_ref(root, "#/definitions/missing"))

    def test_index_out_of_range(self, resolver, root):
        """An out-of-range index is a resolution error."""
        with pytest.raises(ResolutionError, match="out of range"):
            resolver.resolve(self.with_ref(root, "#/allOf/5"))

    def test_unknown_document(self, resolver, root):
        """Unregistered documents raise SchemaNotFoundError."""
        with pytest.raises(SchemaNotFoundError):
            resolver.resolve(self.with_ref(root, "http://example.com/nowhere.json#"))

    def test_non_string_ref_is_malformed(self, resolver, root):
        """$ref must be a string."""
        with pytest.raises(ResolutionError, match="malformed"):
            resolver.resolve(self.with_ref(root, 42))

    def test_plain_name_fragment_is_malformed(self, resolver, root):
        """Only JSON pointer fragments are supported."""
        with pytest.raises(ResolutionError, match="malformed"):
            resolver.resolve(self.with_ref(root, "#name"))


class TestParsePointer:
    """Test suite for JSON pointer parsing."""

    def test_empty(self):
        assert parse_pointer("") == []

    def test_escapes_decode_in_order(self):
        """'~01' is '~1' literally, not '/'."""
        assert parse_pointer("/a~01/b~1c") == ["a~1", "b/c"]

    def test_percent_encoding(self):
        assert parse_pointer("/a%20b") == ["a b"]

    def test_illegal_escape(self):
        with pytest.raises(ResolutionError):
            parse_pointer("/a~2")
