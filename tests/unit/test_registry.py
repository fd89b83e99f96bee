"""
Unit tests for the schema registry.
"""
import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
from schema_engine.builtin_schemas import DRAFT_04_URI
from schema_engine.exceptions import SchemaLoadError, SchemaNotFoundError
from schema_engine.registry import ANONYMOUS_PREFIX, SchemaRegistry


class TestSchemaRegistry:
    """Test suite for SchemaRegistry."""

    @pytest.fixture
    def registry(self):
        return SchemaRegistry(preload_builtin=False)

    def test_builtin_metaschema_is_preloaded(self):
        """The draft-04 metaschema is available without a network."""
        registry = SchemaRegistry()

        assert registry.has(DRAFT_04_URI)
        assert registry.lookup(DRAFT_04_URI).locator == "http://json-schema.org/draft-04/schema"

    def test_register_and_lookup_ignores_fragment(self, registry):
        registry.register({"type": "string"}, "http://example.com/s.json#")

        container = registry.lookup("http://example.com/s.json#/anything")

        assert container.locator == "http://example.com/s.json"
        assert container.document == {"type": "string"}

    def test_register_copies_document(self, registry):
        """Later changes to the caller's document are not seen."""
        document = {"type": "string"}
        container = registry.register(document, "urn:x")
        document["type"] = "integer"

        assert container.document == {"type": "string"}

    def test_anonymous_documents_get_content_locator(self, registry):
        """Equal anonymous documents map to the same container."""
        a = registry.register({"type": "string"})
        b = registry.register({"type": "string"})
        c = registry.register({"type": "integer"})

        assert a.locator.startswith(ANONYMOUS_PREFIX)
        assert a is b
        assert a.locator != c.locator

    def test_declared_id_is_used_as_locator(self, registry):
        container = registry.register({"id": "http://example.com/with-id#", "type": "object"})

        assert container.locator == "http://example.com/with-id"

    def test_unknown_uri(self, registry):
        with pytest.raises(SchemaNotFoundError):
            registry.lookup("http://example.com/unknown.json")

    def test_register_json_and_yaml_files(self, registry, tmp_path):
        """Files register under their file:// URI unless they declare an id."""
        (tmp_path / "a.json").write_text(json.dumps({"type": "string"}))
        (tmp_path / "b.yaml").write_text("type: integer\nminimum: 1\n")
        (tmp_path / "c.json").write_text(json.dumps({"id": "http://example.com/c.json", "type": "null"}))
        (tmp_path / "notes.txt").write_text("ignored")

        locators = registry.load_directory(tmp_path)

        assert len(locators) == 3
        assert registry.lookup((tmp_path / "b.yaml").resolve().as_uri()).document == {"type": "integer", "minimum": 1}
        assert registry.has("http://example.com/c.json")

    def test_unparseable_file(self, registry, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("type: [unclosed\n")

        with pytest.raises(SchemaLoadError):
            registry.register_file(path)

    def test_missing_file(self, registry, tmp_path):
        with pytest.raises(FileNotFoundError):
            registry.register_file(tmp_path / "missing.json")


class TestRemoteSchemas:
    """Test suite for fetching http(s) schemas."""

    @pytest.fixture
    def http_client(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/remote.json":
                return httpx.Response(200, json={"type": "integer"})
            return httpx.Response(404)

        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_remote_fetch_registers_document(self, http_client):
        registry = SchemaRegistry(allow_remote=True, http_client=http_client, preload_builtin=False)

        container = registry.lookup("http://example.com/remote.json#/x")

        assert container.document == {"type": "integer"}
        assert registry.has("http://example.com/remote.json")

    def test_remote_http_error(self, http_client):
        registry = SchemaRegistry(allow_remote=True, http_client=http_client, preload_builtin=False)

        with pytest.raises(SchemaLoadError):
            registry.lookup("http://example.com/missing.json")

    def test_remote_disabled(self, http_client):
        registry = SchemaRegistry(allow_remote=False, http_client=http_client, preload_builtin=False)

        with pytest.raises(SchemaNotFoundError):
            registry.lookup("http://example.com/remote.json")

    def test_lazy_client_is_created_once(self, monkeypatch):
        """Concurrent first fetches share one HTTP client."""
        real_client = httpx.Client
        created = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"type": "string"})

        def make_client(**kwargs):
            time.sleep(0.05)
            client = real_client(transport=httpx.MockTransport(handler))
            created.append(client)
            return client

        monkeypatch.setattr(httpx, "Client", make_client)
        registry = SchemaRegistry(allow_remote=True, preload_builtin=False)

        workers = 8
        barrier = threading.Barrier(workers)

        def fetch(i):
            barrier.wait()
            return registry.lookup(f"http://example.com/s{i}.json")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            containers = list(pool.map(fetch, range(workers)))

        assert len(created) == 1
        assert all(c.document == {"type": "string"} for c in containers)

        registry.close()
        assert created[0].is_closed
