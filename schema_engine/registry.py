"""
Schema registry: maps document URIs to loaded schema documents.

Documents are registered programmatically, loaded from JSON/YAML files, or,
when remote access is enabled, fetched over HTTP on first lookup.
"""
import copy
import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urldefrag, urlsplit

import httpx
import yaml

from schema_engine.builtin_schemas import BUILTIN_SCHEMAS
from schema_engine.exceptions import SchemaLoadError, SchemaNotFoundError
from schema_engine.identity import SchemaContainer, canonical_json

logger = logging.getLogger(__name__)

ANONYMOUS_PREFIX = "urn:schema-engine:sha256:"
REMOTE_SCHEMES = ("http", "https")
SCHEMA_FILE_SUFFIXES = (".json", ".yaml", ".yml")


def normalize_uri(uri: str) -> str:
    """Strip the fragment from a URI ("http://x/s#" -> "http://x/s")."""
    return urldefrag(uri).url


def anonymous_locator(document: Any) -> str:
    """Deterministic locator for a document registered without a URI."""
    digest = hashlib.sha256(canonical_json(document).encode("utf-8")).hexdigest()
    return f"{ANONYMOUS_PREFIX}{digest}"


def declared_id(document: Any) -> Optional[str]:
    """Absolute 'id' / '$id' declared at the top of a schema document, if any."""
    if not isinstance(document, dict):
        return None
    for key in ("$id", "id"):
        value = document.get(key)
        if isinstance(value, str) and urlsplit(value).scheme:
            return normalize_uri(value)
    return None


def parse_document(text: str, source: str) -> Any:
    """Parse JSON, falling back to YAML for .yaml sources and non-JSON text."""
    try:
        return json.loads(text)
    except ValueError as json_error:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SchemaLoadError(source, f"not valid JSON ({json_error}) or YAML ({e})") from e


class SchemaRegistry:
    """
    Thread-safe store of schema documents keyed by normalized URI.
    """

    def __init__(
        self,
        allow_remote: bool = False,
        remote_timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
        preload_builtin: bool = True,
    ):
        """
        Initialize registry.

        Args:
            allow_remote: Fetch unknown http(s) URIs on lookup
            remote_timeout: Timeout in seconds for remote fetches
            http_client: Client used for remote fetches (one is created lazily otherwise)
            preload_builtin: Register the bundled metaschemas
        """
        self.allow_remote = allow_remote
        self.remote_timeout = remote_timeout
        self._http_client = http_client
        self._owns_client = http_client is None
        self._lock = threading.Lock()
        self._containers: Dict[str, SchemaContainer] = {}

        if preload_builtin:
            for uri, document in BUILTIN_SCHEMAS.items():
                self.register(document, uri)

    # -- mutators -----------------------------------------------------------

    def register(self, document: Any, uri: Optional[str] = None) -> SchemaContainer:
        """
        Register a schema document.

        Args:
            document: Raw schema document (copied, later changes are not seen)
            uri: URI to register under; defaults to the document's own id, or
                 a content-derived URN for anonymous documents

        Returns:
            The container now registered for that URI
        """
        document = copy.deepcopy(document)
        locator = normalize_uri(uri) if uri else (declared_id(document) or anonymous_locator(document))
        container = SchemaContainer(locator, document)

        with self._lock:
            existing = self._containers.get(locator)
            if existing is not None and existing == container:
                return existing
            if existing is not None:
                logger.info(f"Replacing schema registered for {locator}")
            self._containers[locator] = container

        logger.debug(f"Registered schema {locator}")
        return container

    def register_file(self, path: str | Path, uri: Optional[str] = None) -> SchemaContainer:
        """
        Load a JSON or YAML schema file and register it.

        The URI defaults to the document's id, then to the file's file:// URI.

        Raises:
            FileNotFoundError: If the file doesn't exist
            SchemaLoadError: If the file can't be parsed
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            try:
                document = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise SchemaLoadError(str(path), str(e)) from e
        else:
            document = parse_document(text, str(path))

        locator = uri or declared_id(document) or path.resolve().as_uri()
        container = self.register(document, locator)
        logger.info(f"Loaded schema {container.locator} from {path}")
        return container

    def load_directory(self, directory: str | Path) -> List[str]:
        """
        Register every JSON/YAML file below a directory.

        Returns:
            Locators of the registered documents, in file name order
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise FileNotFoundError(f"Schema directory not found: {directory}")

        locators = []
        for path in sorted(directory.rglob("*")):
            if path.is_file() and path.suffix in SCHEMA_FILE_SUFFIXES:
                locators.append(self.register_file(path).locator)

        logger.info(f"Loaded {len(locators)} schemas from {directory}")
        return locators

    def clear(self):
        """Remove all registered documents, builtin ones included."""
        with self._lock:
            count = len(self._containers)
            self._containers.clear()
        logger.info(f"Registry cleared: {count} schemas removed")

    # -- queries ------------------------------------------------------------

    def lookup(self, uri: str) -> SchemaContainer:
        """
        Find the document registered for a URI (its fragment is ignored).

        Raises:
            SchemaNotFoundError: If nothing is registered and it can't be fetched
            SchemaLoadError: If a remote fetch fails
        """
        locator = normalize_uri(uri)
        with self._lock:
            container = self._containers.get(locator)
        if container is not None:
            return container

        if self.allow_remote and urlsplit(locator).scheme in REMOTE_SCHEMES:
            return self.register(self._fetch(locator), locator)

        raise SchemaNotFoundError(locator)

    def has(self, uri: str) -> bool:
        with self._lock:
            return normalize_uri(uri) in self._containers

    def uris(self) -> List[str]:
        with self._lock:
            return sorted(self._containers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._containers)

    # -- remote -------------------------------------------------------------

    def _client(self) -> httpx.Client:
        with self._lock:
            if self._http_client is None:
                self._http_client = httpx.Client(timeout=self.remote_timeout, follow_redirects=True)
            return self._http_client

    def _fetch(self, uri: str) -> Any:
        client = self._client()

        logger.info(f"Fetching remote schema {uri}")
        try:
            response = client.get(uri, timeout=self.remote_timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SchemaLoadError(uri, str(e)) from e

        return parse_document(response.text, uri)

    def close(self):
        """Close the HTTP client, if this registry opened it."""
        if not self._owns_client:
            return
        with self._lock:
            client, self._http_client = self._http_client, None
        if client is not None:
            client.close()
