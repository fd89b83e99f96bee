"""
Schema engine: wires registry, resolver and validator cache together and
exposes the validation entry points.
"""
import asyncio
import copy
import logging
import threading
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

from schema_engine.cache import ValidatorCache
from schema_engine.config import EngineConfig, get_default_config, load_config
from schema_engine.context import ValidationContext
from schema_engine.identity import SchemaContainer, SchemaIdentity
from schema_engine.keywords import KeywordBundle, default_bundle
from schema_engine.registry import SchemaRegistry, anonymous_locator, declared_id
from schema_engine.report import ValidationReport
from schema_engine.resolver import RefResolver, parse_pointer, walk_pointer

logger = logging.getLogger(__name__)


class JsonSchema:
    """A schema bound to the engine that validates against it."""

    def __init__(self, engine: "SchemaEngine", identity: SchemaIdentity):
        self.engine = engine
        self.identity = identity

    def validate(self, instance: Any) -> ValidationReport:
        return self.engine.validate(self, instance)

    def is_valid(self, instance: Any) -> bool:
        return self.validate(instance).is_success()

    def __repr__(self) -> str:
        return f"JsonSchema({self.identity.location!r})"


class SchemaEngine:
    """Schema engine orchestrator."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        registry: Optional[SchemaRegistry] = None,
        bundle: Optional[KeywordBundle] = None,
    ):
        self.config = config or get_default_config()
        self.registry = registry or SchemaRegistry(
            allow_remote=self.config.allow_remote,
            remote_timeout=self.config.remote_timeout_seconds,
            preload_builtin=self.config.preload_builtin_schemas,
        )
        self.bundle = bundle or default_bundle()
        self.resolver = RefResolver(self.registry)
        self.cache = ValidatorCache(
            self.resolver,
            self.bundle,
            capacity=self.config.cache_capacity,
            max_ref_hops=self.config.max_ref_hops,
        )

        for schema_path in self.config.schema_paths:
            path = Path(schema_path)
            if path.is_dir():
                self.registry.load_directory(path)
            else:
                self.registry.register_file(path)

        logger.info(
            f"SchemaEngine initialized: {len(self.registry)} schemas registered, "
            f"{len(self.bundle)} keywords, cache capacity {self.cache.capacity}"
        )

    @classmethod
    def from_config_file(cls, config_path: str | Path) -> "SchemaEngine":
        return cls(load_config(config_path))

    # -- schemas ------------------------------------------------------------

    def schema_from_document(self, document: Any, uri: Optional[str] = None) -> JsonSchema:
        """
        Register a schema document and return it bound to this engine.

        Args:
            document: Raw schema document
            uri: Optional URI the document is known by
        """
        container = self.registry.register(document, uri)
        return JsonSchema(self, SchemaIdentity.root(container))

    def schema_from_uri(self, uri: str) -> JsonSchema:
        """
        Get a registered schema, or a fragment of one ("http://x/s#/definitions/a").

        Raises:
            ResolutionError: If the document is unknown or the pointer dangles
        """
        container = self.registry.lookup(uri)
        fragment = uri.partition("#")[2]
        node = walk_pointer(container.document, parse_pointer(fragment), uri)
        return JsonSchema(self, SchemaIdentity(container, node, unquote(fragment)))

    # -- validation ---------------------------------------------------------

    def _identity_for(self, schema: Any) -> SchemaIdentity:
        if isinstance(schema, JsonSchema):
            return schema.identity
        if isinstance(schema, SchemaIdentity):
            return schema
        if declared_id(schema) is None:
            # ad-hoc documents stay out of the registry; equal ones still share cache entries
            return SchemaIdentity.root(SchemaContainer(anonymous_locator(schema), copy.deepcopy(schema)))
        return self.schema_from_document(schema).identity

    def validate(self, schema: Any, instance: Any) -> ValidationReport:
        """
        Validate an instance.

        Raw documents without an id are not registered, so they can't be
        referenced from other schemas. Evaluation recurses once per nesting
        level of the instance, using a handful of interpreter frames each:
        with the default recursion limit of 1000, instances nested deeper
        than about 200 levels below a recursive schema raise RecursionError.

        Args:
            schema: JsonSchema, SchemaIdentity, or a raw schema document
            instance: JSON value to validate

        Returns:
            Report holding every message produced

        Raises:
            RecursionError: If the instance nests deeper than the interpreter allows
        """
        identity = self._identity_for(schema)
        report = ValidationReport()
        context = ValidationContext(self.cache)
        context.validate(identity, report, instance)
        return report

    def is_valid(self, schema: Any, instance: Any) -> bool:
        return self.validate(schema, instance).is_success()

    async def validate_async(self, schema: Any, instance: Any) -> ValidationReport:
        """Validate in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.validate, schema, instance)

    def cache_stats(self):
        return self.cache.get_stats()

    def close(self):
        self.registry.close()


_default_engine: Optional[SchemaEngine] = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> SchemaEngine:
    """Process-wide engine with default configuration, created on first use."""
    global _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            _default_engine = SchemaEngine()
        return _default_engine


def validate(schema: Any, instance: Any) -> ValidationReport:
    """Validate with the default engine."""
    return get_default_engine().validate(schema, instance)
