"""
Validator cache: compiles schema identities into validators and memoizes them.

Compilation runs at most once per identity even under concurrent access:
the first caller computes, later callers for the same identity wait on its
result. The table is bounded and evicts the least recently used entry.
"""
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Dict, Optional

from schema_engine.exceptions import ResolutionError
from schema_engine.factory import ValidatorFactory
from schema_engine.identity import SchemaIdentity
from schema_engine.keywords import KeywordBundle
from schema_engine.report import DOMAIN_REF_RESOLVING, DOMAIN_SYNTAX
from schema_engine.resolver import RefResolver
from schema_engine.syntax import SyntaxGate
from schema_engine.validators import CompiledValidator, FailingValidator, InstanceValidator

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_MAX_REF_HOPS = 64


@dataclass
class CacheStats:
    """Counters of a validator cache."""
    hits: int = 0
    misses: int = 0
    compilations: int = 0
    evictions: int = 0


class ValidatorCache:
    """Bounded, thread-safe, single-flight cache of compiled validators."""

    def __init__(
        self,
        resolver: RefResolver,
        bundle: KeywordBundle,
        capacity: int = DEFAULT_CAPACITY,
        max_ref_hops: int = DEFAULT_MAX_REF_HOPS,
    ):
        """
        Initialize cache.

        Args:
            resolver: Resolver used for "$ref" fragments
            bundle: Keyword bundle shared by the syntax gate and the factory
            capacity: Maximum number of cached validators
            max_ref_hops: Maximum length of a "$ref" chain
        """
        if capacity < 1:
            raise ValueError(f"cache capacity must be positive, got {capacity}")
        if max_ref_hops < 1:
            raise ValueError(f"max_ref_hops must be positive, got {max_ref_hops}")

        self.resolver = resolver
        self.syntax_gate = SyntaxGate(bundle)
        self.factory = ValidatorFactory(bundle)
        self.capacity = capacity
        self.max_ref_hops = max_ref_hops

        self._lock = threading.Lock()
        self._entries: "OrderedDict[SchemaIdentity, CompiledValidator]" = OrderedDict()
        self._pending: Dict[SchemaIdentity, Future] = {}
        self._stats = CacheStats()

    def get_validator(self, identity: SchemaIdentity) -> CompiledValidator:
        """
        Get the compiled validator of an identity, compiling it on first use.

        Schema problems come back as a FailingValidator; only internal
        defects raise.
        """
        with self._lock:
            validator = self._entries.get(identity)
            if validator is not None:
                self._entries.move_to_end(identity)
                self._stats.hits += 1
                return validator

            self._stats.misses += 1
            pending = self._pending.get(identity)
            owner = pending is None
            if owner:
                pending = Future()
                self._pending[identity] = pending

        if not owner:
            logger.debug(f"Cache wait: {identity.location}")
            return pending.result()

        logger.debug(f"Cache miss: {identity.location}")
        try:
            validator = self._compile(identity)
        except BaseException as e:
            with self._lock:
                del self._pending[identity]
            pending.set_exception(e)
            raise

        with self._lock:
            self._entries[identity] = validator
            self._stats.compilations += 1
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug(f"Cache evicted: {evicted.location}")
            del self._pending[identity]

        pending.set_result(validator)
        return validator

    def _compile(self, identity: SchemaIdentity) -> CompiledValidator:
        """Resolve refs, check syntax, build keyword validators."""
        current = identity
        seen = {identity}
        hops = 0
        while current.has_ref:
            if hops >= self.max_ref_hops:
                return self._failing(identity, DOMAIN_REF_RESOLVING, [
                    f"too many reference hops (more than {self.max_ref_hops}) starting at {identity.location}"
                ], "$ref")
            try:
                current = self.resolver.resolve(current)
            except ResolutionError as e:
                return self._failing(identity, DOMAIN_REF_RESOLVING, [str(e)], "$ref")
            if current in seen:
                return self._failing(identity, DOMAIN_REF_RESOLVING, [
                    f"cyclic reference: {current.location} is reached twice from {identity.location}"
                ], "$ref")
            seen.add(current)
            hops += 1

        violations = self.syntax_gate.check(current.fragment)
        if violations:
            return self._failing(identity, DOMAIN_SYNTAX, violations)

        validators = self.factory.build(current)
        logger.debug(f"Compiled {current.location} with {len(validators)} keyword validators")
        return InstanceValidator(current, validators)

    def _failing(self, identity: SchemaIdentity, domain: str, messages, keyword: Optional[str] = None):
        logger.warning(f"Schema at {identity.location} is unusable ({domain}): {'; '.join(messages)}")
        return FailingValidator(domain, messages, keyword)

    def invalidate(self, identity: SchemaIdentity):
        """Drop one cached validator."""
        with self._lock:
            if self._entries.pop(identity, None) is not None:
                logger.debug(f"Cache invalidated: {identity.location}")

    def clear(self):
        """Drop all cached validators."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Validator cache cleared: {count} entries removed")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self._stats.hits,
                "misses": self._stats.misses,
                "compilations": self._stats.compilations,
                "evictions": self._stats.evictions,
                "in_flight": len(self._pending),
            }

    def __contains__(self, identity: SchemaIdentity) -> bool:
        with self._lock:
            return identity in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
