"""
Per-call validation context.
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Set, Tuple

from schema_engine.identity import SchemaIdentity
from schema_engine.report import (
    DOMAIN_LOOP,
    DOMAIN_VALIDATION,
    ValidationMessage,
    ValidationReport,
)

logger = logging.getLogger(__name__)


class ValidationContext:
    """
    State threaded through a single top-level validation call.

    Tracks the JSON pointer of the instance currently being checked and
    which (schema identity, instance pointer) pairs are active on the call
    stack. Seeing the same pair twice means the schema graph re-enters itself
    without consuming any of the instance, which would never terminate.

    Not shared between validation calls.
    """

    def __init__(self, cache):
        self.cache = cache
        self._path: List[str] = []
        self._active: Set[Tuple[SchemaIdentity, str]] = set()

    @property
    def pointer(self) -> str:
        return "".join(
            "/" + token.replace("~", "~0").replace("/", "~1") for token in self._path
        )

    @contextmanager
    def descend(self, token: Any) -> Iterator[None]:
        """Move the instance pointer into a member or array element."""
        self._path.append(str(token))
        try:
            yield
        finally:
            self._path.pop()

    @contextmanager
    def entering(self, identity: SchemaIdentity) -> Iterator[bool]:
        """
        Mark an identity active for the current instance location.

        Yields False, without marking anything, if it is already active.
        """
        key = (identity, self.pointer)
        if key in self._active:
            yield False
            return
        self._active.add(key)
        try:
            yield True
        finally:
            self._active.discard(key)

    def loop_detected(self, report: ValidationReport, identity: SchemaIdentity):
        logger.warning(f"Validation loop on {identity.location} at instance '{self.pointer}'")
        report.add_message(ValidationMessage(
            domain=DOMAIN_LOOP,
            keyword=None,
            pointer=self.pointer,
            message=f"schema {identity.location} re-entered without consuming the instance",
        ))

    def error(self, report: ValidationReport, keyword: str, message: str):
        """Record an instance-level failure of one keyword."""
        report.add_message(ValidationMessage(
            domain=DOMAIN_VALIDATION,
            keyword=keyword,
            pointer=self.pointer,
            message=message,
        ))

    def validate(self, identity: SchemaIdentity, report: ValidationReport, instance: Any) -> bool:
        """Validate an instance against a sub-schema, through the cache."""
        return self.cache.get_validator(identity).evaluate(self, report, instance)

    def validate_member(
        self, identity: SchemaIdentity, report: ValidationReport, instance: Any, token: Any
    ) -> bool:
        """Validate a child instance (object member or array element)."""
        with self.descend(token):
            return self.validate(identity, report, instance)
