"""
Schema identities used as validator cache keys.

A schema fragment on its own is not enough to know how it validates: a
"$ref" inside it resolves against the document it lives in. SchemaContainer
pins the document (locator + content) and SchemaIdentity pins a fragment
inside that container. Both precompute their hash from canonical JSON so
cache lookups stay cheap.
"""
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize a JSON value with sorted keys and no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class SchemaContainer:
    """
    A registered schema document and the URI it was loaded from.

    The locator never carries a fragment; it is the base URI that relative
    references inside the document are resolved against.
    """

    __slots__ = ("locator", "document", "_canonical", "_hash")

    def __init__(self, locator: str, document: Any):
        self.locator = locator
        self.document = document
        self._canonical = canonical_json(document)
        self._hash = hash((locator, self._canonical))

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, SchemaContainer):
            return NotImplemented
        return (
            self._hash == other._hash
            and self.locator == other.locator
            and self._canonical == other._canonical
        )

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"SchemaContainer(locator={self.locator!r})"


class SchemaIdentity:
    """
    A schema fragment as it must be interpreted: its content plus the
    container it is resolved in.

    Two identities are equal when their containers are equal and their
    fragments serialize to the same canonical JSON. The pointer is kept for
    diagnostics only and does not take part in equality.
    """

    __slots__ = ("container", "fragment", "pointer", "_canonical", "_hash")

    def __init__(self, container: SchemaContainer, fragment: Any, pointer: str = ""):
        self.container = container
        self.fragment = fragment
        self.pointer = pointer
        self._canonical = canonical_json(fragment)
        self._hash = hash((container, self._canonical))

    @classmethod
    def root(cls, container: SchemaContainer) -> "SchemaIdentity":
        """Identity of the whole document held by a container."""
        return cls(container, container.document, "")

    @property
    def base_uri(self) -> str:
        return self.container.locator

    @property
    def has_ref(self) -> bool:
        return isinstance(self.fragment, dict) and "$ref" in self.fragment

    @property
    def location(self) -> str:
        """Human readable location, e.g. 'http://x/schema#/definitions/a'."""
        return f"{self.container.locator}#{self.pointer}"

    def child(self, fragment: Any, *tokens: Any) -> "SchemaIdentity":
        """Identity of a sub-schema of this fragment, in the same container."""
        pointer = self.pointer
        for token in tokens:
            pointer += "/" + str(token).replace("~", "~0").replace("/", "~1")
        return SchemaIdentity(self.container, fragment, pointer)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, SchemaIdentity):
            return NotImplemented
        return (
            self._hash == other._hash
            and self._canonical == other._canonical
            and self.container == other.container
        )

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"SchemaIdentity({self.location!r})"
