"""
JSON reference ($ref) resolution.

Resolves exactly one level of indirection: the identity returned may itself
hold a "$ref", which the validator cache resolves again.
"""
import logging
from typing import Any, List
from urllib.parse import unquote, urldefrag, urljoin

from schema_engine.exceptions import ResolutionError, SchemaLoadError
from schema_engine.identity import SchemaIdentity
from schema_engine.registry import SchemaRegistry

logger = logging.getLogger(__name__)


def parse_pointer(fragment: str) -> List[str]:
    """
    Split a URI fragment holding a JSON pointer into reference tokens.

    "" -> [], "/a/b~1c" -> ["a", "b/c"]. Percent-encoding is decoded first.

    Raises:
        ResolutionError: If the fragment is neither empty nor a JSON pointer
    """
    fragment = unquote(fragment)
    if fragment == "":
        return []
    if not fragment.startswith("/"):
        raise ResolutionError(f"fragment '#{fragment}' is not a JSON pointer", ref=fragment)

    tokens = []
    for raw in fragment[1:].split("/"):
        # "~01" must decode to "~1", so "~1" is replaced before "~0"
        if "~" in raw.replace("~0", "").replace("~1", ""):
            raise ResolutionError(f"illegal escape in JSON pointer '#{fragment}'", ref=fragment)
        tokens.append(raw.replace("~1", "/").replace("~0", "~"))
    return tokens


def walk_pointer(document: Any, tokens: List[str], ref: str) -> Any:
    """Follow reference tokens down a JSON document."""
    node = document
    for token in tokens:
        if isinstance(node, dict):
            if token not in node:
                raise ResolutionError(f"dangling JSON reference '{ref}': no member '{token}'", ref=ref)
            node = node[token]
        elif isinstance(node, list):
            if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
                raise ResolutionError(f"dangling JSON reference '{ref}': '{token}' is not an array index", ref=ref)
            index = int(token)
            if index >= len(node):
                raise ResolutionError(f"dangling JSON reference '{ref}': index {index} out of range", ref=ref)
            node = node[index]
        else:
            raise ResolutionError(f"dangling JSON reference '{ref}': cannot descend into a scalar", ref=ref)
    return node


class RefResolver:
    """Resolves the "$ref" of a schema identity against the schema registry."""

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def resolve(self, identity: SchemaIdentity) -> SchemaIdentity:
        """
        Resolve the "$ref" held by an identity's fragment.

        Args:
            identity: Identity whose fragment contains "$ref"

        Returns:
            Identity of the referenced fragment, in its own document

        Raises:
            ResolutionError: On malformed references, unknown documents and
                             dangling pointers
        """
        ref = identity.fragment["$ref"]
        if not isinstance(ref, str):
            raise ResolutionError(f"malformed JSON reference: expected a string, got {ref!r}")

        target = urljoin(identity.base_uri, ref) if identity.base_uri else ref
        document_uri, fragment = urldefrag(target)

        if document_uri in ("", identity.base_uri):
            container = identity.container
        else:
            try:
                container = self.registry.lookup(document_uri)
            except SchemaLoadError as e:
                raise ResolutionError(f"cannot load '{document_uri}' referenced by '{ref}': {e.reason}", ref=ref) from e

        try:
            tokens = parse_pointer(fragment)
        except ResolutionError as e:
            raise ResolutionError(f"malformed JSON reference '{ref}': {e}", ref=ref) from e

        node = walk_pointer(container.document, tokens, ref)
        pointer = fragment if fragment.startswith("/") else ""
        logger.debug(f"Resolved {ref} from {identity.location} to {container.locator}#{pointer}")
        return SchemaIdentity(container, node, unquote(pointer))
