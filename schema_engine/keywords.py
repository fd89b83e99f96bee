"""
Keyword validators and the keyword bundle.

Each keyword validator checks one constraint (or one group of related
keywords) against an instance. The bundle maps keyword names to the syntax
schema their value must satisfy and to the constructor building their
validator; the syntax gate and the validator factory both read from it.
"""
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from jsonschema import FormatChecker

from schema_engine.identity import SchemaIdentity, canonical_json
from schema_engine.report import ValidationReport

TYPE_NAMES = ("any", "array", "boolean", "integer", "null", "number", "object", "string")

_format_checker = FormatChecker()


# ==================== JSON value helpers ====================

def json_type(value: Any) -> str:
    """Most specific JSON type name of a value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    raise TypeError(f"not a JSON value: {type(value).__name__}")


def is_type(value: Any, type_name: str) -> bool:
    if type_name == "any":
        return True
    actual = json_type(value)
    if type_name == "number":
        return actual in ("number", "integer")
    return actual == type_name


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def json_equal(left: Any, right: Any) -> bool:
    """JSON equality: 1 == 1.0, but True != 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(json_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(json_equal(left[k], right[k]) for k in left)
    return type(left) is type(right) and left == right


def describe(value: Any) -> str:
    text = canonical_json(value)
    return text if len(text) <= 60 else text[:57] + "..."


# ==================== Keyword validator base ====================

class KeywordValidator(ABC):
    """
    Checks one keyword of a schema fragment against instances.

    Implementations are immutable once built and append their own message to
    the report when they fail.
    """

    keyword: str = ""
    recursive: bool = False

    def __init__(self, identity: SchemaIdentity):
        self.identity = identity

    @abstractmethod
    def evaluate(self, context, report, instance: Any) -> bool:
        """Return True if the instance satisfies the keyword."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity.location!r})"


# ==================== Generic ====================

class TypeValidator(KeywordValidator):
    keyword = "type"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        value = identity.fragment["type"]
        self.types: Tuple[str, ...] = (value,) if isinstance(value, str) else tuple(value)

    def evaluate(self, context, report, instance: Any) -> bool:
        if any(is_type(instance, t) for t in self.types):
            return True
        context.error(
            report, self.keyword,
            f"instance type '{json_type(instance)}' is not allowed (expected {', '.join(self.types)})",
        )
        return False


class EnumValidator(KeywordValidator):
    keyword = "enum"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.values = list(identity.fragment["enum"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if any(json_equal(instance, v) for v in self.values):
            return True
        context.error(report, self.keyword, f"instance {describe(instance)} is not one of the enumerated values")
        return False


class ConstValidator(KeywordValidator):
    keyword = "const"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.value = identity.fragment["const"]

    def evaluate(self, context, report, instance: Any) -> bool:
        if json_equal(instance, self.value):
            return True
        context.error(report, self.keyword, f"instance {describe(instance)} is not equal to {describe(self.value)}")
        return False


# ==================== Numbers ====================

class MultipleOfValidator(KeywordValidator):
    keyword = "multipleOf"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.divisor = identity.fragment["multipleOf"]

    def evaluate(self, context, report, instance: Any) -> bool:
        if not is_number(instance):
            return True
        if isinstance(self.divisor, float) or isinstance(instance, float):
            quotient = instance / self.divisor
            try:
                ok = math.isclose(quotient, round(quotient), rel_tol=0, abs_tol=1e-9)
            except OverflowError:
                ok = False
        else:
            ok = instance % self.divisor == 0
        if not ok:
            context.error(report, self.keyword, f"{instance} is not a multiple of {self.divisor}")
        return ok


class MinimumValidator(KeywordValidator):
    keyword = "minimum"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = identity.fragment["minimum"]
        self.exclusive = identity.fragment.get("exclusiveMinimum", False)

    def evaluate(self, context, report, instance: Any) -> bool:
        if not is_number(instance):
            return True
        ok = instance > self.limit if self.exclusive else instance >= self.limit
        if not ok:
            relation = "greater than" if self.exclusive else "greater than or equal to"
            context.error(report, self.keyword, f"{instance} is not {relation} {self.limit}")
        return ok


class MaximumValidator(KeywordValidator):
    keyword = "maximum"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = identity.fragment["maximum"]
        self.exclusive = identity.fragment.get("exclusiveMaximum", False)

    def evaluate(self, context, report, instance: Any) -> bool:
        if not is_number(instance):
            return True
        ok = instance < self.limit if self.exclusive else instance <= self.limit
        if not ok:
            relation = "less than" if self.exclusive else "less than or equal to"
            context.error(report, self.keyword, f"{instance} is not {relation} {self.limit}")
        return ok


# ==================== Strings ====================

class MinLengthValidator(KeywordValidator):
    keyword = "minLength"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["minLength"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, str) or len(instance) >= self.limit:
            return True
        context.error(report, self.keyword, f"string is shorter than minLength {self.limit} ({len(instance)})")
        return False


class MaxLengthValidator(KeywordValidator):
    keyword = "maxLength"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["maxLength"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, str) or len(instance) <= self.limit:
            return True
        context.error(report, self.keyword, f"string is longer than maxLength {self.limit} ({len(instance)})")
        return False


class PatternValidator(KeywordValidator):
    keyword = "pattern"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.pattern = identity.fragment["pattern"]
        self.regex = re.compile(self.pattern)

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, str) or self.regex.search(instance):
            return True
        context.error(report, self.keyword, f"string {describe(instance)} does not match pattern '{self.pattern}'")
        return False


class FormatValidator(KeywordValidator):
    """Delegates to jsonschema's format checker. Unknown formats always pass."""

    keyword = "format"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.format = identity.fragment["format"]

    def evaluate(self, context, report, instance: Any) -> bool:
        if _format_checker.conforms(instance, self.format):
            return True
        context.error(report, self.keyword, f"{describe(instance)} is not a valid '{self.format}'")
        return False


# ==================== Arrays ====================

class MinItemsValidator(KeywordValidator):
    keyword = "minItems"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["minItems"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, list) or len(instance) >= self.limit:
            return True
        context.error(report, self.keyword, f"array has {len(instance)} items, fewer than minItems {self.limit}")
        return False


class MaxItemsValidator(KeywordValidator):
    keyword = "maxItems"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["maxItems"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, list) or len(instance) <= self.limit:
            return True
        context.error(report, self.keyword, f"array has {len(instance)} items, more than maxItems {self.limit}")
        return False


class UniqueItemsValidator(KeywordValidator):
    keyword = "uniqueItems"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.enabled = identity.fragment["uniqueItems"]

    def evaluate(self, context, report, instance: Any) -> bool:
        if not self.enabled or not isinstance(instance, list):
            return True
        for i, item in enumerate(instance):
            for j in range(i + 1, len(instance)):
                if json_equal(item, instance[j]):
                    context.error(report, self.keyword, f"array items {i} and {j} are equal")
                    return False
        return True


class ItemsValidator(KeywordValidator):
    """items (single schema or tuple of schemas) plus additionalItems."""

    keyword = "items"
    recursive = True

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        fragment = identity.fragment
        items = fragment.get("items", {})
        self.single: Optional[SchemaIdentity] = None
        self.tuple_items: List[SchemaIdentity] = []
        if isinstance(items, dict):
            self.single = identity.child(items, "items")
        else:
            self.tuple_items = [identity.child(s, "items", i) for i, s in enumerate(items)]

        additional = fragment.get("additionalItems", True)
        self.additional_allowed = additional is not False
        self.additional: Optional[SchemaIdentity] = (
            identity.child(additional, "additionalItems") if isinstance(additional, dict) else None
        )

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, list):
            return True

        if self.single is not None:
            ok = True
            for index, item in enumerate(instance):
                if not context.validate_member(self.single, report, item, index):
                    ok = False
            return ok

        ok = True
        for index, item in enumerate(instance):
            if index < len(self.tuple_items):
                if not context.validate_member(self.tuple_items[index], report, item, index):
                    ok = False
            elif not self.additional_allowed:
                context.error(
                    report, "additionalItems",
                    f"array has {len(instance)} items, only {len(self.tuple_items)} allowed",
                )
                return False
            elif self.additional is not None:
                if not context.validate_member(self.additional, report, item, index):
                    ok = False
        return ok


# ==================== Objects ====================

class MinPropertiesValidator(KeywordValidator):
    keyword = "minProperties"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["minProperties"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, dict) or len(instance) >= self.limit:
            return True
        context.error(report, self.keyword, f"object has {len(instance)} members, fewer than minProperties {self.limit}")
        return False


class MaxPropertiesValidator(KeywordValidator):
    keyword = "maxProperties"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.limit = int(identity.fragment["maxProperties"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, dict) or len(instance) <= self.limit:
            return True
        context.error(report, self.keyword, f"object has {len(instance)} members, more than maxProperties {self.limit}")
        return False


class RequiredValidator(KeywordValidator):
    keyword = "required"

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.names = list(identity.fragment["required"])

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, dict):
            return True
        missing = [name for name in self.names if name not in instance]
        if missing:
            context.error(report, self.keyword, f"missing required members: {', '.join(missing)}")
            return False
        return True


class PropertiesValidator(KeywordValidator):
    """properties, patternProperties and additionalProperties together."""

    keyword = "properties"
    recursive = True

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        fragment = identity.fragment
        self.properties: Dict[str, SchemaIdentity] = {
            name: identity.child(schema, "properties", name)
            for name, schema in fragment.get("properties", {}).items()
        }
        self.patterns: List[Tuple[re.Pattern, SchemaIdentity]] = [
            (re.compile(pattern), identity.child(schema, "patternProperties", pattern))
            for pattern, schema in fragment.get("patternProperties", {}).items()
        ]
        additional = fragment.get("additionalProperties", True)
        self.additional_allowed = additional is not False
        self.additional: Optional[SchemaIdentity] = (
            identity.child(additional, "additionalProperties") if isinstance(additional, dict) else None
        )

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, dict):
            return True

        ok = True
        extra = []
        for name, value in instance.items():
            matched = False
            if name in self.properties:
                matched = True
                if not context.validate_member(self.properties[name], report, value, name):
                    ok = False
            for regex, schema in self.patterns:
                if regex.search(name):
                    matched = True
                    if not context.validate_member(schema, report, value, name):
                        ok = False
            if matched:
                continue
            if not self.additional_allowed:
                extra.append(name)
            elif self.additional is not None:
                if not context.validate_member(self.additional, report, value, name):
                    ok = False

        if extra:
            context.error(report, "additionalProperties", f"additional members not allowed: {', '.join(sorted(extra))}")
            ok = False
        return ok


class DependenciesValidator(KeywordValidator):
    keyword = "dependencies"
    recursive = True

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.member_deps: Dict[str, List[str]] = {}
        self.schema_deps: Dict[str, SchemaIdentity] = {}
        for name, dependency in identity.fragment["dependencies"].items():
            if isinstance(dependency, dict):
                self.schema_deps[name] = identity.child(dependency, "dependencies", name)
            else:
                self.member_deps[name] = list(dependency)

    def evaluate(self, context, report, instance: Any) -> bool:
        if not isinstance(instance, dict):
            return True
        ok = True
        for name, needed in self.member_deps.items():
            if name not in instance:
                continue
            missing = [n for n in needed if n not in instance]
            if missing:
                context.error(report, self.keyword, f"member '{name}' requires missing members: {', '.join(missing)}")
                ok = False
        for name, schema in self.schema_deps.items():
            if name in instance and not context.validate(schema, report, instance):
                ok = False
        return ok


# ==================== Combinators ====================

class AllOfValidator(KeywordValidator):
    keyword = "allOf"
    recursive = True

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.schemas = [identity.child(s, self.keyword, i) for i, s in enumerate(identity.fragment[self.keyword])]

    def evaluate(self, context, report, instance: Any) -> bool:
        ok = True
        for schema in self.schemas:
            if not context.validate(schema, report, instance):
                ok = False
        return ok


def _trial(context, schema: SchemaIdentity, report: ValidationReport, instance: Any) -> Optional[bool]:
    """
    Evaluate a branch whose failure messages are not reported.

    Loop messages are the exception: they are copied into the report and the
    result is None, because a branch that re-entered itself has no outcome a
    combinator may invert or count.
    """
    scratch = ValidationReport()
    result = context.validate(schema, scratch, instance)
    loops = scratch.loop_messages()
    if loops:
        report.add_messages(loops)
        return None
    return result


class AnyOfValidator(AllOfValidator):
    keyword = "anyOf"

    def evaluate(self, context, report, instance: Any) -> bool:
        for schema in self.schemas:
            outcome = _trial(context, schema, report, instance)
            if outcome is None:
                return False
            if outcome:
                return True
        context.error(report, self.keyword, f"instance matched none of the {len(self.schemas)} schemas")
        return False


class OneOfValidator(AllOfValidator):
    keyword = "oneOf"

    def evaluate(self, context, report, instance: Any) -> bool:
        matched = 0
        for schema in self.schemas:
            outcome = _trial(context, schema, report, instance)
            if outcome is None:
                return False
            if outcome:
                matched += 1
        if matched == 1:
            return True
        context.error(report, self.keyword, f"instance matched {matched} of {len(self.schemas)} schemas, expected exactly one")
        return False


class NotValidator(KeywordValidator):
    keyword = "not"
    recursive = True

    def __init__(self, identity: SchemaIdentity):
        super().__init__(identity)
        self.schema = identity.child(identity.fragment["not"], "not")

    def evaluate(self, context, report, instance: Any) -> bool:
        outcome = _trial(context, self.schema, report, instance)
        if outcome is None:
            return False
        if not outcome:
            return True
        context.error(report, self.keyword, "instance matched a schema it must not match")
        return False


# ==================== Bundle ====================

@dataclass(frozen=True)
class KeywordSpec:
    """
    One entry of a keyword bundle.

    syntax is the JSON Schema the keyword's value must satisfy. constructor
    is None for keywords that only modify another keyword's validator (e.g.
    additionalItems); triggers lists every keyword whose presence builds the
    validator.
    """
    name: str
    syntax: Dict[str, Any]
    constructor: Optional[Callable[[SchemaIdentity], KeywordValidator]] = None
    triggers: Tuple[str, ...] = ()

    @property
    def all_triggers(self) -> Tuple[str, ...]:
        return self.triggers or (self.name,)


_SCHEMA = {"type": "object"}
_SCHEMA_ARRAY = {"type": "array", "minItems": 1, "items": _SCHEMA}
_NON_NEGATIVE = {"type": "integer", "minimum": 0}
_TYPE_NAME = {"type": "string", "enum": list(TYPE_NAMES)}
_STRING_ARRAY = {"type": "array", "items": {"type": "string"}, "minItems": 1, "uniqueItems": True}


class KeywordBundle:
    """
    Lookup table from keyword name to syntax schema and validator constructor.
    New keywords are added with register().
    """

    def __init__(self, specs: Optional[List[KeywordSpec]] = None):
        self._specs: Dict[str, KeywordSpec] = {}
        for spec in specs or []:
            self._specs[spec.name] = spec

    def register(
        self,
        name: str,
        syntax: Dict[str, Any],
        constructor: Optional[Callable[[SchemaIdentity], KeywordValidator]] = None,
        triggers: Tuple[str, ...] = (),
    ):
        self._specs[name] = KeywordSpec(name, syntax, constructor, tuple(triggers))

    def get(self, name: str) -> Optional[KeywordSpec]:
        return self._specs.get(name)

    def syntax_specs(self) -> List[KeywordSpec]:
        return list(self._specs.values())

    def validator_specs(self) -> List[KeywordSpec]:
        return [spec for spec in self._specs.values() if spec.constructor is not None]

    def copy(self) -> "KeywordBundle":
        return KeywordBundle(list(self._specs.values()))

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)


def default_bundle() -> KeywordBundle:
    """Draft-04 compatible keyword set."""
    return KeywordBundle([
        KeywordSpec("type", {
            "anyOf": [
                _TYPE_NAME,
                {"type": "array", "items": _TYPE_NAME, "minItems": 1, "uniqueItems": True},
            ],
        }, TypeValidator),
        KeywordSpec("enum", {"type": "array", "minItems": 1, "uniqueItems": True}, EnumValidator),
        KeywordSpec("const", {}, ConstValidator),
        KeywordSpec("multipleOf", {"type": "number", "exclusiveMinimum": 0}, MultipleOfValidator),
        KeywordSpec("minimum", {"type": "number"}, MinimumValidator),
        KeywordSpec("exclusiveMinimum", {"type": "boolean"}),
        KeywordSpec("maximum", {"type": "number"}, MaximumValidator),
        KeywordSpec("exclusiveMaximum", {"type": "boolean"}),
        KeywordSpec("minLength", _NON_NEGATIVE, MinLengthValidator),
        KeywordSpec("maxLength", _NON_NEGATIVE, MaxLengthValidator),
        KeywordSpec("pattern", {"type": "string", "format": "regex"}, PatternValidator),
        KeywordSpec("format", {"type": "string"}, FormatValidator),
        KeywordSpec("minItems", _NON_NEGATIVE, MinItemsValidator),
        KeywordSpec("maxItems", _NON_NEGATIVE, MaxItemsValidator),
        KeywordSpec("uniqueItems", {"type": "boolean"}, UniqueItemsValidator),
        KeywordSpec("items", {"anyOf": [_SCHEMA, {"type": "array", "items": _SCHEMA}]},
                    ItemsValidator, ("items", "additionalItems")),
        KeywordSpec("additionalItems", {"type": ["boolean", "object"]}),
        KeywordSpec("minProperties", _NON_NEGATIVE, MinPropertiesValidator),
        KeywordSpec("maxProperties", _NON_NEGATIVE, MaxPropertiesValidator),
        KeywordSpec("required", _STRING_ARRAY, RequiredValidator),
        KeywordSpec("properties", {"type": "object", "additionalProperties": _SCHEMA},
                    PropertiesValidator, ("properties", "patternProperties", "additionalProperties")),
        KeywordSpec("patternProperties", {
            "type": "object",
            "propertyNames": {"format": "regex"},
            "additionalProperties": _SCHEMA,
        }),
        KeywordSpec("additionalProperties", {"type": ["boolean", "object"]}),
        KeywordSpec("dependencies", {
            "type": "object",
            "additionalProperties": {
                "anyOf": [_SCHEMA, _STRING_ARRAY],
            },
        }, DependenciesValidator),
        KeywordSpec("allOf", _SCHEMA_ARRAY, AllOfValidator),
        KeywordSpec("anyOf", _SCHEMA_ARRAY, AnyOfValidator),
        KeywordSpec("oneOf", _SCHEMA_ARRAY, OneOfValidator),
        KeywordSpec("not", _SCHEMA, NotValidator),
    ])
