"""
Compiled validators: what the validator cache hands out.
"""
from abc import ABC, abstractmethod
from typing import Any, Iterable, Tuple

from schema_engine.identity import SchemaIdentity
from schema_engine.keywords import KeywordValidator
from schema_engine.report import ValidationMessage, ValidationReport


class CompiledValidator(ABC):
    """Executable form of one schema identity. Immutable and thread safe."""

    @abstractmethod
    def evaluate(self, context, report: ValidationReport, instance: Any) -> bool:
        """
        Validate an instance, adding messages to the report on failure.

        Returns:
            True if the instance is valid
        """


class InstanceValidator(CompiledValidator):
    """
    Conjunction of the keyword validators of a resolved fragment.

    Every keyword validator runs, so the report gets one message per violated
    keyword.
    """

    def __init__(self, identity: SchemaIdentity, validators: Iterable[KeywordValidator]):
        self.identity = identity
        self.validators: Tuple[KeywordValidator, ...] = tuple(validators)

    def evaluate(self, context, report: ValidationReport, instance: Any) -> bool:
        with context.entering(self.identity) as entered:
            if not entered:
                context.loop_detected(report, self.identity)
                return False

            ok = True
            for validator in self.validators:
                if not validator.evaluate(context, report, instance):
                    ok = False
            return ok

    def __repr__(self) -> str:
        keywords = ", ".join(v.keyword for v in self.validators)
        return f"InstanceValidator({self.identity.location!r}, [{keywords}])"


class FailingValidator(CompiledValidator):
    """
    Stands in for a schema that could not be compiled (unresolvable $ref,
    bad keyword syntax). Fails every instance without looking at it.
    """

    def __init__(self, domain: str, messages: Iterable[str], keyword: str | None = None):
        self.domain = domain
        self.keyword = keyword
        self.messages: Tuple[str, ...] = tuple(messages)
        if not self.messages:
            raise ValueError("FailingValidator needs at least one message")

    def evaluate(self, context, report: ValidationReport, instance: Any) -> bool:
        report.add_messages(
            ValidationMessage(domain=self.domain, keyword=self.keyword, pointer=context.pointer, message=message)
            for message in self.messages
        )
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FailingValidator):
            return NotImplemented
        return (self.domain, self.keyword, self.messages) == (other.domain, other.keyword, other.messages)

    def __hash__(self) -> int:
        return hash((self.domain, self.keyword, self.messages))

    def __repr__(self) -> str:
        return f"FailingValidator({self.domain!r}, {list(self.messages)!r})"
