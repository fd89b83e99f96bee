"""
Validation report and diagnostic messages.
"""
import threading
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field

# Message domains. The first two mean the schema itself is unusable.
DOMAIN_SYNTAX = "syntax"
DOMAIN_REF_RESOLVING = "$ref resolving"
DOMAIN_VALIDATION = "validation"
DOMAIN_LOOP = "loop"

SCHEMA_DOMAINS = frozenset({DOMAIN_SYNTAX, DOMAIN_REF_RESOLVING})


class ValidationMessage(BaseModel):
    """One diagnostic produced while validating an instance."""

    domain: str = Field(
        ...,
        description="Message category",
        examples=[DOMAIN_VALIDATION, DOMAIN_SYNTAX, DOMAIN_REF_RESOLVING, DOMAIN_LOOP],
    )

    keyword: str | None = Field(
        None,
        description="Keyword that failed, when there is one",
        examples=["type", "minLength", "$ref"],
    )

    pointer: str = Field(
        "",
        description="JSON pointer into the instance ('' is the root)",
        examples=["", "/items/0/name"],
    )

    message: str = Field(
        ...,
        description="Human readable explanation",
        examples=["instance is shorter than minLength 5"],
    )

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def is_schema_error(self) -> bool:
        """True when the schema, not the instance, is at fault."""
        return self.domain in SCHEMA_DOMAINS

    def __str__(self) -> str:
        where = self.pointer or "/"
        keyword = f" [{self.keyword}]" if self.keyword else ""
        return f"{where}: {self.domain}{keyword}: {self.message}"


class ValidationReport:
    """
    Accumulates the messages of one validation call.

    Failure is sticky: once a message has been added the report stays failed.
    Appends are locked so validators evaluated from several threads can share
    one report.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: List[ValidationMessage] = []

    def add_message(self, message: ValidationMessage):
        with self._lock:
            self._messages.append(message)

    def add_messages(self, messages: Iterable[ValidationMessage]):
        messages = list(messages)
        with self._lock:
            self._messages.extend(messages)

    def merge(self, other: "ValidationReport"):
        """Copy all messages of another report into this one."""
        self.add_messages(other.messages)

    @property
    def messages(self) -> List[ValidationMessage]:
        with self._lock:
            return list(self._messages)

    def is_success(self) -> bool:
        with self._lock:
            return not self._messages

    def has_schema_errors(self) -> bool:
        return any(m.is_schema_error for m in self.messages)

    def loop_messages(self) -> List[ValidationMessage]:
        return [m for m in self.messages if m.domain == DOMAIN_LOOP]

    def as_dict(self) -> Dict[str, Any]:
        """JSON-ready summary of the report."""
        messages = self.messages
        return {
            "success": not messages,
            "messages": [m.model_dump() for m in messages],
        }

    def __repr__(self) -> str:
        return f"ValidationReport(success={self.is_success()}, messages={len(self.messages)})"
