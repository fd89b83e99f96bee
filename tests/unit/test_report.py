"""
Unit tests for validation reports and the per-call context.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
from schema_engine.context import ValidationContext
from schema_engine.identity import SchemaContainer, SchemaIdentity
from schema_engine.report import (
    DOMAIN_LOOP,
    DOMAIN_REF_RESOLVING,
    DOMAIN_SYNTAX,
    DOMAIN_VALIDATION,
    ValidationMessage,
    ValidationReport,
)


def message(domain=DOMAIN_VALIDATION, keyword="type", pointer="", text="bad"):
    return ValidationMessage(domain=domain, keyword=keyword, pointer=pointer, message=text)


class TestValidationReport:
    """Test suite for ValidationReport."""

    def test_new_report_is_successful(self):
        report = ValidationReport()

        assert report.is_success()
        assert report.messages == []

    def test_failure_is_sticky(self):
        """Once failed, a report never goes back to success."""
        report = ValidationReport()
        report.add_message(message())
        report.merge(ValidationReport())
        report.add_messages([])

        assert not report.is_success()
        assert len(report.messages) == 1

    def test_messages_is_a_copy(self):
        report = ValidationReport()
        report.messages.append(message())

        assert report.is_success()

    def test_schema_errors(self):
        report = ValidationReport()
        report.add_message(message())
        assert not report.has_schema_errors()

        report.add_message(message(domain=DOMAIN_REF_RESOLVING, keyword="$ref"))
        assert report.has_schema_errors()

    def test_as_dict(self):
        report = ValidationReport()
        report.add_message(message(pointer="/a", text="nope"))

        assert report.as_dict() == {
            "success": False,
            "messages": [
                {"domain": "validation", "keyword": "type", "pointer": "/a", "message": "nope"},
            ],
        }

    def test_concurrent_appends(self):
        """Appends from many threads are all kept."""
        report = ValidationReport()

        def add(i):
            report.add_message(message(pointer=f"/{i}"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(add, range(200)))

        assert len(report.messages) == 200


class TestValidationMessage:
    """Test suite for ValidationMessage."""

    @pytest.mark.parametrize("domain, expected", [
        (DOMAIN_SYNTAX, True),
        (DOMAIN_REF_RESOLVING, True),
        (DOMAIN_VALIDATION, False),
        (DOMAIN_LOOP, False),
    ])
    def test_is_schema_error(self, domain, expected):
        assert message(domain=domain).is_schema_error is expected

    def test_str(self):
        assert str(message(pointer="/a/0", text="wrong")) == "/a/0: validation [type]: wrong"
        assert str(message(keyword=None, text="x")) == "/: validation: x"


class TestValidationContext:
    """Test suite for ValidationContext."""

    @pytest.fixture
    def context(self):
        return ValidationContext(cache=None)

    @pytest.fixture
    def identity(self):
        return SchemaIdentity.root(SchemaContainer("urn:test", {"type": "object"}))

    def test_pointer_follows_descent(self, context):
        assert context.pointer == ""
        with context.descend("a/b"):
            with context.descend(0):
                assert context.pointer == "/a~1b/0"
            with context.descend("c~d"):
                assert context.pointer == "/a~1b/c~0d"
        assert context.pointer == ""

    def test_entering_twice_at_same_pointer(self, context, identity):
        with context.entering(identity) as first:
            assert first is True
            with context.entering(identity) as second:
                assert second is False
            with context.descend("child"):
                with context.entering(identity) as nested:
                    assert nested is True

        with context.entering(identity) as again:
            assert again is True

    def test_loop_and_error_messages(self, context, identity):
        report = ValidationReport()
        with context.descend("x"):
            context.loop_detected(report, identity)
            context.error(report, "minimum", "too small")

        loop, error = report.messages
        assert loop.domain == DOMAIN_LOOP
        assert loop.pointer == "/x"
        assert error.domain == DOMAIN_VALIDATION
        assert error.keyword == "minimum"
