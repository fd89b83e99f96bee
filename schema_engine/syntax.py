"""
Syntax gate: checks keyword values of a schema fragment before any keyword
validator is built from it.
"""
import logging
from typing import Any, Dict, List

from jsonschema import Draft7Validator, FormatChecker

from schema_engine.keywords import KeywordBundle

logger = logging.getLogger(__name__)


class SyntaxGate:
    """
    Validates the shape of each known keyword of a fragment.

    Keyword values are checked against the syntax schema registered in the
    bundle, using jsonschema. Sub-schemas are only checked to be objects
    here; their own keywords are checked when they are compiled. Unknown
    keywords are ignored.
    """

    def __init__(self, bundle: KeywordBundle):
        self.bundle = bundle
        format_checker = FormatChecker()
        self._checkers: Dict[str, Draft7Validator] = {
            spec.name: Draft7Validator(spec.syntax, format_checker=format_checker)
            for spec in bundle.syntax_specs()
        }

    def check(self, fragment: Any) -> List[str]:
        """
        Check a ref-free schema fragment.

        Args:
            fragment: Raw schema fragment

        Returns:
            One message per violation, empty if the fragment is well formed
        """
        if not isinstance(fragment, dict):
            return [f"schema must be an object, got {type(fragment).__name__}"]

        violations = []
        for keyword in sorted(fragment):
            checker = self._checkers.get(keyword)
            if checker is None:
                continue
            for error in sorted(checker.iter_errors(fragment[keyword]), key=lambda e: [str(p) for p in e.path]):
                where = "".join(f"/{p}" for p in error.path)
                violations.append(f"keyword '{keyword}'{where}: {error.message}")

        if violations:
            logger.debug(f"Syntax gate found {len(violations)} violations")
        return violations
