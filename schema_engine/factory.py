"""
Validator factory: builds the keyword validators of a checked fragment.
"""
import logging
from typing import Tuple

from schema_engine.exceptions import FactoryDefectError
from schema_engine.identity import SchemaIdentity
from schema_engine.keywords import KeywordBundle, KeywordValidator

logger = logging.getLogger(__name__)


class ValidatorFactory:
    """Instantiates one keyword validator per applicable bundle entry."""

    def __init__(self, bundle: KeywordBundle):
        self.bundle = bundle

    def build(self, identity: SchemaIdentity) -> Tuple[KeywordValidator, ...]:
        """
        Build the validators of a fragment that passed the syntax gate.

        Non-recursive validators come first so cheap checks run before
        descending into sub-schemas. An empty fragment yields no validators.

        Raises:
            FactoryDefectError: If a constructor fails on checked input
        """
        fragment = identity.fragment
        validators = []
        for spec in self.bundle.validator_specs():
            if not any(keyword in fragment for keyword in spec.all_triggers):
                continue
            try:
                validators.append(spec.constructor(identity))
            except Exception as e:
                logger.error(f"Failed to build '{spec.name}' validator for {identity.location}: {e}", exc_info=True)
                raise FactoryDefectError(spec.name, e) from e

        validators.sort(key=lambda v: v.recursive)
        return tuple(validators)
