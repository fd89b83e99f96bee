"""
Exception hierarchy for the schema engine.

Schema-level problems (broken references, bad keyword syntax) are normally
turned into failing validators by the validator cache. These exceptions are
what the resolver, registry and factory raise before that conversion happens.
"""


class SchemaEngineError(Exception):
    """Base class for all schema engine errors."""


class ResolutionError(SchemaEngineError):
    """A $ref could not be dereferenced."""

    def __init__(self, message: str, ref: str | None = None):
        super().__init__(message)
        self.ref = ref


class SchemaNotFoundError(ResolutionError):
    """No document is registered under the requested URI."""

    def __init__(self, uri: str):
        super().__init__(f"no schema registered for URI '{uri}'", ref=uri)
        self.uri = uri


class SchemaLoadError(SchemaEngineError):
    """A schema document could not be read, fetched or parsed."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"failed to load schema from {source}: {reason}")
        self.source = source
        self.reason = reason


class FactoryDefectError(SchemaEngineError):
    """
    A keyword validator could not be built for a fragment that passed the
    syntax gate. This is a bug in a keyword's syntax/constructor pairing and
    is never reported as an invalid schema.
    """

    def __init__(self, keyword: str, cause: Exception):
        super().__init__(
            f"internal error building validator for keyword '{keyword}': {cause}"
        )
        self.keyword = keyword
        self.cause = cause
