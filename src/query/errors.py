"""
Benchmark Error Taxonomy.

Errors are split by how the driver reacts to them:
- Configuration errors abort the affected query before (or as soon as) they surface
- Data-absence errors abort only the query whose sample came back empty
- Anything else raised by the store mid-iteration is treated as transient
"""


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""

    pass


class ConfigurationError(BenchmarkError):
    """Invalid query or parameter configuration."""

    code: str = "configuration"

    def __init__(self, message: str, *, query: str | None = None):
        super().__init__(message)
        self.query = query


class UnknownParameterError(ConfigurationError):
    """A placeholder names a parameter that is not defined."""

    code = "unknown_parameter"

    def __init__(self, name: str, *, query: str | None = None):
        super().__init__(f"Unknown parameter: {name}", query=query)
        self.name = name


class InvalidParameterError(ConfigurationError):
    """A parameter definition is missing fields its kind requires."""

    code = "invalid_parameter"


class InvalidPatternError(ConfigurationError):
    """A pattern parameter contains a malformed token."""

    code = "invalid_pattern"


class UnknownQueryKindError(ConfigurationError):
    """The query kind is not one the executor knows how to run."""

    code = "unknown_query_kind"


class JoinDepthExceededError(ConfigurationError):
    """A join chain nests deeper than the configured guard."""

    code = "join_depth_exceeded"


class DataAbsenceError(BenchmarkError):
    """The store did not hold the data a parameter needs."""

    pass


class EmptySampleError(DataAbsenceError):
    """No values were observed for a sampled field."""

    def __init__(self, collection: str, field: str):
        super().__init__(f"No values found for {field} in collection {collection}")
        self.collection = collection
        self.field = field


def is_fatal(error: Exception) -> bool:
    """Check whether an error should abort the whole query run."""
    return isinstance(error, (ConfigurationError, DataAbsenceError))
