"""
Declarative Query Execution.

Provides the client-side query core of the benchmark:
- Query, parameter, and join specifications
- Parameter value generation and correlated document sampling
- Placeholder substitution in filter templates
- Client-side join chain resolution
"""

from src.query.context import ExecutionContext
from src.query.errors import (
    BenchmarkError,
    ConfigurationError,
    DataAbsenceError,
    EmptySampleError,
    InvalidParameterError,
    InvalidPatternError,
    JoinDepthExceededError,
    UnknownParameterError,
    UnknownQueryKindError,
)
from src.query.executor import QueryExecutor, QueryResult
from src.query.extraction import NO_VALUE, extract_all, extract_first
from src.query.generators import ValueGenerator, compile_pattern
from src.query.joins import JoinChainExecutor
from src.query.models import (
    JoinSpec,
    ParameterKind,
    ParameterSpec,
    QueryExecution,
    QueryKind,
    QuerySpec,
    QuerySuite,
)
from src.query.sampler import CorrelatedDocumentSampler, SampleStore
from src.query.substitution import ParameterSubstitutor
from src.query.validation import check_query_spec

__all__ = [
    # Models
    "JoinSpec",
    "ParameterKind",
    "ParameterSpec",
    "QueryExecution",
    "QueryKind",
    "QuerySpec",
    "QuerySuite",
    # Execution
    "ExecutionContext",
    "QueryExecutor",
    "QueryResult",
    "JoinChainExecutor",
    "ParameterSubstitutor",
    "ValueGenerator",
    "CorrelatedDocumentSampler",
    "SampleStore",
    "check_query_spec",
    "compile_pattern",
    # Extraction
    "NO_VALUE",
    "extract_all",
    "extract_first",
    # Errors
    "BenchmarkError",
    "ConfigurationError",
    "DataAbsenceError",
    "EmptySampleError",
    "InvalidParameterError",
    "InvalidPatternError",
    "JoinDepthExceededError",
    "UnknownParameterError",
    "UnknownQueryKindError",
]
