"""
Pre-flight checks for QuerySpecs.

Run before any iteration so configuration mistakes abort the query up front
instead of surfacing as a stream of failed iterations.
"""

import structlog

from src.query.errors import (
    ConfigurationError,
    InvalidParameterError,
    JoinDepthExceededError,
    UnknownParameterError,
)
from src.query.models import ParameterKind, ParameterSpec, QueryKind, QuerySpec

logger = structlog.get_logger(__name__)


def check_parameter(name: str, param: ParameterSpec, query: str) -> None:
    """Validate the fields a parameter's kind requires."""
    if param.is_correlated:
        if not param.field:
            raise InvalidParameterError(
                f"Correlated parameter '{name}' requires 'field' to be specified", query=query
            )
        return

    if param.kind is None:
        raise InvalidParameterError(f"Parameter '{name}' has no type", query=query)

    if param.kind in (ParameterKind.RANGE, ParameterKind.SEQUENCE):
        if param.min is None or param.max is None:
            raise InvalidParameterError(f"Parameter '{name}' requires 'min' and 'max'", query=query)
        if param.min > param.max:
            raise InvalidParameterError(
                f"Parameter '{name}' has min {param.min} greater than max {param.max}", query=query
            )
    elif param.kind == ParameterKind.CHOICE:
        if not param.values:
            raise InvalidParameterError(f"Parameter '{name}' requires non-empty 'values'", query=query)
    elif param.kind == ParameterKind.SAMPLED_FIELD:
        if not param.collection or not param.field:
            raise InvalidParameterError(
                f"Sampled parameter '{name}' requires 'collection' and 'field'", query=query
            )


def check_query_spec(spec: QuerySpec, max_join_depth: int = 16) -> None:
    """
    Validate a QuerySpec before it runs.

    Raises:
        ConfigurationError: (or a subclass) describing the first problem found
    """
    for name in sorted(spec.referenced_parameters()):
        if name not in spec.parameters:
            raise UnknownParameterError(name, query=spec.name)

    for name, param in spec.parameters.items():
        check_parameter(name, param, spec.name)

    # One member declaring the collection is enough for the whole group
    declared = spec.correlation_groups()
    for name, param in spec.parameters.items():
        if param.is_correlated and param.correlation_group not in declared:
            raise InvalidParameterError(
                f"Correlation group '{param.correlation_group}' of parameter '{name}' "
                "has no member declaring 'collection'",
                query=spec.name,
            )

    if spec.kind == QueryKind.AGGREGATE and not spec.pipeline:
        raise ConfigurationError(f"Aggregate query '{spec.name}' requires a pipeline", query=spec.name)

    if spec.kind == QueryKind.COUNT and spec.join:
        raise ConfigurationError(
            f"Count query '{spec.name}' cannot declare a join; use find or aggregate", query=spec.name
        )

    if spec.join and spec.join.depth > max_join_depth:
        raise JoinDepthExceededError(
            f"Join chain of depth {spec.join.depth} exceeds maximum of {max_join_depth}",
            query=spec.name,
        )

    logger.debug("Query spec validated", query=spec.name, parameters=len(spec.parameters))
