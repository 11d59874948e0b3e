"""
Parameter Value Generators.

Produces one value per parameter spec:
- range: uniform integer in [min, max]
- choice: uniform pick from a candidate list
- sequence: per-parameter counter wrapping from max back to min
- fixed: a constant
- pattern: random string from a small template language
- sampled_field: uniform draw from values observed in the store
"""

import string
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import structlog

from src.query.errors import EmptySampleError, InvalidParameterError, InvalidPatternError
from src.query.models import ParameterKind, ParameterSpec

if TYPE_CHECKING:
    from src.query.context import ExecutionContext

logger = structlog.get_logger(__name__)

# Character classes understood by pattern parameters, longest first
CHARACTER_CLASSES: list[tuple[str, str]] = [
    ("[A-Za-z]", string.ascii_letters),
    ("[A-Z]", string.ascii_uppercase),
    ("[a-z]", string.ascii_lowercase),
    ("[0-9]", string.digits),
    ("\\d", string.digits),
]

PatternToken = tuple[str, int]


def compile_pattern(pattern: str) -> list[PatternToken]:
    """
    Compile a pattern into (alphabet, count) tokens.

    Supports ``\\d``, ``[0-9]``, ``[A-Z]``, ``[a-z]`` and ``[A-Za-z]``, each
    optionally followed by ``{n}``. Anything else is a literal character.

    Examples:
        \\d{4}            -> "1234"
        \\d{3}-\\d{2}-\\d{4} -> "123-45-6789"
        [A-Z]{2}\\d{6}     -> "AB123456"

    Raises:
        InvalidPatternError: On an empty pattern or a malformed repetition
    """
    if not pattern:
        raise InvalidPatternError("Pattern is required for pattern parameters")

    tokens: list[PatternToken] = []
    i = 0
    while i < len(pattern):
        for token, alphabet in CHARACTER_CLASSES:
            if pattern.startswith(token, i):
                i += len(token)
                count, i = _parse_repetition(pattern, i)
                tokens.append((alphabet, count))
                break
        else:
            tokens.append((pattern[i], 1))
            i += 1
    return tokens


def _parse_repetition(pattern: str, start: int) -> tuple[int, int]:
    """Parse an optional {n} at ``start``; returns (count, next index)."""
    if start >= len(pattern) or pattern[start] != "{":
        return 1, start

    end = pattern.find("}", start)
    if end < 0:
        # Unterminated brace is a literal
        return 1, start

    body = pattern[start + 1:end]
    if not body.isdigit():
        raise InvalidPatternError(f"Invalid repetition '{{{body}}}' in pattern '{pattern}'")
    return int(body), end + 1


class ValueGenerator:
    """
    Generates parameter values from a context's RNG and caches.

    Sampled-field pools must be loaded with ``prepare`` before ``generate``
    is called; generation itself never touches the store.
    """

    def __init__(self) -> None:
        self._patterns: dict[str, list[PatternToken]] = {}

    async def prepare(self, names: Iterable[str], context: "ExecutionContext") -> None:
        """Load sample pools for the sampled-field parameters among ``names``."""
        for name in names:
            param = context.query.parameters.get(name)
            if param is None or param.is_correlated or param.kind != ParameterKind.SAMPLED_FIELD:
                continue
            collection, field = self._sample_source(name, param, context)
            await context.samples.load_values(context.store, collection, field)

    def generate(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> Any:
        """
        Generate one value for a non-correlated parameter.

        Args:
            name: Parameter name (keys the sequence counter)
            param: Parameter definition
            context: Execution context supplying RNG and caches

        Returns:
            The generated value
        """
        if param.kind == ParameterKind.RANGE:
            low, high = self._bounds(name, param, context)
            return context.rng.randint(low, high)

        if param.kind == ParameterKind.CHOICE:
            if not param.values:
                raise InvalidParameterError(
                    f"Parameter '{name}' requires non-empty 'values'", query=context.query.name
                )
            return context.rng.choice(param.values)

        if param.kind == ParameterKind.SEQUENCE:
            return self._next_in_sequence(name, param, context)

        if param.kind == ParameterKind.FIXED:
            return param.value

        if param.kind == ParameterKind.PATTERN:
            tokens = self._compiled(param.pattern or "")
            return "".join(
                context.rng.choice(alphabet) for alphabet, count in tokens for _ in range(count)
            )

        if param.kind == ParameterKind.SAMPLED_FIELD:
            return self._sampled(name, param, context)

        raise InvalidParameterError(
            f"Unknown parameter type for '{name}': {param.kind}", query=context.query.name
        )

    def _compiled(self, pattern: str) -> list[PatternToken]:
        if pattern not in self._patterns:
            self._patterns[pattern] = compile_pattern(pattern)
        return self._patterns[pattern]

    def _bounds(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> tuple[int, int]:
        if param.min is None or param.max is None:
            raise InvalidParameterError(
                f"Parameter '{name}' requires 'min' and 'max'", query=context.query.name
            )
        if param.min > param.max:
            raise InvalidParameterError(
                f"Parameter '{name}' has min {param.min} greater than max {param.max}",
                query=context.query.name,
            )
        return param.min, param.max

    def _next_in_sequence(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> int:
        low, high = self._bounds(name, param, context)
        value = context.sequence_counters.get(name, low)
        if value > high:
            value = low
        context.sequence_counters[name] = value + 1
        return value

    def _sample_source(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> tuple[str, str]:
        if not param.collection or not param.field:
            raise InvalidParameterError(
                f"Sampled parameter '{name}' requires 'collection' and 'field'",
                query=context.query.name,
            )
        return param.collection, param.field

    def _sampled(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> Any:
        collection, field = self._sample_source(name, param, context)
        values = context.samples.values(collection, field)
        if values is None:
            raise RuntimeError(f"Sample pool for {collection}.{field} was not prepared")
        if not values:
            raise EmptySampleError(collection, field)
        return context.rng.choice(values)
