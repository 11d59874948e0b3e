"""
Parameter Substitution Engine.

Walks a filter template (mappings, lists, scalars) and replaces
``${param:<name>}`` placeholders with generated values. A placeholder that
makes up a whole string is replaced by the raw value, keeping its type;
placeholders embedded in a longer string are interpolated as text.

A parameter resolving to NO_VALUE removes the clause that holds it. A
mapping or list emptied that way is removed from its parent in turn.
"""

from typing import Any

import structlog

from src.query.context import ExecutionContext
from src.query.errors import UnknownParameterError
from src.query.extraction import NO_VALUE
from src.query.generators import ValueGenerator
from src.query.models import PLACEHOLDER_PATTERN, find_placeholders
from src.query.sampler import CorrelatedDocumentSampler

logger = structlog.get_logger(__name__)


class ParameterSubstitutor:
    """
    Replaces placeholders in templates using a value generator and a
    correlated document sampler.

    Usage:
        substitutor = ParameterSubstitutor()
        filter = await substitutor.substitute(query.filter, context)
    """

    def __init__(
        self,
        generator: ValueGenerator | None = None,
        sampler: CorrelatedDocumentSampler | None = None,
    ):
        self.generator = generator or ValueGenerator()
        self.sampler = sampler or CorrelatedDocumentSampler()

    async def substitute(
        self,
        template: Any,
        context: ExecutionContext,
        reselect: bool = True,
    ) -> Any:
        """
        Substitute all placeholders in a template.

        Args:
            template: Filter, pipeline, or any nested structure
            context: Execution context for this query run
            reselect: Clear correlated selections first. Callers inside a running
                execution pass False so every template reads the same documents.

        Returns:
            A new structure with placeholders replaced (the template is not modified)
        """
        if template is None:
            return None

        names = find_placeholders(template)
        if not names:
            return template

        parameters = context.query.parameters
        for name in names:
            if name not in parameters:
                raise UnknownParameterError(name, query=context.query.name)

        if reselect:
            context.clear_selections()

        groups = {
            parameters[name].correlation_group for name in names if parameters[name].is_correlated
        }
        if groups:
            await self.sampler.select(context, groups)
        await self.generator.prepare(names, context)

        result = self._substitute_value(template, context)
        if result is NO_VALUE:
            # Every clause was dropped; an empty container matches everything
            return {} if isinstance(template, dict) else []
        return result

    def resolve(self, name: str, context: ExecutionContext) -> Any:
        """Produce the value for one parameter (pools and selections must be ready)."""
        param = context.query.parameters.get(name)
        if param is None:
            raise UnknownParameterError(name, query=context.query.name)

        if param.is_correlated:
            return self.sampler.value(name, param, context)
        return self.generator.generate(name, param, context)

    def _substitute_value(self, value: Any, context: ExecutionContext) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value, context)
        if isinstance(value, dict):
            return self._substitute_mapping(value, context)
        if isinstance(value, list):
            return self._substitute_list(value, context)
        return value

    def _substitute_string(self, value: str, context: ExecutionContext) -> Any:
        match = PLACEHOLDER_PATTERN.fullmatch(value)
        if match:
            return self.resolve(match.group(1), context)

        if "${param:" not in value:
            return value

        resolved = {name: self.resolve(name, context) for name in PLACEHOLDER_PATTERN.findall(value)}
        if any(v is NO_VALUE for v in resolved.values()):
            return NO_VALUE
        return PLACEHOLDER_PATTERN.sub(lambda m: str(resolved[m.group(1)]), value)

    def _substitute_mapping(self, mapping: dict[str, Any], context: ExecutionContext) -> Any:
        result: dict[str, Any] = {}
        dropped = False
        for key, item in mapping.items():
            substituted = self._substitute_value(item, context)
            if substituted is NO_VALUE:
                logger.debug("Dropping unconstrained clause", key=key)
                dropped = True
                continue
            result[key] = substituted

        if dropped and not result:
            return NO_VALUE
        return result

    def _substitute_list(self, items: list[Any], context: ExecutionContext) -> Any:
        result = []
        dropped = False
        for item in items:
            substituted = self._substitute_value(item, context)
            if substituted is NO_VALUE:
                dropped = True
                continue
            result.append(substituted)

        if dropped and not result:
            return NO_VALUE
        return result
