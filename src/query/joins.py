"""
Client-side join chain evaluation.

The store has no server-side joins, so a join chain is resolved by issuing
one lookup per level. The answer is existential: a primary document counts
when at least one path through the whole chain exists.
"""

from typing import Any

import structlog

from src.query.context import ExecutionContext
from src.query.errors import JoinDepthExceededError
from src.query.extraction import extract_all
from src.query.models import JoinSpec
from src.query.substitution import ParameterSubstitutor

logger = structlog.get_logger(__name__)


class JoinChainExecutor:
    """
    Resolves (possibly nested) join specifications against the store.

    Each level is tried against every document matched by the previous
    level until one succeeds; the cost follows the branching factor along
    the paths actually explored.
    """

    def __init__(self, substitutor: ParameterSubstitutor | None = None):
        self.substitutor = substitutor or ParameterSubstitutor()

    async def resolves(
        self,
        source: dict[str, Any],
        join: JoinSpec | None,
        context: ExecutionContext,
        depth: int = 0,
    ) -> bool:
        """
        Check whether the join chain resolves for a source document.

        Args:
            source: Document the chain starts from
            join: Join level to evaluate (None ends the chain)
            context: Execution context for parameter substitution
            depth: Current nesting level

        Returns:
            True if at least one complete path through the chain exists
        """
        if join is None:
            return True

        if depth >= context.max_join_depth:
            raise JoinDepthExceededError(
                f"Join chain exceeds maximum depth of {context.max_join_depth}",
                query=context.query.name,
            )

        local_values = self.local_values(source, join)
        if not local_values:
            logger.debug("Local field not found in document", local_field=join.local_field)
            return False

        key_match = local_values[0] if len(local_values) == 1 else {"$in": local_values}
        matches = await context.store.find(join.collection, await self.build_filter(join, key_match, context))
        if not matches:
            return False

        if join.join is None:
            return True

        for match in matches:
            if await self.resolves(match, join.join, context, depth + 1):
                return True
        return False

    @staticmethod
    def local_values(source: dict[str, Any], join: JoinSpec) -> list[Any]:
        """Distinct values reachable at the local path; arrays fan out to every element."""
        values: list[Any] = []
        for value in extract_all(source, join.local_field):
            if value not in values:
                values.append(value)
        return values

    async def build_filter(self, join: JoinSpec, key_match: Any, context: ExecutionContext) -> dict[str, Any]:
        """Combine the foreign-key match with the level's own substituted filter."""
        join_filter: dict[str, Any] = {join.foreign_field: key_match}
        if join.filter:
            extra = await self.substitutor.substitute(join.filter, context, reselect=False)
            join_filter.update(extra)
        return join_filter

    async def count_matching(
        self,
        documents: list[dict[str, Any]],
        join: JoinSpec | None,
        context: ExecutionContext,
    ) -> int:
        """Number of documents whose entire chain resolves."""
        matched = 0
        for document in documents:
            if await self.resolves(document, join, context):
                matched += 1
        return matched
