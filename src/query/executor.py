"""
Query Executor.

Runs one execution of a QuerySpec: substitute parameters, issue the primary
query, and (when a join is declared) resolve the join chain for every
primary document.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from src.query.context import ExecutionContext
from src.query.errors import UnknownQueryKindError
from src.query.joins import JoinChainExecutor
from src.query.models import QueryKind
from src.query.substitution import ParameterSubstitutor

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Counts produced by one query execution."""

    documents_returned: int
    documents_examined: int


class QueryExecutor:
    """Executes QuerySpecs against the store held by an execution context."""

    def __init__(
        self,
        substitutor: ParameterSubstitutor | None = None,
        joins: JoinChainExecutor | None = None,
    ):
        self.substitutor = substitutor or ParameterSubstitutor()
        self.joins = joins or JoinChainExecutor(self.substitutor)

    async def execute(self, context: ExecutionContext) -> QueryResult:
        """
        Run the query once.

        For joined queries ``documents_returned`` is the number of primary
        documents whose whole chain resolved and ``documents_examined`` the
        number of primary documents fetched.
        """
        query = context.query
        # Correlated documents are drawn once per execution
        context.clear_selections()

        if query.kind == QueryKind.FIND:
            query_filter = await self.substitutor.substitute(query.filter, context, reselect=False)
            documents = await context.store.find(
                query.collection,
                query_filter,
                projection=query.projection,
                sort=query.sort,
                limit=query.limit,
            )
            return await self._with_join(documents, context)

        if query.kind == QueryKind.AGGREGATE:
            pipeline = await self.substitutor.substitute(query.pipeline or [], context, reselect=False)
            documents = await context.store.aggregate(query.collection, pipeline)
            return await self._with_join(documents, context)

        if query.kind == QueryKind.COUNT:
            query_filter = await self.substitutor.substitute(query.filter, context, reselect=False)
            count = await context.store.count(query.collection, query_filter)
            return QueryResult(count, count)

        raise UnknownQueryKindError(f"Unknown query type: {query.kind}", query=query.name)

    async def _with_join(self, documents: list[dict[str, Any]], context: ExecutionContext) -> QueryResult:
        if context.query.join is None:
            return QueryResult(len(documents), len(documents))

        matched = await self.joins.count_matching(documents, context.query.join, context)
        logger.debug(
            "Join chain evaluated",
            primary=len(documents),
            matched=matched,
            depth=context.query.join.depth,
        )
        return QueryResult(matched, len(documents))

    async def explain(self, context: ExecutionContext) -> dict[str, Any]:
        """Ask the store for the primary query's plan using freshly substituted parameters."""
        query = context.query
        context.clear_selections()
        if query.kind == QueryKind.AGGREGATE:
            pipeline = await self.substitutor.substitute(query.pipeline or [], context, reselect=False)
            return await context.store.explain(query.collection, query.kind.value, pipeline=pipeline)

        query_filter = await self.substitutor.substitute(query.filter, context, reselect=False)
        return await context.store.explain(
            query.collection,
            query.kind.value,
            filter=query_filter,
            limit=query.limit,
        )
