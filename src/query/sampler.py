"""
Store-derived sample caches and the correlated document sampler.

SampleStore holds, for one benchmark run:
- sampled-field value pools keyed by (collection, field)
- correlated document pools keyed by collection

Pools are loaded lazily from the store on first use and survive phase
resets; only a full context reset clears them.
"""

from typing import TYPE_CHECKING, Any

import structlog

from src.query.errors import InvalidParameterError
from src.query.extraction import NO_VALUE, extract_all, sample_projection
from src.query.models import ParameterSpec

if TYPE_CHECKING:
    from src.query.context import ExecutionContext

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLE_SIZE = 1000


class SampleStore:
    """Bounded samples of store data, owned by one execution context."""

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE):
        self.sample_size = sample_size
        self._values: dict[tuple[str, str], list[Any]] = {}
        self._documents: dict[str, list[dict[str, Any]]] = {}

    async def load_values(self, store: Any, collection: str, field: str) -> list[Any]:
        """Load (once) every terminal value at ``field`` across a sample of ``collection``."""
        key = (collection, field)
        if key in self._values:
            return self._values[key]

        logger.info("Loading sample values", collection=collection, field=field)
        documents = await store.sample_documents(
            collection, self.sample_size, projection=sample_projection(field)
        )
        values: list[Any] = []
        for document in documents:
            values.extend(extract_all(document, field))

        self._values[key] = values
        logger.info("Loaded sample values", collection=collection, field=field, count=len(values))
        return values

    def values(self, collection: str, field: str) -> list[Any] | None:
        """Cached values for a field, or None when not loaded yet."""
        return self._values.get((collection, field))

    async def load_documents(self, store: Any, collection: str) -> list[dict[str, Any]]:
        """Load (once) a pool of full documents for correlated extraction."""
        if collection in self._documents:
            return self._documents[collection]

        logger.info("Loading documents for correlated parameters", collection=collection)
        documents = await store.sample_documents(collection, self.sample_size)
        self._documents[collection] = documents
        logger.info("Loaded correlation pool", collection=collection, count=len(documents))
        return documents

    def clear(self) -> None:
        self._values.clear()
        self._documents.clear()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "value_pools": {f"{c}:{f}": len(v) for (c, f), v in self._values.items()},
            "document_pools": {c: len(d) for c, d in self._documents.items()},
        }


class CorrelatedDocumentSampler:
    """
    Binds each correlation group to one randomly chosen sample document.

    Every parameter in a group reads from the same document instance for as
    long as the selection stands (one query execution).
    """

    async def select(self, context: "ExecutionContext", groups: set[str] | None = None) -> None:
        """
        Pick a document for each correlation group that has no selection yet.

        Args:
            context: Execution context holding pools and selections
            groups: Restrict selection to these groups (default: all groups of the query)
        """
        declared = context.query.correlation_groups()
        wanted = declared.keys() if groups is None else groups

        for group in wanted:
            if group in context.selections:
                continue

            collection = declared.get(group)
            if collection is None:
                raise InvalidParameterError(
                    f"Correlation group '{group}' has no parameter declaring a collection",
                    query=context.query.name,
                )

            pool = await context.samples.load_documents(context.store, collection)
            if not pool:
                logger.warning("No documents found for correlation group", group=group, collection=collection)
                context.selections[group] = None
                continue

            document = context.rng.choice(pool)
            context.selections[group] = document
            logger.debug("Selected correlated document", group=group, document_id=document.get("_id"))

    def value(self, name: str, param: ParameterSpec, context: "ExecutionContext") -> Any:
        """Extract a parameter's value from its group's selected document."""
        if not param.field:
            raise InvalidParameterError(
                f"Correlated parameter '{name}' requires 'field' to be specified",
                query=context.query.name,
            )

        document = context.selections.get(param.correlation_group)
        if document is None:
            return NO_VALUE

        values = extract_all(document, param.field)
        if not values:
            logger.warning(
                "No value for correlated field, clause left unconstrained",
                parameter=name,
                field=param.field,
                group=param.correlation_group,
            )
            return NO_VALUE

        if len(values) == 1:
            return values[0]
        return context.rng.choice(values)
