"""
Document Store Client Module.

Async MongoDB client exposing only what the benchmark needs from the store:
filtered find, count, aggregation, bounded sampling, and explain.
No joins, transactions, or schema primitives are used.
"""

from collections.abc import Mapping
from typing import Any

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from src.config.settings import get_settings

logger = structlog.get_logger(__name__)


class DocumentStoreClient:
    """
    MongoDB client for benchmark query execution.

    The connection is opened lazily; every call awaits a single round trip
    (or one cursor drain) so callers can time it precisely.
    """

    def __init__(self, settings: Any = None) -> None:
        """Initialize the client with optional custom settings."""
        self._client: AsyncMongoClient | None = None
        self._db: AsyncDatabase | None = None
        self._settings = settings or get_settings().mongo

    async def connect(self) -> None:
        """Establish connection to the document store."""
        if self._client is not None:
            return

        self._client = AsyncMongoClient(
            self._settings.uri,
            maxPoolSize=self._settings.max_pool_size,
            serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
            appname=self._settings.app_name,
        )
        await self._client.admin.command("ping")
        self._db = self._client[self._settings.database]
        logger.info("Connected to document store", uri=self._settings.uri, database=self._settings.database)

    async def close(self) -> None:
        """Close the database connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None
            logger.info("Disconnected from document store")

    async def __aenter__(self) -> "DocumentStoreClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _database(self) -> AsyncDatabase:
        if self._db is None:
            await self.connect()

        assert self._db is not None  # Type guard for mypy
        return self._db

    # =========================================================================
    # Queries
    # =========================================================================

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Mapping[str, Any] | None = None,
        sort: Mapping[str, int] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a filtered find and drain the cursor.

        Args:
            collection: Collection name
            filter: Query filter
            projection: Optional projection
            sort: Optional sort specification ({field: 1|-1})
            limit: Optional result limit

        Returns:
            Matched documents
        """
        db = await self._database()
        cursor = db[collection].find(dict(filter), projection)
        if sort:
            cursor = cursor.sort(list(sort.items()))
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, collection: str, filter: Mapping[str, Any]) -> int:
        """Count documents matching a filter."""
        db = await self._database()
        return await db[collection].count_documents(dict(filter))

    async def aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline and drain the cursor."""
        db = await self._database()
        cursor = await db[collection].aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def sample_documents(
        self,
        collection: str,
        limit: int,
        projection: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Read up to ``limit`` documents (natural order) for parameter sampling."""
        db = await self._database()
        cursor = db[collection].find({}, projection).limit(limit)
        documents = await cursor.to_list(length=None)
        logger.debug("Sampled documents", collection=collection, count=len(documents))
        return documents

    # =========================================================================
    # Diagnostics
    # =========================================================================

    async def explain(
        self,
        collection: str,
        kind: str,
        filter: Mapping[str, Any] | None = None,
        pipeline: list[dict[str, Any]] | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """
        Request the query planner's view of a query.

        Args:
            collection: Collection name
            kind: "find", "count", or "aggregate"
            filter: Filter for find/count
            pipeline: Pipeline for aggregate
            limit: Optional limit for find

        Returns:
            Raw explain output
        """
        db = await self._database()

        if kind == "aggregate":
            command: dict[str, Any] = {
                "aggregate": collection,
                "pipeline": pipeline or [],
                "explain": True,
            }
        elif kind == "count":
            command = {
                "explain": {"count": collection, "query": dict(filter or {})},
                "verbosity": "queryPlanner",
            }
        else:
            inner: dict[str, Any] = {"find": collection, "filter": dict(filter or {})}
            if limit:
                inner["limit"] = limit
            command = {"explain": inner, "verbosity": "queryPlanner"}

        return await db.command(command)


# Singleton instance
_client: DocumentStoreClient | None = None


def get_document_client() -> DocumentStoreClient:
    """Get the singleton DocumentStoreClient instance."""
    global _client
    if _client is None:
        _client = DocumentStoreClient()
    return _client
