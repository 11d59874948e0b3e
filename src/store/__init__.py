"""
Document Store Access.

Async MongoDB client used by the benchmark core.
"""

from src.store.mongo_client import DocumentStoreClient, get_document_client

__all__ = [
    "DocumentStoreClient",
    "get_document_client",
]
