"""
Storage Layer - document stores the engine reads from and writes to.

- MongoDB → primary backend (pymongo)
- SQLite → single-file backend for local use and tests

All engine I/O goes through the DocumentStore interface.
"""

from tugrik.storage.base import DocumentStore, open_store
from tugrik.storage.sqlite import SqliteDocumentStore

__all__ = [
    "DocumentStore",
    "SqliteDocumentStore",
    "open_store",
]
