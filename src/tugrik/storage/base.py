"""
Document store interface.

The engine only ever talks to a store through these operations. Collections
are named after composite types (case-sensitive); filters are equality
filters on top-level document fields.

Implementations:
- MongoDocumentStore: MongoDB through pymongo
- SqliteDocumentStore: single-file SQLite database, JSON documents
"""

from typing import Any, Iterable, Protocol

from tugrik.core.config import Settings
from tugrik.core.errors import ConfigurationError


Document = dict[str, Any]


class DocumentStore(Protocol):
    def find_one(self, collection: str, query: Document, fields: Iterable[str] | None = None) -> Document | None: ...

    def find(self, collection: str, query: Document | None = None, fields: Iterable[str] | None = None) -> list[Document]: ...

    def count(self, collection: str, query: Document | None = None) -> int: ...

    def insert(self, collection: str, document: Document) -> None: ...

    def replace(self, collection: str, query: Document, document: Document) -> bool:
        """Replace the single document matching `query` atomically. False if none matched."""
        ...

    def upsert(self, collection: str, query: Document, document: Document) -> None: ...

    def remove(self, collection: str, query: Document) -> int:
        """Remove at most one matching document; returns the number removed."""
        ...

    def list_collections(self) -> list[str]: ...

    def close(self) -> None: ...


def project(document: Document, fields: Iterable[str] | None) -> Document:
    """Keep only `fields` of a document (all fields when None)."""
    if fields is None:
        return document
    wanted = list(fields)
    if not wanted:
        return document
    return {key: document[key] for key in wanted if key in document}


def open_store(config: Settings) -> DocumentStore:
    """Open the store named by the DSN scheme in `config`."""
    backend = config.backend
    if backend == "mongo":
        from tugrik.storage.mongo import MongoDocumentStore

        return MongoDocumentStore(
            dsn=config.dsn,
            database=config.database,
            timeout_ms=config.connect_timeout_ms,
        )
    if backend == "sqlite":
        from tugrik.storage.sqlite import SqliteDocumentStore

        return SqliteDocumentStore(db_path=config.sqlite_path, database=config.database)
    raise ConfigurationError(f"Unsupported DSN {config.dsn!r}")
