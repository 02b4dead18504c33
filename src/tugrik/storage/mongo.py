"""
MongoDB Document Store - the primary backend.

Collections are named after composite types. Mongo's own `_id` is never
surfaced: every read projects it away, documents are addressed by `_oid`.
"""

from typing import Iterable

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from tugrik.core.config import get_logger
from tugrik.core.errors import StoreConnectionError
from tugrik.core.types import LEDGER_COLLECTION
from tugrik.storage.base import Document

logger = get_logger("storage.mongo")


def _projection(fields: Iterable[str] | None) -> dict[str, int]:
    projection = {"_id": 0}
    for name in fields or ():
        projection[name] = 1
    return projection


class MongoDocumentStore:
    """MongoDB-backed document store."""

    def __init__(self, dsn: str, database: str, timeout_ms: int = 5000):
        """Initialize the store. The connection is opened lazily."""
        self.dsn = dsn
        self.database = database
        self.timeout_ms = timeout_ms
        self._client: MongoClient | None = None

    @property
    def client(self) -> MongoClient:
        """Lazy initialization of the Mongo client."""
        if self._client is None:
            self._client = MongoClient(self.dsn, serverSelectionTimeoutMS=self.timeout_ms)
            try:
                self._client.admin.command("ping")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                self._client.close()
                self._client = None
                raise StoreConnectionError(f"MongoDB unreachable at {self.dsn}: {e}") from e
            logger.info(f"Connected to MongoDB database {self.database!r}")
        return self._client

    @property
    def db(self) -> Database:
        return self.client[self.database]

    def close(self) -> None:
        """Close the client connection."""
        if self._client:
            self._client.close()
            self._client = None

    def ensure_indexes(self, collections: Iterable[str] = ()) -> None:
        """
        Ensure lookup indexes exist.

        - unique `_oid` on each named collection
        - unique (owner, owned, path) on the pointer ledger
        """
        for name in collections:
            self.db[name].create_index([("_oid", ASCENDING)], unique=True, name="oid_unique")
            logger.info(f"Ensured _oid index on {name}")

        self.db[LEDGER_COLLECTION].create_index(
            [("owner", ASCENDING), ("owned", ASCENDING), ("path", ASCENDING)],
            unique=True,
            name="pointer_unique",
        )
        logger.info(f"Ensured pointer index on {LEDGER_COLLECTION}")

    def find_one(self, collection: str, query: Document, fields: Iterable[str] | None = None) -> Document | None:
        return self.db[collection].find_one(query, _projection(fields))

    def find(self, collection: str, query: Document | None = None, fields: Iterable[str] | None = None) -> list[Document]:
        return list(self.db[collection].find(query or {}, _projection(fields)))

    def count(self, collection: str, query: Document | None = None) -> int:
        return self.db[collection].count_documents(query or {})

    def insert(self, collection: str, document: Document) -> None:
        # insert_one adds _id to the dict it is given
        self.db[collection].insert_one(dict(document))
        logger.debug(f"Inserted document into {collection}")

    def replace(self, collection: str, query: Document, document: Document) -> bool:
        result = self.db[collection].replace_one(query, dict(document), upsert=False)
        logger.debug(f"Replace in {collection} matched={result.matched_count}")
        return result.matched_count > 0

    def upsert(self, collection: str, query: Document, document: Document) -> None:
        self.db[collection].replace_one(query, dict(document), upsert=True)

    def remove(self, collection: str, query: Document) -> int:
        try:
            result = self.db[collection].delete_one(query)
        except PyMongoError as e:
            logger.error(f"Failed to remove from {collection}: {e}")
            raise
        return result.deleted_count

    def list_collections(self) -> list[str]:
        return sorted(self.db.list_collection_names())
