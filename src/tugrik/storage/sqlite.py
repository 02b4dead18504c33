"""
SQLite Document Store - JSON documents in a single database file.

Layout:
- documents: one row per stored document (database, collection, JSON body)
- collections: every collection ever written to, per database

Filters are translated to json_extract() comparisons, so the conditional
replace used for optimistic concurrency is a single UPDATE statement and
therefore atomic.
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable

from tugrik.core.config import get_logger
from tugrik.core.errors import InvalidArgument, StoreConnectionError
from tugrik.storage.base import Document, project

logger = get_logger("storage.sqlite")

FILTERABLE = (type(None), bool, int, float, str)
PLAIN_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class SqliteDocumentStore:
    """
    Document store backed by SQLite.

    Several logical databases can share one file; every row is tagged with
    the database name given at construction.
    """

    def __init__(self, db_path: Path, database: str = "tugrik"):
        """Initialize the store, creating the file and schema if needed."""
        self.db_path = Path(db_path)
        self.database = database
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    database TEXT NOT NULL,
                    collection TEXT NOT NULL,
                    body TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    database TEXT NOT NULL,
                    name TEXT NOT NULL,
                    PRIMARY KEY (database, name)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(database, collection)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_oid "
                "ON documents(database, collection, json_extract(body, '$._oid'))"
            )

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get an autocommit connection; each statement is its own transaction."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreConnectionError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _where(self, collection: str, query: Document | None) -> tuple[str, list[Any]]:
        """WHERE clause (without the keyword) selecting `query` in `collection`."""
        clauses = ["database = ?", "collection = ?"]
        params: list[Any] = [self.database, collection]
        for key, value in (query or {}).items():
            if '"' in key:
                raise InvalidArgument(f"Cannot filter on field {key!r}")
            if not isinstance(value, FILTERABLE):
                raise InvalidArgument(f"Only scalar equality filters are supported ({key!r})")
            if PLAIN_KEY.fullmatch(key):
                # literal path so the expression index on _oid applies
                target = f"json_extract(body, '$.{key}')"
            else:
                target = "json_extract(body, ?)"
                params.append(f'$."{key}"')
            if value is None:
                clauses.append(f"{target} IS NULL")
            else:
                clauses.append(f"{target} = ?")
                params.append(value)
        return " AND ".join(clauses), params

    def _touch_collection(self, conn: sqlite3.Connection, collection: str) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO collections (database, name) VALUES (?, ?)",
            (self.database, collection),
        )

    @staticmethod
    def _dump(document: Document) -> str:
        return json.dumps(document, separators=(",", ":"))

    def find_one(self, collection: str, query: Document, fields: Iterable[str] | None = None) -> Document | None:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT body FROM documents WHERE {where} ORDER BY id LIMIT 1", params
            ).fetchone()
        if row is None:
            return None
        return project(json.loads(row["body"]), fields)

    def find(self, collection: str, query: Document | None = None, fields: Iterable[str] | None = None) -> list[Document]:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT body FROM documents WHERE {where} ORDER BY id", params
            ).fetchall()
        return [project(json.loads(row["body"]), fields) for row in rows]

    def count(self, collection: str, query: Document | None = None) -> int:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS n FROM documents WHERE {where}", params).fetchone()
        return int(row["n"])

    def insert(self, collection: str, document: Document) -> None:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                self._touch_collection(conn, collection)
                conn.execute(
                    "INSERT INTO documents (database, collection, body) VALUES (?, ?, ?)",
                    (self.database, collection, self._dump(document)),
                )
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        logger.debug(f"Inserted document into {collection}")

    def replace(self, collection: str, query: Document, document: Document) -> bool:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""
                UPDATE documents SET body = ?
                WHERE id = (SELECT id FROM documents WHERE {where} ORDER BY id LIMIT 1)
                """,
                [self._dump(document), *params],
            )
        matched = cursor.rowcount > 0
        logger.debug(f"Replace in {collection} matched={matched}")
        return matched

    def upsert(self, collection: str, query: Document, document: Document) -> None:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                self._touch_collection(conn, collection)
                existing = conn.execute(
                    f"SELECT id FROM documents WHERE {where} ORDER BY id LIMIT 1", params
                ).fetchone()
                if existing:
                    conn.execute(
                        "UPDATE documents SET body = ? WHERE id = ?",
                        (self._dump(document), existing["id"]),
                    )
                else:
                    conn.execute(
                        "INSERT INTO documents (database, collection, body) VALUES (?, ?, ?)",
                        (self.database, collection, self._dump(document)),
                    )
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise

    def remove(self, collection: str, query: Document) -> int:
        where, params = self._where(collection, query)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM documents WHERE id = (SELECT id FROM documents WHERE {where} ORDER BY id LIMIT 1)",
                params,
            )
        removed = cursor.rowcount
        if removed:
            logger.debug(f"Removed document from {collection}")
        return removed

    def list_collections(self) -> list[str]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT name FROM collections WHERE database = ? ORDER BY name", (self.database,)
            ).fetchall()
        return [row["name"] for row in rows]

    def close(self) -> None:
        """Connections are opened per call; nothing to release."""
