"""
Pytest configuration and fixtures for Tugrik tests.
"""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

# Keep the developer's environment out of the default settings
for _key in list(os.environ):
    if _key.startswith("TUGRIK_"):
        del os.environ[_key]

from tugrik.core.config import Settings, configure
from tugrik.session import Session
from tugrik.storage.sqlite import SqliteDocumentStore
from tugrik.core.types import LEDGER_COLLECTION


class RecordingStore:
    """Wraps a store and records every write call as (operation, collection)."""

    WRITES = ("insert", "replace", "upsert", "remove")

    def __init__(self, inner):
        self.inner = inner
        self.calls: list[tuple[str, str]] = []

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name not in self.WRITES:
            return attr

        def wrapper(collection, *args, **kwargs):
            self.calls.append((name, collection))
            return attr(collection, *args, **kwargs)

        return wrapper

    def document_writes(self) -> list[tuple[str, str]]:
        """Writes outside the pointer ledger."""
        return [call for call in self.calls if call[1] != LEDGER_COLLECTION]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Database file for the SQLite store."""
    return tmp_path / "tugrik.sqlite"


@pytest.fixture
def sqlite_config(db_path: Path) -> Settings:
    """Settings pointing at a temporary SQLite database."""
    return configure("tugrik_test", dsn=f"sqlite:///{db_path}", ledger_backoff=0)


@pytest.fixture
def store(sqlite_config: Settings) -> RecordingStore:
    """Recording wrapper around a fresh SQLite store."""
    return RecordingStore(
        SqliteDocumentStore(db_path=sqlite_config.sqlite_path, database=sqlite_config.database)
    )


@pytest.fixture
def session(sqlite_config: Settings, store: RecordingStore) -> Generator[Session, None, None]:
    """Session over the recording store."""
    with Session(sqlite_config, store=store) as s:
        yield s


@pytest.fixture
def other_session(sqlite_config: Settings) -> Generator[Session, None, None]:
    """A second, independent session on the same database (another writer)."""
    with Session(sqlite_config) as s:
        yield s
