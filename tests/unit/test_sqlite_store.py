"""Tests for the SQLite document store."""

import pytest

from tugrik.core.errors import InvalidArgument
from tugrik.storage.sqlite import SqliteDocumentStore


@pytest.fixture
def sqlite_store(db_path) -> SqliteDocumentStore:
    return SqliteDocumentStore(db_path=db_path, database="test")


class TestSqliteDocumentStore:
    """Tests for SqliteDocumentStore."""

    def test_insert_and_find_one(self, sqlite_store):
        doc = {"name": "Ann", "address": {"city": "Oslo"}, "*address": "Address::1", "_oid": "Person::1"}
        sqlite_store.insert("Person", doc)

        found = sqlite_store.find_one("Person", {"_oid": "Person::1"})
        assert found == doc
        assert list(found) == list(doc)  # key order kept

    def test_find_one_missing(self, sqlite_store):
        assert sqlite_store.find_one("Person", {"_oid": "Person::nope"}) is None

    def test_projection(self, sqlite_store):
        sqlite_store.insert("Person", {"name": "Ann", "_oid": "Person::1", "_hash": "h"})

        assert sqlite_store.find_one("Person", {}, ["_hash"]) == {"_hash": "h"}
        assert sqlite_store.find("Person", {}, ["_oid"]) == [{"_oid": "Person::1"}]

    def test_find_and_count_with_filters(self, sqlite_store):
        sqlite_store.insert("Person", {"name": "Ann", "age": 30, "active": True})
        sqlite_store.insert("Person", {"name": "Bob", "age": 40, "active": False})
        sqlite_store.insert("Person", {"name": "Cid", "age": 30, "active": True, "nick": None})

        assert sqlite_store.count("Person") == 3
        assert sqlite_store.count("Person", {"age": 30}) == 2
        assert [d["name"] for d in sqlite_store.find("Person", {"active": False})] == ["Bob"]
        assert sqlite_store.count("Address") == 0

    def test_filter_on_marker_field(self, sqlite_store):
        sqlite_store.insert("Person", {"*address": "Address::1"})
        assert sqlite_store.count("Person", {"*address": "Address::1"}) == 1

    def test_non_scalar_filter_rejected(self, sqlite_store):
        with pytest.raises(InvalidArgument):
            sqlite_store.find("Person", {"tags": ["a"]})

    def test_conditional_replace(self, sqlite_store):
        sqlite_store.insert("Person", {"_oid": "Person::1", "_hash": "a", "name": "Ann"})

        assert sqlite_store.replace("Person", {"_oid": "Person::1", "_hash": "a"}, {"_oid": "Person::1", "_hash": "b", "name": "Anna"})
        # stale hash no longer matches
        assert not sqlite_store.replace("Person", {"_oid": "Person::1", "_hash": "a"}, {"_oid": "Person::1", "_hash": "c"})

        assert sqlite_store.find_one("Person", {"_oid": "Person::1"})["name"] == "Anna"

    def test_upsert(self, sqlite_store):
        key = {"owner": "A::1", "owned": "B::1", "path": "b"}
        sqlite_store.upsert("TugrikMetaPointer", key, key)
        sqlite_store.upsert("TugrikMetaPointer", key, key)

        assert sqlite_store.count("TugrikMetaPointer") == 1

    def test_remove_one(self, sqlite_store):
        sqlite_store.insert("Person", {"name": "Ann"})
        sqlite_store.insert("Person", {"name": "Ann"})

        assert sqlite_store.remove("Person", {"name": "Ann"}) == 1
        assert sqlite_store.count("Person") == 1
        assert sqlite_store.remove("Person", {"name": "Bob"}) == 0

    def test_list_collections(self, sqlite_store):
        assert sqlite_store.list_collections() == []

        sqlite_store.insert("Person", {"name": "Ann"})
        sqlite_store.insert("Address", {"city": "Oslo"})
        sqlite_store.remove("Address", {"city": "Oslo"})

        # emptied collections still exist
        assert sqlite_store.list_collections() == ["Address", "Person"]

    def test_databases_are_isolated(self, db_path):
        first = SqliteDocumentStore(db_path=db_path, database="one")
        second = SqliteDocumentStore(db_path=db_path, database="two")
        first.insert("Person", {"name": "Ann"})

        assert second.count("Person") == 0
        assert second.list_collections() == []
