"""Tests for the pointer ledger writer."""

import sqlite3

import pytest

from tugrik.core.errors import LedgerWriteError
from tugrik.core.types import LEDGER_COLLECTION, PointerRecord
from tugrik.engine.ledger import PointerLedger


class FlakyStore:
    """Fails the first `failures` upserts, then delegates."""

    def __init__(self, inner, failures: int):
        self.inner = inner
        self.failures = failures
        self.attempts = 0

    def upsert(self, collection, query, document):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise sqlite3.OperationalError("database is locked")
        return self.inner.upsert(collection, query, document)

    def __getattr__(self, name):
        return getattr(self.inner, name)


class TestPointerLedger:
    """Tests for PointerLedger."""

    def test_record_upserts_triple(self, store):
        ledger = PointerLedger(store)
        record = ledger.record("Person::1", "Address::1", "address")
        ledger.record("Person::1", "Address::1", "address")

        assert record == PointerRecord(owner="Person::1", owned="Address::1", path="address")
        rows = store.find(LEDGER_COLLECTION, {})
        assert len(rows) == 1
        assert {k: rows[0][k] for k in ("owner", "owned", "path")} == record.model_dump()

    def test_distinct_paths_are_distinct_records(self, store):
        ledger = PointerLedger(store)
        ledger.record("Person::1", "Address::1", "home")
        ledger.record("Person::1", "Address::1", "work")

        assert {r.path for r in ledger.records_for("Person::1")} == {"home", "work"}

    def test_retries_transient_failures(self, store):
        flaky = FlakyStore(store, failures=2)
        ledger = PointerLedger(flaky, retries=3, backoff=0)

        ledger.record("Person::1", "Address::1", "address")

        assert flaky.attempts == 3
        assert store.count(LEDGER_COLLECTION) == 1

    def test_gives_up_after_retries(self, store):
        flaky = FlakyStore(store, failures=5)
        ledger = PointerLedger(flaky, retries=3, backoff=0)

        with pytest.raises(LedgerWriteError):
            ledger.record("Person::1", "Address::1", "address")
        assert flaky.attempts == 3
        assert store.count(LEDGER_COLLECTION) == 0
