"""
Pointer Ledger - ownership edges between stored composites.

Every time a composite reference is flattened into a pointer, one record
(owner, owned, path) is upserted into the ledger collection, keyed by the
full triple. The ledger is written here and only read for inspection.

Ledger writes are not transactional with the document writes they belong
to, so failed upserts are retried with exponential backoff and, once
retries are exhausted, reported as LedgerWriteError.
"""

import time

from tugrik.core.config import get_logger
from tugrik.core.errors import LedgerWriteError
from tugrik.core.types import LEDGER_COLLECTION, PointerRecord
from tugrik.storage.base import DocumentStore

logger = get_logger("engine.ledger")


class PointerLedger:
    """Writes pointer records to the ledger collection."""

    def __init__(self, store: DocumentStore, retries: int = 3, backoff: float = 0.05):
        self.store = store
        self.retries = max(1, retries)
        self.backoff = backoff

    def record(self, owner: str, owned: str, path: str) -> PointerRecord:
        """Upsert the record for one reference site."""
        record = PointerRecord(owner=owner, owned=owned, path=path)
        key = record.model_dump()

        for attempt in range(1, self.retries + 1):
            try:
                self.store.upsert(LEDGER_COLLECTION, key, key)
                logger.debug(f"Recorded pointer {owner} -> {owned} at {path}")
                return record
            except Exception as e:
                if attempt == self.retries:
                    raise LedgerWriteError(
                        f"Could not record pointer {owner} -> {owned} at {path!r} "
                        f"after {attempt} attempts: {e}"
                    ) from e
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(f"Ledger write failed (attempt {attempt}/{self.retries}), retrying in {delay:.2f}s: {e}")
                time.sleep(delay)

        raise LedgerWriteError(f"Could not record pointer {owner} -> {owned}")

    def records_for(self, owner: str) -> list[PointerRecord]:
        """All edges recorded for `owner`."""
        rows = self.store.find(LEDGER_COLLECTION, {"owner": owner})
        return [PointerRecord(**{k: row[k] for k in ("owner", "owned", "path")}) for row in rows]
