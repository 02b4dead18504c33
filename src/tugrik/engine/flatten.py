"""
Graph Flattener - turns an object graph into stored documents.

For every composite reached from the root:
- a document is built from its fields (scalars and sequences inlined,
  composite references replaced by the referenced subdocument plus a
  `*field` marker holding the referenced OID)
- an OID is minted on first persist
- the content hash is computed and compared with the stored one
- the document is inserted, conditionally replaced, or left alone; pointer
  records are upserted only for documents that are written

Composites are flattened at most once per store call. A composite reached
again while its own fields are still being walked (a cycle) is embedded as a
stub `{"_oid": ...}`; its parent may therefore point at a document that is
written later in the same call.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

from tugrik.core.config import get_logger
from tugrik.core.errors import (
    ConcurrencyConflict,
    InvalidArgument,
    MaxDepthExceeded,
    NotFound,
)
from tugrik.core.identifiers import new_oid, parse_oid
from tugrik.core.introspect import TypeRegistry, hash_of, oid_of, set_identity
from tugrik.core.types import (
    CELL_DOC_FIELD,
    HASH_FIELD,
    OID_FIELD,
    POINTER_SIGIL,
    Composite,
    Scalar,
    Sequence,
    pointer_key,
)
from tugrik.engine.ledger import PointerLedger
from tugrik.storage.base import Document, DocumentStore

logger = get_logger("engine.flatten")


def content_hash(document: Document) -> str:
    """SHA-256 of the canonical JSON form of `document`, ignoring identity fields."""
    body = {k: v for k, v in document.items() if k not in (OID_FIELD, HASH_FIELD)}
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode()).hexdigest()


def join_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


@dataclass
class RecursionGuard:
    """
    State of one store call.

    - in_flight: OIDs whose fields are being walked
    - documents: finished embedded documents by OID
    - objects: every composite reached, by OID
    - minted: OIDs assigned during this call
    - written: OIDs whose document was inserted or replaced
    - pointers: reference sites found in each owner, recorded once it is written
    """

    in_flight: set[str] = field(default_factory=set)
    documents: dict[str, Document] = field(default_factory=dict)
    objects: dict[str, Any] = field(default_factory=dict)
    minted: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    pointers: dict[str, list[tuple[str, str]]] = field(default_factory=dict)

    def __contains__(self, oid: str) -> bool:
        return oid in self.in_flight or oid in self.documents


class Flattener:
    """Walks composites and performs the conditional writes."""

    def __init__(
        self,
        store: DocumentStore,
        types: TypeRegistry,
        ledger: PointerLedger,
        max_depth: int = 100,
    ):
        self.store = store
        self.types = types
        self.ledger = ledger
        self.max_depth = max_depth

    def flatten(
        self,
        value: Any,
        guard: RecursionGuard,
        path: str = "",
        owner: str | None = None,
        depth: int = 0,
    ) -> tuple[Any, Any]:
        """
        Flatten one value.

        Returns (document, result):
        - scalar: (None, value)
        - sequence: (list or dict document, None)
        - composite: (embedded document, OID)
        """
        classified = self.types.classify(value)

        if isinstance(classified, Scalar):
            return None, classified.value

        if depth > self.max_depth:
            raise MaxDepthExceeded(f"Object graph deeper than {self.max_depth} at {path or '<root>'}")

        if isinstance(classified, Sequence):
            return self._flatten_sequence(classified, guard, path, owner, depth), None

        return self._flatten_composite(classified, guard, path, depth)

    def _record(self, guard: RecursionGuard, owner: str | None, owned: str, path: str) -> None:
        if owner is None:
            raise InvalidArgument(f"Composite at {path!r} has no owning composite")
        guard.pointers.setdefault(owner, []).append((owned, path))

    def _flush_pointers(self, guard: RecursionGuard, owner: str, changed: bool) -> None:
        # an unchanged owner already has its records
        sites = guard.pointers.pop(owner, [])
        if changed:
            for owned, path in sites:
                self.ledger.record(owner, owned, path)

    def _place(
        self,
        container: Document,
        key: str,
        value: Any,
        guard: RecursionGuard,
        path: str,
        owner: str | None,
        depth: int,
    ) -> None:
        site = join_path(path, key)
        document, result = self.flatten(value, guard, site, owner, depth + 1)
        if document is None:
            container[key] = result
        elif result is None:
            container[key] = document
        else:
            # subdocument first, then the marker
            container[key] = document
            container[pointer_key(key)] = result
            self._record(guard, owner, result, site)

    def _flatten_sequence(
        self,
        seq: Sequence,
        guard: RecursionGuard,
        path: str,
        owner: str | None,
        depth: int,
    ) -> Document | list[Any]:
        if seq.is_mapping:
            doc: Document = {}
            for key, item in seq.items:
                self._place(doc, key, item, guard, path, owner, depth)
            return doc

        cells: list[Any] = []
        for index, item in seq.items:
            site = join_path(path, index)
            document, result = self.flatten(item, guard, site, owner, depth + 1)
            if document is None:
                cells.append(result)
            elif result is None:
                cells.append(document)
            else:
                cells.append({POINTER_SIGIL: result, CELL_DOC_FIELD: document})
                self._record(guard, owner, result, site)
        return cells

    def _flatten_composite(
        self,
        comp: Composite,
        guard: RecursionGuard,
        path: str,
        depth: int,
    ) -> tuple[Document, str]:
        obj = comp.obj
        collection = comp.type_name
        oid = oid_of(obj)

        if oid is not None and oid in guard:
            if oid in guard.documents:
                return dict(guard.documents[oid]), oid
            logger.debug(f"Cycle reached {oid} at {path or '<root>'}")
            return {OID_FIELD: oid}, oid

        stored_hash: str | None = None
        updating = oid is not None
        if updating:
            if parse_oid(oid)[0] != collection:
                raise InvalidArgument(f"OID {oid} does not belong to type {collection}")
            stored = self.store.find_one(collection, {OID_FIELD: oid}, [OID_FIELD, HASH_FIELD])
            if stored is None:
                raise NotFound(oid, f"{oid} carries an OID but has no stored document")
            stored_hash = stored.get(HASH_FIELD)
            if hash_of(obj) != stored_hash:
                # someone stored a change since this copy was fetched
                raise ConcurrencyConflict(oid, hash_of(obj), stored_hash)
        else:
            oid = new_oid(collection)
            set_identity(obj, oid=oid)
            guard.minted.append(oid)

        guard.in_flight.add(oid)
        guard.objects[oid] = obj

        doc: Document = {}
        for name, value in comp.values:
            self._place(doc, name, value, guard, path, oid, depth)

        digest = content_hash(doc)
        full = {**doc, OID_FIELD: oid, HASH_FIELD: digest}
        unchanged = updating and digest == stored_hash
        self._flush_pointers(guard, oid, changed=not unchanged)

        if unchanged:
            logger.debug(f"{oid} unchanged, skipping write")
        elif updating:
            matched = self.store.replace(collection, {OID_FIELD: oid, HASH_FIELD: stored_hash}, full)
            if not matched:
                current = self.store.find_one(collection, {OID_FIELD: oid}, [HASH_FIELD])
                raise ConcurrencyConflict(oid, stored_hash, current.get(HASH_FIELD) if current else None)
            guard.written.append(oid)
            logger.debug(f"Updated {oid}")
        else:
            self.store.insert(collection, full)
            guard.written.append(oid)
            logger.debug(f"Inserted {oid}")

        set_identity(obj, content_hash=digest)
        guard.in_flight.discard(oid)
        guard.documents[oid] = full
        return dict(full), oid
