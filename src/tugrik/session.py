"""
Session - the client object callers store, fetch and delete through.

A session owns:
- the document store connection
- the type registry used to rebuild composites
- the session cache (one in-memory instance per OID)
- the flattener, rebuilder and pointer ledger wired to the above

Sessions are single-threaded: share one across threads only with external
locking. Several sessions (or processes) may share a store; lost updates
are prevented by the store's atomic conditional replace.

Object lifecycle:
    Transient ──store()──▶ Persisted-Clean ◀──store()── Persisted-Dirty
        ▲                         │  mutation ─────────────▲
        │                         └── store() with a stale hash ──▶ Conflicted
        └─────── delete() strips _oid/_hash from any state ──▶ Deleted
"""

from collections.abc import Mapping
from typing import Any, Iterable

from tugrik.core.config import Settings, get_logger, settings as default_settings
from tugrik.core.errors import (
    CollectionMissing,
    ConfigurationError,
    InvalidArgument,
    NotFound,
    UnsupportedType,
)
from tugrik.core.identifiers import collection_of
from tugrik.core.introspect import TypeRegistry, clear_identity, oid_of
from tugrik.core.types import OID_FIELD, Composite, FieldDescriptor, PointerRecord
from tugrik.engine.cache import SessionCache
from tugrik.engine.flatten import Flattener, RecursionGuard
from tugrik.engine.ledger import PointerLedger
from tugrik.engine.rebuild import Rebuilder
from tugrik.storage.base import Document, DocumentStore, open_store

logger = get_logger("session")


class Session:
    """Stores and rebuilds object graphs in a document store."""

    def __init__(
        self,
        config: Settings | None = None,
        store: DocumentStore | None = None,
        types: TypeRegistry | Iterable[type] | None = None,
    ):
        """
        Create a session.

        Args:
            config: Settings from `configure()`; defaults to the environment
            store: An already opened store (otherwise opened from `config`)
            types: A TypeRegistry, or classes to register

        Raises:
            ConfigurationError: no database or DSN configured
        """
        self.config = config or default_settings
        if not self.config.is_configured:
            raise ConfigurationError(
                "No database configured: call tugrik.configure(database, dsn) "
                "and pass the result to Session()"
            )

        if isinstance(types, TypeRegistry):
            self.types = types
        else:
            self.types = TypeRegistry(types or ())

        self.documents = store if store is not None else open_store(self.config)
        self.cache = SessionCache()
        self.ledger = PointerLedger(
            self.documents,
            retries=self.config.ledger_retries,
            backoff=self.config.ledger_backoff,
        )
        self.flattener = Flattener(self.documents, self.types, self.ledger, max_depth=self.config.max_depth)
        self.rebuilder = Rebuilder(self.types, self._resolve, max_depth=self.config.max_depth)

        logger.info(f"Session opened on database {self.config.database!r} ({self.config.backend})")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying store connection."""
        self.documents.close()

    def register(self, cls: type, fields: Iterable[str | FieldDescriptor] | None = None) -> type:
        """Register a composite type so its documents can be fetched. Usable as a decorator."""
        self.types.register(cls, fields)
        return cls

    # ==========================================
    # Core operations
    # ==========================================

    def store(self, obj: Any) -> str:
        """
        Persist `obj` and every composite reachable from it.

        Returns the OID of `obj`. Composites reached during the call are put
        in the session cache. If the call fails, OIDs minted for objects
        whose document was never written are removed again; documents
        already written by the call stay written.
        """
        try:
            classified = self.types.classify(obj)
        except UnsupportedType as e:
            raise InvalidArgument(f"store() only accepts typed composites: {e}") from e
        if not isinstance(classified, Composite):
            raise InvalidArgument(f"store() only accepts objects, got {type(obj).__name__}")

        guard = RecursionGuard()
        try:
            _, oid = self.flattener.flatten(obj, guard)
        except Exception:
            self._rollback(guard)
            raise

        for reached, instance in guard.objects.items():
            self.cache.put(reached, instance)

        logger.debug(f"Stored {oid} ({len(guard.written)} documents written)")
        return oid

    def fetch(self, arg: str | Mapping[str, Any]) -> Any:
        """
        Materialize the composite stored under an OID.

        Accepts the OID or a mapping with an `_oid` key. Returns the cached
        instance when the OID was already materialized in this session.
        """
        if isinstance(arg, Mapping) and OID_FIELD in arg:
            arg = arg[OID_FIELD]
        if not isinstance(arg, str):
            raise InvalidArgument(f"fetch() only accepts OID strings, got {type(arg).__name__}")
        collection_of(arg)

        inflight: dict[str, Any] = {}
        obj = self._resolve(arg, inflight, 0)
        for oid, instance in inflight.items():
            self.cache.put(oid, instance)
        return obj

    def delete(self, arg: Any) -> bool:
        """
        Remove a stored document by OID or by the stored object itself.

        The cache entry is dropped and `_oid`/`_hash` are stripped from the
        object (and from the cached instance). Pointer records are left in
        place.
        """
        obj = None
        if isinstance(arg, str):
            oid = arg
        elif oid_of(arg) is not None:
            obj = arg
            oid = oid_of(arg)
        elif hasattr(arg, "__dict__"):
            raise InvalidArgument("delete() only accepts objects with a valid _oid")
        else:
            raise InvalidArgument("delete() only accepts OID strings or stored objects")

        collection = collection_of(oid)
        if collection not in self.documents.list_collections():
            raise CollectionMissing(f"Collection {collection!r} does not exist")

        if not self.documents.remove(collection, {OID_FIELD: oid}):
            raise NotFound(oid)

        cached = self.cache.discard(oid)
        for instance in (obj, cached):
            if instance is not None:
                clear_identity(instance)

        logger.info(f"Deleted {oid}")
        return True

    # ==========================================
    # Pass-through queries
    # ==========================================

    def find(self, collection: str, query: Document | None = None, fields: Iterable[str] | None = (OID_FIELD,)) -> list[Document]:
        """Raw documents of `collection` matching `query` (OIDs only by default)."""
        return self.documents.find(collection, query or {}, fields)

    def find_one(self, collection: str, query: Document | None = None, fields: Iterable[str] | None = None) -> Document | None:
        return self.documents.find_one(collection, query or {}, fields)

    def count(self, collection: str, query: Document | None = None) -> int:
        return self.documents.count(collection, query or {})

    def pointers(self, owner: str) -> list[PointerRecord]:
        """Pointer records owned by `owner` (for inspection)."""
        return self.ledger.records_for(owner)

    # ==========================================
    # Internals
    # ==========================================

    def _resolve(self, oid: str, inflight: dict[str, Any], depth: int) -> Any:
        cached = self.cache.get(oid)
        if cached is not None:
            return cached
        if oid in inflight:
            return inflight[oid]

        document = self.documents.find_one(collection_of(oid), {OID_FIELD: oid})
        if document is None:
            raise NotFound(oid)
        return self.rebuilder.rebuild(document, inflight, depth)

    def _rollback(self, guard: RecursionGuard) -> None:
        written = set(guard.written)
        for oid in guard.minted:
            obj = guard.objects.get(oid)
            if oid not in written and obj is not None:
                clear_identity(obj)
                logger.debug(f"Released unwritten OID {oid}")
