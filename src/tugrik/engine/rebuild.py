"""
Rebuilder - materializes composites from stored documents.

The type is taken from the `_oid` prefix and must be registered. Pointer
markers (`*field` keys in documents and mappings, `{"*": oid, "_doc": ...}`
cells in lists) are resolved through a callback, which the Session wires to
its cache and the store. The subdocument embedded next to a marker is only a
snapshot and is never used to build the referenced object.
"""

from typing import Any, Callable

from tugrik.core.config import get_logger
from tugrik.core.errors import InvalidArgument, MaxDepthExceeded
from tugrik.core.identifiers import parse_oid
from tugrik.core.introspect import TypeRegistry, set_identity
from tugrik.core.types import (
    HASH_FIELD,
    IDENTITY_FIELDS,
    OID_FIELD,
    POINTER_SIGIL,
    is_pointer_cell,
    is_pointer_key,
)
from tugrik.storage.base import Document

logger = get_logger("engine.rebuild")

# resolve(oid, inflight, depth) -> composite
Resolver = Callable[[str, dict[str, Any], int], Any]


class Rebuilder:
    """Builds composites from documents; does not touch the session cache."""

    def __init__(self, types: TypeRegistry, resolve: Resolver, max_depth: int = 100):
        self.types = types
        self.resolve = resolve
        self.max_depth = max_depth

    def rebuild(self, document: Document, inflight: dict[str, Any] | None = None, depth: int = 0) -> Any:
        """
        Materialize the composite stored in `document`.

        `inflight` maps OIDs to composites materialized during the current
        fetch; the new object is added before its fields are resolved so
        that cyclic references resolve to it.
        """
        if inflight is None:
            inflight = {}
        if depth > self.max_depth:
            raise MaxDepthExceeded(f"Stored graph deeper than {self.max_depth}")

        oid = document.get(OID_FIELD)
        if not oid:
            raise InvalidArgument("Cannot rebuild a document without _oid")
        type_name, _ = parse_oid(oid)
        shape = self.types.resolve(type_name)
        obj = self.types.instantiate(type_name)

        set_identity(obj, oid=oid, content_hash=document.get(HASH_FIELD))
        inflight[oid] = obj

        referenced = {key[1:] for key in document if is_pointer_key(key)}

        for name, value in document.items():
            if name in IDENTITY_FIELDS:
                continue
            if is_pointer_key(name):
                name = name[1:]
                value = self.resolve(value, inflight, depth + 1)
            elif name in referenced:
                continue
            else:
                value = self._restore(value, inflight, depth + 1)

            descriptor = shape.field(name)
            if descriptor is None:
                logger.debug(f"Skipping field {name!r} unknown to {type_name}")
                continue
            descriptor.setter(obj, value)

        return obj

    def _restore(self, value: Any, inflight: dict[str, Any], depth: int) -> Any:
        """Rebuild an inlined value, resolving pointers nested in sequences."""
        if isinstance(value, (list, dict)) and depth > self.max_depth:
            raise MaxDepthExceeded(f"Stored graph deeper than {self.max_depth}")

        if is_pointer_cell(value):
            return self.resolve(value[POINTER_SIGIL], inflight, depth)

        if isinstance(value, list):
            return [self._restore(item, inflight, depth + 1) for item in value]

        if isinstance(value, dict):
            referenced = {key[1:] for key in value if is_pointer_key(key)}
            restored = {}
            for key, item in value.items():
                if is_pointer_key(key):
                    restored[key[1:]] = self.resolve(item, inflight, depth + 1)
                elif key not in referenced:
                    restored[key] = self._restore(item, inflight, depth + 1)
            return restored

        return value
