"""Session cache: OID → materialized composite, one instance per OID."""

from typing import Any, Iterator


class SessionCache:
    """
    Per-session identity map.

    Entries live as long as the session; only delete() removes one.
    """

    def __init__(self) -> None:
        self._objects: dict[str, Any] = {}

    def get(self, oid: str) -> Any | None:
        return self._objects.get(oid)

    def put(self, oid: str, obj: Any) -> None:
        self._objects[oid] = obj

    def discard(self, oid: str) -> Any | None:
        """Drop the entry for `oid`, returning the cached object if any."""
        return self._objects.pop(oid, None)

    def __contains__(self, oid: str) -> bool:
        return oid in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[str]:
        return iter(self._objects)
