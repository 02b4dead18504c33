"""
Error types raised by Tugrik.

Every failure surfaced by a Session is one of these. Builtin bases are mixed in
where a caller would reasonably catch the builtin (ValueError, TypeError,
LookupError, ConnectionError).
"""


class TugrikError(Exception):
    """Base class for all Tugrik errors."""


class ConfigurationError(TugrikError):
    """A session was built without a database or DSN, or with an unknown backend."""


class StoreConnectionError(TugrikError, ConnectionError):
    """The document store is unreachable."""


class InvalidArgument(TugrikError, ValueError):
    """store/fetch/delete was called with an unsupported argument shape."""


class UnsupportedType(TugrikError, TypeError):
    """A value cannot be flattened, or a stored type name cannot be rebuilt."""


class ConcurrencyConflict(TugrikError):
    """The stored hash no longer matches the caller's last-known hash."""

    def __init__(self, oid: str, expected: str | None, actual: str | None):
        self.oid = oid
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Object {oid} was modified concurrently "
            f"(last known hash {expected!r}, stored hash {actual!r})"
        )


class CollectionMissing(TugrikError):
    """delete() targeted a collection that does not exist."""


class NotFound(TugrikError, LookupError):
    """No stored document exists for the given OID."""

    def __init__(self, oid: str, message: str | None = None):
        self.oid = oid
        super().__init__(message or f"No stored document for {oid}")


class MaxDepthExceeded(TugrikError, RecursionError):
    """The object graph is nested deeper than the configured maximum."""


class LedgerWriteError(TugrikError):
    """A pointer record could not be written after all retries."""
