"""
Tugrik

Maps in-memory object graphs onto documents in a document store,
persisting and rebuilding arbitrarily nested structures while detecting
lost updates through content hashes.
"""

__version__ = "0.1.0"
__author__ = "Tugrik Team"

from tugrik.core.config import Settings, configure, setup_logging
from tugrik.core.errors import (
    CollectionMissing,
    ConcurrencyConflict,
    ConfigurationError,
    InvalidArgument,
    LedgerWriteError,
    MaxDepthExceeded,
    NotFound,
    StoreConnectionError,
    TugrikError,
    UnsupportedType,
)
from tugrik.core.introspect import TypeRegistry, same_identity
from tugrik.session import Session

__all__ = [
    "Session",
    "Settings",
    "configure",
    "setup_logging",
    "TypeRegistry",
    "same_identity",
    "CollectionMissing",
    "ConcurrencyConflict",
    "ConfigurationError",
    "InvalidArgument",
    "LedgerWriteError",
    "MaxDepthExceeded",
    "NotFound",
    "StoreConnectionError",
    "TugrikError",
    "UnsupportedType",
]
