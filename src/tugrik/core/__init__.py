"""
Core module - Configuration, errors, identifiers, types and introspection.
"""

from tugrik.core.config import Settings, configure, get_logger, settings, setup_logging
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
from tugrik.core.identifiers import new_oid, parse_oid
from tugrik.core.introspect import TypeRegistry, same_identity
from tugrik.core.types import LEDGER_COLLECTION, PointerRecord

__all__ = [
    "Settings",
    "configure",
    "get_logger",
    "settings",
    "setup_logging",
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
    "new_oid",
    "parse_oid",
    "TypeRegistry",
    "same_identity",
    "LEDGER_COLLECTION",
    "PointerRecord",
]
