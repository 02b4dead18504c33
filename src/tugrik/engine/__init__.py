"""
Engine - flattening, rebuilding, pointer ledger and session cache.
"""

from tugrik.engine.cache import SessionCache
from tugrik.engine.flatten import Flattener, RecursionGuard, content_hash
from tugrik.engine.ledger import PointerLedger
from tugrik.engine.rebuild import Rebuilder

__all__ = [
    "Flattener",
    "PointerLedger",
    "Rebuilder",
    "RecursionGuard",
    "SessionCache",
    "content_hash",
]
