"""
Object identifiers.

An OID is `TypeName::token`. The type name doubles as the collection name, so
an OID alone is enough to locate its document.
"""

from uuid import uuid4

from tugrik.core.errors import InvalidArgument
from tugrik.core.types import OID_SEPARATOR


def new_oid(type_name: str) -> str:
    """Mint a new OID scoped by `type_name`."""
    if not type_name or OID_SEPARATOR in type_name:
        raise InvalidArgument(f"Invalid type name for an OID: {type_name!r}")
    return f"{type_name}{OID_SEPARATOR}{uuid4().hex}"


def parse_oid(oid: str) -> tuple[str, str]:
    """Split an OID into (type_name, token)."""
    if not isinstance(oid, str):
        raise InvalidArgument(f"OID must be a string, got {type(oid).__name__}")
    type_name, sep, token = oid.partition(OID_SEPARATOR)
    if not sep or not type_name or not token or OID_SEPARATOR in token:
        raise InvalidArgument(f"Malformed OID: {oid!r}")
    return type_name, token


def collection_of(oid: str) -> str:
    """Collection holding the document for `oid`."""
    return parse_oid(oid)[0]
