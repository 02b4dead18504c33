"""
Core type definitions for Tugrik.

- Reserved document field names
- The tagged value variant produced by the introspector
- Field descriptors
- Pointer records
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict


# ============================================
# Reserved names
# ============================================

OID_FIELD = "_oid"
"""Identity field carried by every stored document and persisted composite."""

HASH_FIELD = "_hash"
"""Content digest field."""

POINTER_SIGIL = "*"
"""Prefix marking a field that holds the OID of a referenced composite."""

CELL_DOC_FIELD = "_doc"
"""Key of the embedded subdocument inside a list pointer cell."""

LEDGER_COLLECTION = "TugrikMetaPointer"
"""Collection holding pointer records."""

OID_SEPARATOR = "::"

IDENTITY_FIELDS = (OID_FIELD, HASH_FIELD)


def pointer_key(name: str) -> str:
    """Marker field name for a reference stored under `name`."""
    return f"{POINTER_SIGIL}{name}"


def is_pointer_key(name: str) -> bool:
    return isinstance(name, str) and name.startswith(POINTER_SIGIL) and len(name) > 1


def is_pointer_cell(value: Any) -> bool:
    """True for the {"*": oid, "_doc": {...}} form used for composites in lists."""
    return (
        isinstance(value, dict)
        and set(value) == {POINTER_SIGIL, CELL_DOC_FIELD}
        and isinstance(value[POINTER_SIGIL], str)
    )


# ============================================
# Field descriptors
# ============================================

@dataclass(frozen=True)
class FieldDescriptor:
    """Named field of a composite type with explicit get/set access."""

    name: str
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]


@dataclass(frozen=True)
class TypeShape:
    """A registered composite type: its class, collection name and fields."""

    name: str
    cls: type
    fields: tuple[FieldDescriptor, ...]

    def field(self, name: str) -> FieldDescriptor | None:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None


# ============================================
# Tagged value variant
# ============================================

@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class Sequence:
    """Array-like value; `items` are (key, value) pairs in order."""

    items: tuple[tuple[str, Any], ...]
    is_mapping: bool = False


@dataclass(frozen=True)
class Composite:
    """An object with named fields, stored as its own document."""

    shape: TypeShape
    obj: Any
    values: tuple[tuple[str, Any], ...] = field(default=())

    @property
    def type_name(self) -> str:
        return self.shape.name


Classified = Union[Scalar, Sequence, Composite]


# ============================================
# Pointer ledger
# ============================================

class PointerRecord(BaseModel):
    """Ownership edge recorded when a composite reference is flattened."""

    model_config = ConfigDict(frozen=True)

    owner: str
    """OID of the composite whose document holds the reference."""

    owned: str
    """OID of the referenced composite."""

    path: str
    """Dotted path from the stored root composite to the reference site."""
