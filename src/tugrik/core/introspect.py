"""
Value Introspector - classifies values and exposes composite fields.

Every value handed to the engine is one of:
- Scalar: None, bool, int, float, str
- Sequence: list/tuple (keys are indices) or dict with str keys
- Composite: a registered object type with named fields

Composite types are described by an explicit list of field descriptors kept
in a TypeRegistry. Descriptors are derived from dataclass fields, pydantic
model fields and private attributes, a `__tugrik_fields__` class attribute,
or, for plain classes, the attributes declared on the class together with
those of a zero-argument instance. Leading underscores do not hide a field.
Every composite type must be constructible without arguments.
"""

import dataclasses
import inspect
from types import ModuleType, SimpleNamespace
from enum import Enum
from typing import Any, ClassVar, Iterable, get_origin

from pydantic import BaseModel

from tugrik.core.config import get_logger
from tugrik.core.errors import InvalidArgument, UnsupportedType
from tugrik.core.types import (
    HASH_FIELD,
    IDENTITY_FIELDS,
    OID_FIELD,
    OID_SEPARATOR,
    POINTER_SIGIL,
    Classified,
    Composite,
    FieldDescriptor,
    Scalar,
    Sequence,
    TypeShape,
)

logger = get_logger("core.introspect")

SCALAR_TYPES = (type(None), bool, int, float, str)


# ============================================
# Identity helpers
# ============================================

def oid_of(obj: Any) -> str | None:
    """The OID assigned to `obj`, or None while it is transient."""
    return vars(obj).get(OID_FIELD) if hasattr(obj, "__dict__") else None


def hash_of(obj: Any) -> str | None:
    """The last-known content hash of `obj`."""
    return vars(obj).get(HASH_FIELD) if hasattr(obj, "__dict__") else None


def set_identity(obj: Any, oid: str | None = None, content_hash: str | None = None) -> None:
    """Write identity fields, bypassing frozen models and validation."""
    if oid is not None:
        object.__setattr__(obj, OID_FIELD, oid)
    if content_hash is not None:
        object.__setattr__(obj, HASH_FIELD, content_hash)


def clear_identity(obj: Any) -> None:
    """Strip `_oid` and `_hash` from a composite."""
    for name in IDENTITY_FIELDS:
        if name in vars(obj):
            object.__delattr__(obj, name)


def same_identity(a: Any, b: Any) -> bool:
    """Identity equality: same object, or both persisted under the same OID."""
    if a is b:
        return True
    oid = oid_of(a)
    return oid is not None and oid == oid_of(b)


# ============================================
# Field descriptors
# ============================================

def _getter(name: str):
    def get(obj: Any) -> Any:
        return getattr(obj, name, None)
    return get


def _setter(name: str):
    def set_(obj: Any, value: Any) -> None:
        object.__setattr__(obj, name, value)
    return set_


def _private_setter(name: str):
    def set_(obj: Any, value: Any) -> None:
        private = getattr(obj, "__pydantic_private__", None)
        if private is None:
            private = {}
            object.__setattr__(obj, "__pydantic_private__", private)
        private[name] = value
    return set_


def describe(name: str) -> FieldDescriptor:
    """Attribute-backed descriptor for `name`."""
    return FieldDescriptor(name=name, getter=_getter(name), setter=_setter(name))


def describe_private(name: str) -> FieldDescriptor:
    """Descriptor for a pydantic private attribute (kept in `__pydantic_private__`)."""
    return FieldDescriptor(name=name, getter=_getter(name), setter=_private_setter(name))


def _is_anonymous(value: Any) -> bool:
    return type(value) is object or isinstance(value, SimpleNamespace)


def _is_opaque(value: Any) -> bool:
    return (
        isinstance(value, (type, ModuleType, Enum))
        or inspect.isroutine(value)
        or not hasattr(value, "__dict__")
    )


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


def _class_field_names(cls: type) -> list[str]:
    """Annotated and plain data attributes declared on the class and its bases."""
    names: list[str] = []
    class_vars: set[str] = set()
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, annotation in inspect.get_annotations(klass).items():
            if _is_class_var(annotation):
                class_vars.add(name)
            elif name not in names:
                names.append(name)
        for name, value in vars(klass).items():
            if name in class_vars or (name.startswith("__") and name.endswith("__")):
                continue
            if callable(value) or inspect.isdatadescriptor(value) or isinstance(value, (classmethod, staticmethod)):
                continue
            if name not in names:
                names.append(name)
    return names


def _require_plain_constructor(cls: type) -> None:
    """Composites are rebuilt through `cls()`, so no constructor argument may be required."""
    if issubclass(cls, BaseModel):
        return
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return
    required = [
        p.name
        for p in signature.parameters.values()
        if p.default is p.empty and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]
    if required:
        raise UnsupportedType(
            f"Cannot use {cls.__name__} as a composite: constructor requires {', '.join(required)}"
        )


def _derive_fields(cls: type) -> list[str | FieldDescriptor]:
    explicit = getattr(cls, "__tugrik_fields__", None)
    if explicit is not None:
        return list(explicit)
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    if issubclass(cls, BaseModel):
        return [*cls.model_fields, *(describe_private(name) for name in cls.__private_attributes__)]
    try:
        sample = cls()
    except TypeError as e:
        raise UnsupportedType(
            f"Cannot derive fields of {cls.__name__}: constructor requires arguments ({e})"
        ) from e
    names = _class_field_names(cls)
    names.extend(name for name in vars(sample) if name not in names)
    return names


class TypeRegistry:
    """
    Registry of composite shapes, keyed by type name.

    The type name is the class `__name__` and doubles as the collection name,
    so two different classes with the same name cannot share a registry.
    """

    def __init__(self, classes: Iterable[type] = ()):
        self._shapes: dict[str, TypeShape] = {}
        for cls in classes:
            self.register(cls)

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._shapes

    def __len__(self) -> int:
        return len(self._shapes)

    def register(self, cls: type, fields: Iterable[str | FieldDescriptor] | None = None) -> TypeShape:
        """Register a composite type and return its shape."""
        if not isinstance(cls, type) or cls is object or issubclass(cls, SimpleNamespace):
            raise InvalidArgument(f"Cannot register {cls!r} as a composite type")

        name = cls.__name__
        if OID_SEPARATOR in name:
            raise InvalidArgument(f"Type name {name!r} contains {OID_SEPARATOR!r}")

        existing = self._shapes.get(name)
        if existing is not None:
            if existing.cls is not cls:
                raise InvalidArgument(
                    f"Type name {name!r} already registered for {existing.cls.__module__}.{name}"
                )
            if fields is None:
                return existing

        _require_plain_constructor(cls)
        entries = list(fields) if fields is not None else _derive_fields(cls)
        descriptors = []
        for entry in entries:
            descriptor = entry if isinstance(entry, FieldDescriptor) else describe(entry)
            if descriptor.name in IDENTITY_FIELDS:
                continue
            if descriptor.name.startswith(POINTER_SIGIL):
                raise InvalidArgument(f"Field name {descriptor.name!r} uses the pointer sigil")
            descriptors.append(descriptor)

        shape = TypeShape(name=name, cls=cls, fields=tuple(descriptors))
        self._shapes[name] = shape
        logger.debug(f"Registered {name} with fields {[d.name for d in descriptors]}")
        return shape

    def resolve(self, type_name: str) -> TypeShape:
        """Shape registered under `type_name`."""
        shape = self._shapes.get(type_name)
        if shape is None:
            raise UnsupportedType(f"Unknown composite type {type_name!r}")
        return shape

    def shape_for(self, obj: Any) -> TypeShape:
        """Shape of `obj`'s class, registering it on first sight."""
        if _is_anonymous(obj) or _is_opaque(obj):
            raise UnsupportedType(f"Cannot store values of type {type(obj).__name__}")
        return self.register(type(obj))

    def instantiate(self, type_name: str) -> Any:
        """Zero-initialized instance of a registered type."""
        shape = self.resolve(type_name)
        if issubclass(shape.cls, BaseModel):
            return shape.cls.model_construct()
        try:
            return shape.cls()
        except TypeError as e:
            raise UnsupportedType(
                f"Cannot instantiate {type_name} without arguments ({e})"
            ) from e

    def classify(self, value: Any) -> Classified:
        """Classify `value` as Scalar, Sequence or Composite."""
        if isinstance(value, SCALAR_TYPES) and not isinstance(value, Enum):
            return Scalar(value)

        if isinstance(value, (list, tuple)):
            return Sequence(items=tuple((str(i), v) for i, v in enumerate(value)))

        if isinstance(value, dict):
            items = []
            for key, item in value.items():
                if not isinstance(key, str):
                    raise UnsupportedType(f"Mapping keys must be strings, got {key!r}")
                if key.startswith(POINTER_SIGIL) or key in IDENTITY_FIELDS:
                    raise UnsupportedType(f"Mapping key {key!r} is reserved")
                items.append((key, item))
            return Sequence(items=tuple(items), is_mapping=True)

        shape = self.shape_for(value)
        if not shape.fields and any(name not in IDENTITY_FIELDS for name in vars(value)):
            raise UnsupportedType(
                f"{shape.name} carries attributes but declares no fields; "
                f"declare them on the class or list them in __tugrik_fields__"
            )
        values = tuple((d.name, d.getter(value)) for d in shape.fields)
        return Composite(shape=shape, obj=value, values=values)
