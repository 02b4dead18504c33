"""Tests for the value introspector."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import SimpleNamespace
from typing import ClassVar

import pytest
from pydantic import BaseModel, Field, PrivateAttr

from tugrik.core.errors import InvalidArgument, UnsupportedType
from tugrik.core.introspect import (
    TypeRegistry,
    clear_identity,
    hash_of,
    oid_of,
    same_identity,
    set_identity,
)
from tugrik.core.types import Composite, Scalar, Sequence


@dataclass
class Address:
    city: str = ""
    _zip: str = ""


class Account:
    """Plain class with a private-looking attribute."""

    def __init__(self):
        self.owner = ""
        self._balance = 0


class Explicit:
    __tugrik_fields__ = ("a",)

    def __init__(self):
        self.a = 1
        self.b = 2


class NeedsArgs:
    def __init__(self, x):
        self.x = x


class Book(BaseModel):
    title: str
    pages: int = 0
    tags: list[str] = Field(default_factory=list)


class Declared:
    """Plain class declaring its attributes on the class."""

    city: str = ""
    zip_code = "0000"
    RATE: ClassVar[float] = 1.5

    @property
    def label(self) -> str:
        return self.city

    def describe(self) -> str:
        return f"{self.city} {self.zip_code}"


class Undeclared:
    pass


class Vault(BaseModel):
    label: str = ""
    _secret: str = PrivateAttr(default="")


@dataclass
class Strict:
    name: str


class Color(Enum):
    RED = "red"


class TestClassify:
    """Tests for TypeRegistry.classify."""

    @pytest.mark.parametrize("value", [None, True, 0, 1.5, "text"])
    def test_scalars(self, value):
        result = TypeRegistry().classify(value)
        assert isinstance(result, Scalar)
        assert result.value == value

    def test_list(self):
        result = TypeRegistry().classify(["a", "b"])
        assert isinstance(result, Sequence)
        assert not result.is_mapping
        assert result.items == (("0", "a"), ("1", "b"))

    def test_tuple_is_sequence(self):
        result = TypeRegistry().classify((1, 2))
        assert isinstance(result, Sequence)

    def test_mapping(self):
        result = TypeRegistry().classify({"x": 1, "y": [2]})
        assert isinstance(result, Sequence)
        assert result.is_mapping
        assert dict(result.items) == {"x": 1, "y": [2]}

    def test_mapping_rejects_reserved_keys(self):
        types = TypeRegistry()
        with pytest.raises(UnsupportedType):
            types.classify({"*x": 1})
        with pytest.raises(UnsupportedType):
            types.classify({"_oid": "x"})
        with pytest.raises(UnsupportedType):
            types.classify({1: "x"})

    def test_dataclass_composite(self):
        types = TypeRegistry()
        result = types.classify(Address(city="Oslo", _zip="0150"))

        assert isinstance(result, Composite)
        assert result.type_name == "Address"
        assert dict(result.values) == {"city": "Oslo", "_zip": "0150"}
        assert "Address" in types

    def test_plain_class_reads_private_fields(self):
        account = Account()
        account._balance = 10
        result = TypeRegistry().classify(account)

        assert dict(result.values) == {"owner": "", "_balance": 10}

    def test_identity_fields_are_not_fields(self):
        account = Account()
        set_identity(account, oid="Account::1", content_hash="h")
        result = TypeRegistry().classify(account)

        assert "_oid" not in dict(result.values)
        assert "_hash" not in dict(result.values)

    def test_explicit_fields(self):
        result = TypeRegistry().classify(Explicit())
        assert dict(result.values) == {"a": 1}

    def test_pydantic_model(self):
        result = TypeRegistry().classify(Book(title="Dune", pages=412))
        assert result.type_name == "Book"
        assert dict(result.values)["title"] == "Dune"

    def test_pydantic_private_attributes(self):
        vault = Vault(label="x")
        vault._secret = "s3"
        result = TypeRegistry().classify(vault)

        assert dict(result.values) == {"label": "x", "_secret": "s3"}

    def test_class_level_attributes(self):
        place = Declared()
        place.city = "Oslo"
        result = TypeRegistry().classify(place)

        assert dict(result.values) == {"city": "Oslo", "zip_code": "0000"}

    def test_attributes_without_fields_rejected(self):
        value = Undeclared()
        value.city = "Oslo"
        with pytest.raises(UnsupportedType):
            TypeRegistry().classify(value)

    def test_empty_composite_allowed(self):
        result = TypeRegistry().classify(Undeclared())
        assert isinstance(result, Composite)
        assert result.values == ()

    @pytest.mark.parametrize(
        "value",
        [SimpleNamespace(a=1), object(), datetime.now(), b"raw", {1, 2}, Color.RED, len, Address],
    )
    def test_unsupported(self, value):
        with pytest.raises(UnsupportedType):
            TypeRegistry().classify(value)


class TestRegistry:
    """Tests for registration and instantiation."""

    def test_name_clash(self):
        types = TypeRegistry([Address])

        OtherAddress = type("Address", (), {"__init__": lambda self: None})
        with pytest.raises(InvalidArgument):
            types.register(OtherAddress)

    def test_register_is_idempotent(self):
        types = TypeRegistry()
        assert types.register(Address) is types.register(Address)
        assert len(types) == 1

    def test_resolve_unknown(self):
        with pytest.raises(UnsupportedType):
            TypeRegistry().resolve("Missing")

    def test_constructor_with_arguments(self):
        with pytest.raises(UnsupportedType):
            TypeRegistry().register(NeedsArgs)

    def test_dataclass_with_required_field(self):
        types = TypeRegistry()
        with pytest.raises(UnsupportedType):
            types.register(Strict)
        with pytest.raises(UnsupportedType):
            types.classify(Strict(name="Ann"))
        assert "Strict" not in types

    def test_private_attribute_set_on_instantiated_model(self):
        types = TypeRegistry([Vault])
        vault = types.instantiate("Vault")

        types.resolve("Vault").field("_secret").setter(vault, "s3")
        assert vault._secret == "s3"

    def test_instantiate_zero_initialized(self):
        types = TypeRegistry([Address, Book])

        address = types.instantiate("Address")
        assert address == Address()

        book = types.instantiate("Book")
        assert isinstance(book, Book)
        assert book.pages == 0

    def test_rejects_anonymous_registration(self):
        with pytest.raises(InvalidArgument):
            TypeRegistry().register(SimpleNamespace)


class TestIdentity:
    """Tests for identity helpers."""

    def test_set_and_clear(self):
        address = Address()
        assert oid_of(address) is None

        set_identity(address, oid="Address::1", content_hash="abc")
        assert oid_of(address) == "Address::1"
        assert hash_of(address) == "abc"

        clear_identity(address)
        assert oid_of(address) is None
        assert hash_of(address) is None

    def test_same_identity(self):
        a, b = Address(city="x"), Address(city="y")
        assert same_identity(a, a)
        assert not same_identity(a, b)

        set_identity(a, oid="Address::1")
        set_identity(b, oid="Address::1")
        assert same_identity(a, b)
