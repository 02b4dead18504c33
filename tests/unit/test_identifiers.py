"""Tests for object identifiers."""

import pytest

from tugrik.core.errors import InvalidArgument
from tugrik.core.identifiers import collection_of, new_oid, parse_oid


class TestNewOid:
    """Tests for new_oid."""

    def test_format(self):
        """OIDs are TypeName::token."""
        oid = new_oid("Person")
        type_name, token = oid.split("::")

        assert type_name == "Person"
        assert len(token) == 32
        int(token, 16)  # hex

    def test_unique(self):
        """Tokens do not repeat."""
        oids = {new_oid("Person") for _ in range(1000)}
        assert len(oids) == 1000

    def test_rejects_bad_type_name(self):
        with pytest.raises(InvalidArgument):
            new_oid("")
        with pytest.raises(InvalidArgument):
            new_oid("Bad::Name")


class TestParseOid:
    """Tests for parse_oid."""

    def test_round_trip(self):
        oid = new_oid("Address")
        type_name, token = parse_oid(oid)

        assert type_name == "Address"
        assert oid == f"{type_name}::{token}"
        assert collection_of(oid) == "Address"

    @pytest.mark.parametrize("bad", ["Person", "::abc", "Person::", "A::b::c", 42, None])
    def test_malformed(self, bad):
        with pytest.raises(InvalidArgument):
            parse_oid(bad)
