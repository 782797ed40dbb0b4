"""
Tests for input validation helpers.
"""

import pytest

from tipvault.core.arith import MAX_UINT256
from tipvault.utils.validation import (
    MAX_ARRAY_LENGTH,
    ensure_all_valid,
    parse_address,
    parse_amount_list,
    validate_address,
    validate_amount,
    validate_array,
    validate_fee,
    validate_hex_string,
    validate_integer,
    validate_stake_type,
)


class TestScalars:

    def test_address(self):
        assert validate_address(b"\x01" * 20) == (True, "")
        assert not validate_address(b"\x01" * 19)[0]
        assert not validate_address("0x" + "01" * 20)[0]

    def test_integer_bounds(self):
        assert validate_integer(5, "x", 0, 10)[0]
        assert "must be >= 0" in validate_integer(-1, "x")[1]
        assert not validate_integer(11, "x", 0, 10)[0]

    def test_bool_is_not_integer(self):
        assert not validate_integer(True, "flag")[0]

    def test_amount_uint256(self):
        assert validate_amount(MAX_UINT256)[0]
        assert not validate_amount(MAX_UINT256 + 1)[0]

    def test_fee(self):
        assert validate_fee(10_000, 10_000)[0]
        assert not validate_fee(10_001, 10_000)[0]

    def test_stake_type(self):
        assert validate_stake_type(3, 4)[0]
        assert not validate_stake_type(4, 4)[0]
        assert not validate_stake_type(-1, 4)[0]


class TestStrings:

    def test_hex(self):
        assert validate_hex_string("0xabcd", "h")[0]
        assert validate_hex_string("abcd", "h", expected_bytes=2)[0]
        assert "odd length" in validate_hex_string("abc", "h")[1]
        assert "invalid hex" in validate_hex_string("zz", "h")[1]
        assert not validate_hex_string("abcd", "h", expected_bytes=3)[0]

    def test_parse_address(self):
        assert parse_address("0x" + "11" * 20) == b"\x11" * 20
        with pytest.raises(ValueError):
            parse_address("0x1234")


class TestLists:

    def test_array_length(self):
        assert validate_array([0] * MAX_ARRAY_LENGTH, "a")[0]
        assert not validate_array([0] * (MAX_ARRAY_LENGTH + 1), "a")[0]
        assert not validate_array("abc", "a")[0]

    def test_parse_amount_list(self):
        assert parse_amount_list("1000000, 4000000,15000000") == [1_000_000, 4_000_000, 15_000_000]
        assert parse_amount_list("") == []

    def test_parse_amount_list_rejects(self):
        with pytest.raises(ValueError, match="not an integer"):
            parse_amount_list("1,two")
        with pytest.raises(ValueError):
            parse_amount_list("-5")

    def test_ensure_all_valid(self):
        ensure_all_valid([(True, "")])
        with pytest.raises(ValueError, match="a bad; b bad"):
            ensure_all_valid([(False, "a bad"), (True, ""), (False, "b bad")])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
