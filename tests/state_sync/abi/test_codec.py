"""Tests for Solidity ABI encoding and decoding."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from state_sync.abi import (
    ABIDecodingError,
    ABIEncodingError,
    decode,
    encode,
    encode_packed_address_string,
)
from tests.state_sync.helpers import ALICE


def word(value: int) -> bytes:
    return value.to_bytes(32, "big")


class TestStaticEncoding:
    """Tests for single-word types."""

    def test_uint_is_left_padded_big_endian(self) -> None:
        """A uint occupies one word, most significant byte first."""
        assert encode(["uint256"], [1]) == word(1)
        assert encode(["uint32"], [0x01020304]) == word(0x01020304)

    def test_address_is_left_padded(self) -> None:
        """An address is 12 zero bytes followed by its 20 bytes."""
        assert encode(["address"], [ALICE]) == b"\x00" * 12 + bytes(ALICE)

    def test_bool_encodes_as_zero_or_one(self) -> None:
        """Booleans encode as the uint256 0 or 1."""
        assert encode(["bool", "bool"], [True, False]) == word(1) + word(0)

    def test_uint_out_of_range_rejected(self) -> None:
        """Values wider than the type are rejected, never truncated."""
        with pytest.raises(ABIEncodingError, match="out of range"):
            encode(["uint32"], [2**32])

    def test_negative_uint_rejected(self) -> None:
        """Negative values do not fit an unsigned type."""
        with pytest.raises(ABIEncodingError):
            encode(["uint256"], [-1])

    def test_bool_is_not_an_int(self) -> None:
        """A bool passed as a uint is a caller bug."""
        with pytest.raises(ABIEncodingError):
            encode(["uint256"], [True])

    def test_wrong_address_length_rejected(self) -> None:
        """Addresses must be exactly 20 bytes."""
        with pytest.raises(ABIEncodingError):
            encode(["address"], [b"\x01" * 19])

    def test_unsupported_type_rejected(self) -> None:
        """Types outside the supported set raise."""
        with pytest.raises(ABIEncodingError, match="Unsupported"):
            encode(["int256"], [1])

    def test_value_count_must_match(self) -> None:
        """One value is required per type."""
        with pytest.raises(ABIEncodingError, match="Expected 2 values"):
            encode(["uint256", "uint256"], [1])


class TestDynamicEncoding:
    """Tests for head/tail layout of dynamic types."""

    def test_single_string_layout(self) -> None:
        """A string is an offset word, then length, then padded payload."""
        encoded = encode(["string"], ["abc"])

        assert encoded == word(32) + word(3) + b"abc" + b"\x00" * 29

    def test_offsets_skip_earlier_payloads(self) -> None:
        """The second dynamic offset points past the first payload."""
        encoded = encode(["string", "bytes", "uint256"], ["k", b"\x01\x02", 7])

        assert encoded[0:32] == word(96)
        assert encoded[32:64] == word(96 + 64)
        assert encoded[64:96] == word(7)

    def test_empty_bytes_has_no_padding(self) -> None:
        """Empty payloads encode as a zero length and nothing else."""
        assert encode(["bytes"], [b""]) == word(32) + word(0)

    def test_exact_word_payload_has_no_padding(self) -> None:
        """A 32-byte payload needs no padding."""
        encoded = encode(["bytes"], [b"\xff" * 32])

        assert len(encoded) == 32 * 3

    def test_string_requires_str(self) -> None:
        """Bytes passed as a string are rejected."""
        with pytest.raises(ABIEncodingError):
            encode(["string"], [b"abc"])


class TestDecoding:
    """Tests for decoding ABI tuples."""

    def test_decodes_mixed_tuple(self) -> None:
        """Static and dynamic values decode to Python types."""
        data = encode(
            ["string", "bytes", "uint256", "uint256"],
            ["greeting", b"hello", 3, 4],
        )

        assert decode(["string", "bytes", "uint256", "uint256"], data) == (
            "greeting",
            b"hello",
            3,
            4,
        )

    def test_address_decodes_to_raw_bytes(self) -> None:
        """Addresses decode to their 20 bytes."""
        data = encode(["address"], [ALICE])

        assert decode(["address"], data) == (bytes(ALICE),)

    def test_truncated_head_rejected(self) -> None:
        """Data shorter than the head raises."""
        with pytest.raises(ABIDecodingError, match="too short"):
            decode(["uint256", "uint256"], word(1))

    def test_offset_out_of_bounds_rejected(self) -> None:
        """A dynamic offset pointing past the data raises."""
        with pytest.raises(ABIDecodingError):
            decode(["bytes"], word(1024))

    def test_length_out_of_bounds_rejected(self) -> None:
        """A payload length running past the data raises."""
        with pytest.raises(ABIDecodingError):
            decode(["bytes"], word(32) + word(100) + b"\x00" * 32)

    def test_dirty_address_padding_rejected(self) -> None:
        """Non-zero bytes in address padding are non-canonical."""
        data = b"\x01" + b"\x00" * 11 + bytes(ALICE)

        with pytest.raises(ABIDecodingError, match="padding"):
            decode(["address"], data)

    def test_uint_wider_than_type_rejected(self) -> None:
        """A word too large for a narrow uint raises."""
        with pytest.raises(ABIDecodingError, match="out of range"):
            decode(["uint32"], word(2**32))

    def test_non_canonical_bool_rejected(self) -> None:
        """Booleans other than 0 and 1 raise."""
        with pytest.raises(ABIDecodingError, match="bool"):
            decode(["bool"], word(2))

    def test_invalid_utf8_rejected(self) -> None:
        """Strings must be valid UTF-8."""
        data = word(32) + word(1) + b"\xff" + b"\x00" * 31

        with pytest.raises(ABIDecodingError, match="UTF-8"):
            decode(["string"], data)

    @given(
        key=st.text(max_size=80),
        value=st.binary(max_size=200),
        nonce=st.integers(min_value=0, max_value=2**256 - 1),
    )
    def test_write_payload_survives_encoding(self, key: str, value: bytes, nonce: int) -> None:
        """Any write payload decodes back to what was encoded."""
        types = ["string", "bytes", "uint256"]

        assert decode(types, encode(types, [key, value, nonce])) == (key, value, nonce)


class TestPackedEncoding:
    """Tests for abi.encodePacked(address, string)."""

    def test_concatenates_without_padding(self) -> None:
        """Packed encoding is the raw address followed by the UTF-8 key."""
        assert encode_packed_address_string(ALICE, "ké") == bytes(ALICE) + "ké".encode()

    def test_rejects_short_address(self) -> None:
        """The address must be 20 bytes."""
        with pytest.raises(ABIEncodingError):
            encode_packed_address_string(b"\x01" * 4, "key")
