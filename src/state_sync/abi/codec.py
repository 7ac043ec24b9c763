"""
Solidity ABI Encoding
=====================

The contract ABI is how arguments, return values and event data cross the
boundary between off-chain code and the EVM.

Every value occupies one or more 32-byte words. Encoding a tuple produces a
**head** section with one word per element, followed by a **tail** section
holding the payload of dynamic elements:

+-----------+---------------------------------------------------------+
| Type      | Head word                                               |
+===========+=========================================================+
| uintN     | Big-endian integer, left-padded with zeros              |
+-----------+---------------------------------------------------------+
| address   | 20 bytes, left-padded with 12 zero bytes                |
+-----------+---------------------------------------------------------+
| bytes32   | The 32 bytes themselves                                 |
+-----------+---------------------------------------------------------+
| bool      | 0 or 1 as uint256                                       |
+-----------+---------------------------------------------------------+
| bytes     | Offset of the payload, measured from the start of head  |
+-----------+---------------------------------------------------------+
| string    | Same as bytes, payload is UTF-8                         |
+-----------+---------------------------------------------------------+

A dynamic payload is its length as a uint256 word, followed by the data
right-padded with zeros to a multiple of 32 bytes.

Only the types the state sync contract uses are supported. Arrays and nested
tuples are out of scope.

References:
----------
- https://docs.soliditylang.org/en/latest/abi-spec.html
"""

from __future__ import annotations

from typing import Any, Sequence

WORD_SIZE = 32
"""Size of one ABI word in bytes."""

ADDRESS_SIZE = 20
"""Size of an address in bytes."""

DYNAMIC_TYPES = frozenset({"bytes", "string"})
"""Types encoded in the tail section."""


class ABIEncodingError(Exception):
    """A value cannot be encoded as the requested ABI type."""


class ABIDecodingError(Exception):
    """ABI data is malformed or does not match the requested types."""


def encode(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """
    Encode values as an ABI tuple.

    Args:
        types: ABI type names, e.g. ``["string", "bytes", "uint256"]``.
        values: One Python value per type.

    Returns:
        The head section followed by the tail section.

    Raises:
        ABIEncodingError: If the counts differ or a value does not fit its type.
    """
    if len(types) != len(values):
        raise ABIEncodingError(f"Expected {len(types)} values, got {len(values)}")

    head: list[bytes] = []
    tail: list[bytes] = []
    head_size = WORD_SIZE * len(types)
    tail_size = 0

    for typ, value in zip(types, values):
        if typ in DYNAMIC_TYPES:
            # The offset points past the head and any earlier payloads.
            head.append(_encode_uint(head_size + tail_size, 256))
            payload = _encode_dynamic(typ, value)
            tail.append(payload)
            tail_size += len(payload)
        else:
            head.append(_encode_static(typ, value))

    return b"".join(head) + b"".join(tail)


def encode_packed_address_string(address: bytes, text: str) -> bytes:
    """Return ``abi.encodePacked(address, string)``: raw 20 bytes then UTF-8 text."""
    if len(address) != ADDRESS_SIZE:
        raise ABIEncodingError(f"address must be {ADDRESS_SIZE} bytes, got {len(address)}")
    return bytes(address) + text.encode("utf-8")


def decode(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """
    Decode an ABI tuple.

    Integers decode to `int`, `address` and `bytes32` to raw `bytes`,
    `bool` to `bool`, `bytes` to `bytes` and `string` to `str`.

    Raises:
        ABIDecodingError: If data is truncated, an offset points outside the
            data, or a value is non-canonical.
    """
    head_size = WORD_SIZE * len(types)
    _check_bounds(data, head_size)

    values: list[Any] = []
    for index, typ in enumerate(types):
        word = data[index * WORD_SIZE : (index + 1) * WORD_SIZE]
        if typ in DYNAMIC_TYPES:
            offset = int.from_bytes(word, "big")
            values.append(_decode_dynamic(typ, data, offset))
        else:
            values.append(_decode_static(typ, word))

    return tuple(values)


# -----------------------------------------------------------------------------
# Static types
# -----------------------------------------------------------------------------


def _encode_static(typ: str, value: Any) -> bytes:
    """Encode a single-word value."""
    if typ.startswith("uint"):
        return _encode_uint(value, _uint_bits(typ))

    if typ == "address":
        raw = bytes(value)
        if len(raw) != ADDRESS_SIZE:
            raise ABIEncodingError(f"address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
        return b"\x00" * (WORD_SIZE - ADDRESS_SIZE) + raw

    if typ == "bytes32":
        raw = bytes(value)
        if len(raw) != WORD_SIZE:
            raise ABIEncodingError(f"bytes32 must be 32 bytes, got {len(raw)}")
        return raw

    if typ == "bool":
        if not isinstance(value, bool):
            raise ABIEncodingError(f"bool expects a bool, got {type(value).__name__}")
        return _encode_uint(int(value), 256)

    raise ABIEncodingError(f"Unsupported ABI type: {typ}")


def _decode_static(typ: str, word: bytes) -> Any:
    """Decode a single-word value."""
    if typ.startswith("uint"):
        bits = _uint_bits(typ)
        value = int.from_bytes(word, "big")
        if value >= 1 << bits:
            raise ABIDecodingError(f"{typ} value out of range")
        return value

    if typ == "address":
        # Non-zero padding would let two encodings map to the same address.
        if any(word[: WORD_SIZE - ADDRESS_SIZE]):
            raise ABIDecodingError("Non-canonical address padding")
        return word[WORD_SIZE - ADDRESS_SIZE :]

    if typ == "bytes32":
        return word

    if typ == "bool":
        value = int.from_bytes(word, "big")
        if value > 1:
            raise ABIDecodingError("Non-canonical bool")
        return value == 1

    raise ABIDecodingError(f"Unsupported ABI type: {typ}")


def _uint_bits(typ: str) -> int:
    """Parse the bit width out of a ``uintN`` type name."""
    suffix = typ.removeprefix("uint") or "256"
    if not suffix.isdigit():
        raise ABIEncodingError(f"Unsupported ABI type: {typ}")
    bits = int(suffix)
    if bits == 0 or bits > 256 or bits % 8:
        raise ABIEncodingError(f"Unsupported ABI type: {typ}")
    return bits


def _encode_uint(value: Any, bits: int) -> bytes:
    """Encode a non-negative integer as one big-endian word."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ABIEncodingError(f"uint{bits} expects an int, got {type(value).__name__}")
    if value < 0 or value >= 1 << bits:
        raise ABIEncodingError(f"Value {value} out of range for uint{bits}")
    return value.to_bytes(WORD_SIZE, "big")


# -----------------------------------------------------------------------------
# Dynamic types
# -----------------------------------------------------------------------------


def _encode_dynamic(typ: str, value: Any) -> bytes:
    """Encode a length-prefixed, zero-padded payload."""
    if typ == "string":
        if not isinstance(value, str):
            raise ABIEncodingError(f"string expects a str, got {type(value).__name__}")
        raw = value.encode("utf-8")
    else:
        if not isinstance(value, (bytes, bytearray)):
            raise ABIEncodingError(f"bytes expects bytes, got {type(value).__name__}")
        raw = bytes(value)

    padding = (-len(raw)) % WORD_SIZE
    return _encode_uint(len(raw), 256) + raw + b"\x00" * padding


def _decode_dynamic(typ: str, data: bytes, offset: int) -> Any:
    """Decode the payload found at `offset`."""
    _check_bounds(data, offset + WORD_SIZE)
    length = int.from_bytes(data[offset : offset + WORD_SIZE], "big")

    start = offset + WORD_SIZE
    end = start + length
    _check_bounds(data, end)
    raw = data[start:end]

    if typ == "string":
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ABIDecodingError(f"Invalid UTF-8 in string: {exc}") from exc
    return raw


def _check_bounds(data: bytes, end: int) -> None:
    """Verify end offset is within data bounds."""
    if end > len(data):
        raise ABIDecodingError(f"Data too short: need {end}, have {len(data)}")
