"""
Fixed-length byte types.

Hashes, topics and account addresses all travel as fixed-width byte strings.
These subclasses of `bytes` enforce the width at construction time and plug
into pydantic validation so models can declare them as field types.
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, SupportsIndex

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self


def _coerce_to_bytes(value: Any) -> bytes:
    """
    Coerce a variety of inputs to raw bytes.

    Accepts:
      - `bytes` / `bytearray` (returned as immutable `bytes`)
      - Iterables of integers in [0, 255]
      - Hex strings, with or without a '0x' prefix (e.g. "0xdeadbeef" or "deadbeef")

    Raises:
      ValueError / TypeError if conversion is not possible or out-of-range.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    if isinstance(value, Iterable):
        return bytes(bytearray(value))
    return bytes(value)


class BaseBytes(bytes):
    """
    A base class for fixed-length byte types that inherits from `bytes`.

    Subclasses set:
      - `LENGTH`: exact number of bytes the instance must contain.
    """

    LENGTH: ClassVar[int]
    """The exact number of bytes (overridden by subclasses)."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Create and validate a new Bytes instance.

        Raises:
            ValueError: If the resulting byte length differs from `LENGTH`.
        """
        if not hasattr(cls, "LENGTH"):
            raise TypeError(f"{cls.__name__} must define LENGTH")

        b = _coerce_to_bytes(value)
        if len(b) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(b)}")
        return super().__new__(cls, b)

    @classmethod
    def zero(cls) -> Self:
        """Create a new instance filled with zero bytes."""
        return cls(b"\x00" * cls.LENGTH)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Hook into Pydantic's validation system.

        1. If the input is already an instance of the class, accept it.
        2. Otherwise, validate raw bytes of exactly LENGTH and instantiate.
        3. For serialization (e.g., to JSON), emit a 0x-prefixed hex string.
        """
        from_bytes_validator = core_schema.no_info_plain_validator_function(cls)

        python_schema = core_schema.chain_schema(
            [
                core_schema.bytes_schema(min_length=cls.LENGTH, max_length=cls.LENGTH),
                from_bytes_validator,
            ]
        )

        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                python_schema,
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(lambda x: x.to_hex()),
        )

    def to_hex(self) -> str:
        """Return the 0x-prefixed hex form used on the wire."""
        return "0x" + bytes(self).hex()

    def __repr__(self) -> str:
        tname = type(self).__name__
        return f"{tname}({self.hex()})"

    def __str__(self) -> str:
        return self.to_hex()

    def __hash__(self) -> int:
        return hash((type(self), bytes(self)))

    def hex(self, sep: str | bytes | None = None, bytes_per_sep: SupportsIndex = 1) -> str:
        """Return the hexadecimal string representation of the underlying bytes."""
        return bytes(self).hex() if sep is None else bytes(self).hex(sep, bytes_per_sep)


class Bytes4(BaseBytes):
    """Fixed-size byte array of exactly 4 bytes (function selectors)."""

    LENGTH = 4


class Bytes32(BaseBytes):
    """Fixed-size byte array of exactly 32 bytes (hashes, topics)."""

    LENGTH = 32


class Address(BaseBytes):
    """A 20-byte account or contract address."""

    LENGTH = 20

    def to_topic(self) -> Bytes32:
        """Left-pad the address to a 32-byte indexed event topic."""
        return Bytes32(b"\x00" * 12 + bytes(self))

    @classmethod
    def from_topic(cls, topic: bytes) -> Self:
        """
        Recover an address from a 32-byte indexed event topic.

        Raises:
            ValueError: If the topic is not 32 bytes or its 12-byte padding is non-zero.
        """
        if len(topic) != 32:
            raise ValueError(f"Address topic must be 32 bytes, got {len(topic)}")
        if any(topic[:12]):
            raise ValueError("Address topic has non-zero padding")
        return cls(topic[12:])


ZERO_HASH: Bytes32 = Bytes32.zero()
"""The 32-byte zero value."""
