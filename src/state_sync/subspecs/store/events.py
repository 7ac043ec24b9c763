"""
Events emitted by the versioned store.

The write event is what the relayer watches and what the proof service
proves. Its indexed fields travel as topics, the rest as ABI-encoded data:

+-----------+-----------------------------------------------+
| Slot      | Content                                       |
+===========+===============================================+
| topics[0] | keccak256 of the event signature              |
+-----------+-----------------------------------------------+
| topics[1] | sender address, left-padded to 32 bytes       |
+-----------+-----------------------------------------------+
| topics[2] | hashed key                                    |
+-----------+-----------------------------------------------+
| data      | abi.encode(key, value, nonce, version)        |
+-----------+-----------------------------------------------+
"""

from __future__ import annotations

from pydantic import Field
from typing_extensions import Self

from state_sync.abi import ABIDecodingError, decode, encode
from state_sync.types import Address, Bytes32, InvalidProof, InvalidSignature, StrictBaseModel

from .keys import VALUE_SET_TOPIC, VALUE_UPDATED_TOPIC

WRITE_DATA_TYPES: tuple[str, ...] = ("string", "bytes", "uint256", "uint256")
"""ABI types of the write event's unindexed fields."""

UPDATE_DATA_TYPES: tuple[str, ...] = ("bytes", "uint256")
"""ABI types of the update event's unindexed fields."""


class WriteEvent(StrictBaseModel):
    """A local write, as emitted by the source store."""

    sender: Address
    """Owner that performed the write."""

    key: str
    """Logical key chosen by the owner."""

    value: bytes
    """Stored value."""

    nonce: int = Field(ge=0)
    """Per-owner write counter at the time of the write."""

    hashed_key: Bytes32
    """Storage key derived from (sender, key)."""

    version: int = Field(ge=1)
    """Version of the record after this write."""

    def topics(self) -> tuple[Bytes32, Bytes32, Bytes32]:
        """Return the three indexed topics."""
        return (VALUE_SET_TOPIC, self.sender.to_topic(), self.hashed_key)

    def data(self) -> bytes:
        """Return the ABI-encoded unindexed fields."""
        return encode(WRITE_DATA_TYPES, [self.key, self.value, self.nonce, self.version])

    @classmethod
    def from_log(cls, topics: tuple[bytes, ...] | list[bytes], data: bytes) -> Self:
        """
        Decode a write event from raw log fields.

        Raises:
            InvalidSignature: If topic 0 is not the write-event selector.
            InvalidProof: If the topics or data do not decode.
        """
        if not topics or bytes(topics[0]) != bytes(VALUE_SET_TOPIC):
            raise InvalidSignature()
        if len(topics) != 3:
            raise InvalidProof(f"Write event expects 3 topics, got {len(topics)}")

        try:
            sender = Address.from_topic(topics[1])
            key_hash = Bytes32(topics[2])
            key, value, nonce, version = decode(WRITE_DATA_TYPES, data)
        except (ValueError, ABIDecodingError) as exc:
            raise InvalidProof(f"Malformed write event: {exc}") from exc

        if version < 1:
            raise InvalidProof("Write event carries version 0")

        return cls(
            sender=sender,
            key=key,
            value=value,
            nonce=nonce,
            hashed_key=key_hash,
            version=version,
        )


class UpdateEvent(StrictBaseModel):
    """A remote write applied to a destination store."""

    hashed_key: Bytes32
    """Storage key that was updated."""

    value: bytes
    """New value."""

    version: int = Field(ge=1)
    """Version now recorded for the key."""

    def topics(self) -> tuple[Bytes32, Bytes32]:
        """Return the two indexed topics."""
        return (VALUE_UPDATED_TOPIC, self.hashed_key)

    def data(self) -> bytes:
        """Return the ABI-encoded unindexed fields."""
        return encode(UPDATE_DATA_TYPES, [self.value, self.version])

    @classmethod
    def from_log(cls, topics: tuple[bytes, ...] | list[bytes], data: bytes) -> Self | None:
        """Decode an update event, or return None if the log is something else."""
        if len(topics) != 2 or bytes(topics[0]) != bytes(VALUE_UPDATED_TOPIC):
            return None
        try:
            value, version = decode(UPDATE_DATA_TYPES, data)
        except ABIDecodingError:
            return None
        if version < 1:
            return None
        return cls(hashed_key=Bytes32(topics[1]), value=value, version=version)


class ValidatedEvent(StrictBaseModel):
    """
    An event whose inclusion on a source chain has been proven.

    This is what the proof validator returns for a proof: where the event was
    emitted and its raw topics and data.
    """

    source_chain_id: int = Field(ge=0, lt=2**32)
    """Chain the event was emitted on."""

    source_contract: Address
    """Contract that emitted the event."""

    topics: tuple[Bytes32, ...]
    """Indexed topics, selector first."""

    data: bytes
    """ABI-encoded unindexed fields."""
