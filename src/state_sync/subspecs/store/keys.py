"""
Storage keys and replay-protection hashes.

Both digests are computed the way the Solidity contract computes them, so an
off-chain store and the on-chain contract agree byte for byte.
"""

from __future__ import annotations

from typing import Final

from state_sync.abi import encode, encode_packed_address_string, event_topic, keccak256
from state_sync.types import Address, Bytes32

VALUE_SET_SIGNATURE: Final = "ValueSet(address,string,bytes,uint256,bytes32,uint256)"
"""Canonical signature of the write event."""

VALUE_UPDATED_SIGNATURE: Final = "ValueUpdated(bytes32,bytes,uint256)"
"""Canonical signature of the update event emitted after a remote apply."""

VALUE_SET_TOPIC: Final = event_topic(VALUE_SET_SIGNATURE)
"""Topic-0 selector identifying write events."""

VALUE_UPDATED_TOPIC: Final = event_topic(VALUE_UPDATED_SIGNATURE)
"""Topic-0 selector identifying update events."""


def hashed_key(owner: Address, key: str) -> Bytes32:
    """
    Derive the storage key for an (owner, key) pair.

    Equivalent to ``keccak256(abi.encodePacked(owner, key))``. The owner is
    part of the digest, so two owners using the same logical key never share a
    record.
    """
    return keccak256(encode_packed_address_string(owner, key))


def proof_hash(
    source_chain_id: int,
    source_contract: Address,
    key_hash: Bytes32,
    nonce: int,
) -> Bytes32:
    """
    Identify one logical cross-chain write for replay protection.

    The destination chain id is not part of the digest: the same write proven
    to two destinations yields the same hash, and each destination keeps its
    own used set. The nonce separates successive writes to the same key.
    """
    return keccak256(
        encode(
            ["uint32", "address", "bytes32", "uint256"],
            [source_chain_id, source_contract, key_hash, nonce],
        )
    )
