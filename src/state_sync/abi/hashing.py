"""
Keccak-256 helpers for selectors and event topics.

Ethereum uses the original Keccak-256 (pre-NIST padding), not SHA3-256.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from state_sync.types import Bytes4, Bytes32


def keccak256(data: bytes) -> Bytes32:
    """Compute the Keccak-256 digest of `data`."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return Bytes32(k.digest())


def function_selector(signature: str) -> Bytes4:
    """
    Compute a function selector.

    The selector is the first 4 bytes of keccak256 of the canonical signature,
    e.g. ``"setValueFromSource(bytes)"``.
    """
    return Bytes4(keccak256(signature.encode("ascii"))[:4])


def event_topic(signature: str) -> Bytes32:
    """Compute the topic-0 identifier of an event from its canonical signature."""
    return keccak256(signature.encode("ascii"))
