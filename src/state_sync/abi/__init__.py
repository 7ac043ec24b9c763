"""Solidity ABI encoding and Keccak-256 hashing."""

from .codec import (
    ABIDecodingError,
    ABIEncodingError,
    decode,
    encode,
    encode_packed_address_string,
)
from .hashing import event_topic, function_selector, keccak256

__all__ = [
    "ABIDecodingError",
    "ABIEncodingError",
    "decode",
    "encode",
    "encode_packed_address_string",
    "event_topic",
    "function_selector",
    "keccak256",
]
