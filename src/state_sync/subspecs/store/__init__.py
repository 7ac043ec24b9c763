"""
Versioned key-value store.

Each chain holds an independent copy of every record. A record belongs to one
(owner, key) pair, carries a strictly increasing version, and accepts remote
writes only through proofs that have not been used before.
"""

from .events import UpdateEvent, ValidatedEvent, WriteEvent
from .keys import (
    VALUE_SET_SIGNATURE,
    VALUE_SET_TOPIC,
    VALUE_UPDATED_SIGNATURE,
    VALUE_UPDATED_TOPIC,
    hashed_key,
    proof_hash,
)
from .store import ProofValidator, Record, VersionedStore

__all__ = [
    # Store
    "VersionedStore",
    "Record",
    "ProofValidator",
    # Events
    "WriteEvent",
    "UpdateEvent",
    "ValidatedEvent",
    # Keys
    "hashed_key",
    "proof_hash",
    "VALUE_SET_SIGNATURE",
    "VALUE_SET_TOPIC",
    "VALUE_UPDATED_SIGNATURE",
    "VALUE_UPDATED_TOPIC",
]
