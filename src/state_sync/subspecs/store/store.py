"""
Versioned key-value store with ownership and replay protection.

One store exists per chain. Each holds an independent copy of every record;
the relayer keeps the copies in step by proving writes made on one chain and
applying them on the others.

Per-Key State Machine
---------------------
::

    Unbound --(first write or first remote apply)--> Bound(owner, v=1..)
    Bound(owner, v) --(write by owner / newer remote apply)--> Bound(owner, v')   v' > v

The owner never changes once bound. The version only grows. A remote write
that is not strictly newer is rejected, never queued: the relayer may retry
with a newer proof, but the store performs no reordering.

Atomicity
---------
On a ledger, calls to one contract are serialized by block execution. Here
every read-check-write of a key's version, owner and the used-proof set runs
under a per-key `asyncio.Lock`. All checks complete before the first
mutation, so a rejected call leaves the store untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

from pydantic import Field

from state_sync.types import (
    Address,
    AlreadyApplied,
    Bytes32,
    InvalidProof,
    NotOwner,
    StaleVersion,
    StrictBaseModel,
)

from .events import UpdateEvent, ValidatedEvent, WriteEvent
from .keys import hashed_key, proof_hash

logger = logging.getLogger(__name__)


class ProofValidator(Protocol):
    """
    External proof verification, as exposed to a destination store.

    Given proof bytes, returns where the proven event was emitted and its raw
    topics and data, or raises `InvalidProof`.
    """

    async def validate_event(self, proof: bytes) -> ValidatedEvent:
        """Validate a proof and return the event it proves."""
        ...


class Record(StrictBaseModel):
    """The current value of one key on one chain."""

    value: bytes
    """Stored value."""

    owner: Address
    """Identity allowed to write the key. Immutable once set."""

    version: int = Field(ge=1)
    """Number of the most recent write applied to this key."""


@dataclass(slots=True)
class VersionedStore:
    """
    Key-value map enforcing ownership, monotonic versions and at-most-once applies.

    Pure state plus invariant checks. Proof validation is delegated to the
    injected validator; emitting events as logs is left to the hosting ledger.
    """

    chain_id: int
    """Chain this copy lives on."""

    address: Address
    """Contract address this store answers for."""

    validator: ProofValidator
    """Verifies proofs presented to `apply_remote`."""

    _records: dict[Bytes32, Record] = field(default_factory=dict)
    """Current record per hashed key."""

    _nonces: dict[Address, int] = field(default_factory=dict)
    """Next nonce per owner."""

    _used_proofs: set[Bytes32] = field(default_factory=set)
    """Proof hashes already applied. Insert-only."""

    _locks: dict[Bytes32, asyncio.Lock] = field(default_factory=dict)
    """Per-key locks guarding read-check-write sequences."""

    _lock_users: Counter[Bytes32] = field(default_factory=Counter)
    """Holders plus waiters per key lock. A lock is dropped when this reaches zero."""

    @asynccontextmanager
    async def _key_lock(self, key_hash: Bytes32) -> AsyncIterator[None]:
        """Hold the lock of one key, creating it on demand and dropping it once idle."""
        lock = self._locks.setdefault(key_hash, asyncio.Lock())
        self._lock_users[key_hash] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key_hash] -= 1
            if self._lock_users[key_hash] == 0:
                del self._lock_users[key_hash]
                del self._locks[key_hash]

    async def write(self, owner: Address, key: str, value: bytes) -> WriteEvent:
        """
        Perform a local write.

        Binds the owner on first write, bumps the version by one, stores the
        value and consumes one nonce of the owner.

        Args:
            owner: Identity performing the write.
            key: Logical key.
            value: Value to store.

        Returns:
            The write event, carrying the hashed key, nonce and new version.

        Raises:
            NotOwner: If the key is bound to a different owner.
        """
        key_hash = hashed_key(owner, key)

        async with self._key_lock(key_hash):
            record = self._records.get(key_hash)
            if record is not None and record.owner != owner:
                raise NotOwner()

            version = 1 if record is None else record.version + 1

            # The nonce counter spans all keys of an owner.
            #
            # No await separates the read from the write, so concurrent
            # writes to different keys cannot hand out the same nonce.
            nonce = self._nonces.get(owner, 0)
            self._nonces[owner] = nonce + 1

            self._records[key_hash] = Record(value=value, owner=owner, version=version)

        logger.debug(
            "Local write chain=%d key=%s version=%d nonce=%d",
            self.chain_id,
            key_hash.hex()[:16],
            version,
            nonce,
        )

        return WriteEvent(
            sender=owner,
            key=key,
            value=value,
            nonce=nonce,
            hashed_key=key_hash,
            version=version,
        )

    async def apply_remote(self, proof: bytes) -> UpdateEvent:
        """
        Apply a write proven to have happened on another chain.

        Checks run in this order, and the first failure wins:

        1. The validator accepts the proof.
        2. The proven event is a write event (`InvalidSignature`).
        3. The payload decodes and its hashed key matches (sender, key).
        4. The proof hash is unused (`AlreadyApplied`).
        5. The version is newer than the stored one (`StaleVersion`).
        6. The key is unbound or bound to the sender (`NotOwner`).

        Args:
            proof: Proof bytes as produced by the proof service.

        Returns:
            The update event describing the applied write.
        """
        validated = await self.validator.validate_event(proof)
        event = WriteEvent.from_log(validated.topics, validated.data)

        if hashed_key(event.sender, event.key) != event.hashed_key:
            raise InvalidProof(f"{InvalidProof.REASON}: hashed key does not match sender and key")

        digest = proof_hash(
            validated.source_chain_id,
            validated.source_contract,
            event.hashed_key,
            event.nonce,
        )

        async with self._key_lock(event.hashed_key):
            if digest in self._used_proofs:
                raise AlreadyApplied()

            record = self._records.get(event.hashed_key)
            current = 0 if record is None else record.version
            if event.version <= current:
                raise StaleVersion(
                    f"{StaleVersion.REASON}: proof carries {event.version}, store holds {current}"
                )

            if record is not None and record.owner != event.sender:
                raise NotOwner()

            # First cross-chain arrival binds the owner on a chain that never
            # saw a local write for this key.
            owner = event.sender if record is None else record.owner

            self._used_proofs.add(digest)
            self._records[event.hashed_key] = Record(
                value=event.value,
                owner=owner,
                version=event.version,
            )

        logger.debug(
            "Remote apply chain=%d source=%d key=%s version=%d",
            self.chain_id,
            validated.source_chain_id,
            event.hashed_key.hex()[:16],
            event.version,
        )

        return UpdateEvent(hashed_key=event.hashed_key, value=event.value, version=event.version)

    def read(self, owner: Address, key: str) -> bytes | None:
        """Return the value stored for (owner, key), or None if never written."""
        record = self._records.get(hashed_key(owner, key))
        return None if record is None else record.value

    def current_version(self, key_hash: Bytes32) -> int:
        """Return the stored version of a key, 0 if never written."""
        record = self._records.get(key_hash)
        return 0 if record is None else record.version

    def record(self, key_hash: Bytes32) -> Record | None:
        """Return the full record of a key, if any."""
        return self._records.get(key_hash)

    def owner_of(self, key_hash: Bytes32) -> Address | None:
        """Return the owner bound to a key, if any."""
        record = self._records.get(key_hash)
        return None if record is None else record.owner

    def nonce_of(self, owner: Address) -> int:
        """Return the nonce the owner's next write will carry."""
        return self._nonces.get(owner, 0)

    def is_proof_used(self, digest: Bytes32) -> bool:
        """Check whether a proof hash has been consumed."""
        return digest in self._used_proofs
