"""
In-memory ledger and proof service.

A `LocalChain` hosts one versioned store and mines a block per call, giving
every emitted event a real position (block, transaction index, log index)
just as a node would. A `LocalProver` plays the proof service for a set of
local chains: it produces proofs for logs it can locate, and validates proofs
presented to destination stores against the source ledger.

Used for local runs and as the backing ledger in tests.

Proof Layout
------------
A local proof is the ABI encoding of::

    (uint32 chain, uint64 block, uint32 txIndex, uint32 logIndex,
     address emitter, uint8 topicCount, bytes32 t0, bytes32 t1, bytes32 t2,
     bytes data)

Unused topic slots are zero. Validation re-reads the log at the stated
position and rejects any field that differs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from typing_extensions import Self

from state_sync.abi import ABIDecodingError, decode, encode, keccak256
from state_sync.subspecs.oracle.types import Locator
from state_sync.subspecs.registry import ChainEntry, ChainRegistry
from state_sync.subspecs.store import ProofValidator, ValidatedEvent, VersionedStore, hashed_key
from state_sync.types import (
    ZERO_HASH,
    Address,
    Bytes32,
    InvalidProof,
    NotOwner,
    ProofFailed,
    TransportError,
)

from .types import Log, Receipt, SubmissionReceipt

logger = logging.getLogger(__name__)

PROOF_TYPES: tuple[str, ...] = (
    "uint32",
    "uint64",
    "uint32",
    "uint32",
    "address",
    "uint8",
    "bytes32",
    "bytes32",
    "bytes32",
    "bytes",
)
"""ABI layout of a local proof."""

MAX_PROOF_TOPICS = 3
"""Topic slots in a local proof."""

Write = tuple[Address, str, bytes]
"""One store write inside a transaction: (sender, key, value)."""


def contract_address_for(chain_id: int) -> Address:
    """Deterministic store address of a local chain."""
    return Address(keccak256(b"state-sync" + chain_id.to_bytes(4, "big"))[12:])


@dataclass(slots=True)
class LocalChain:
    """
    A single-contract ledger held in memory.

    Block 0 is an empty genesis block. Each mining call appends one block.
    Log indexes are block-wide, as on Ethereum.
    """

    chain_id: int
    """Identifier of the chain."""

    contract_address: Address
    """Address of the hosted store."""

    validator: ProofValidator
    """Proof validator handed to the hosted store."""

    reachable: bool = True
    """When False, every call fails with TransportError."""

    fail_submissions: int = 0
    """Number of upcoming submissions to fail with TransportError."""

    store: VersionedStore = field(init=False)
    """The hosted versioned store."""

    _blocks: list[list[Receipt]] = field(init=False)
    """Receipts per block, indexed by block number."""

    _receipts: dict[Bytes32, Receipt] = field(default_factory=dict)
    """Receipts by transaction hash."""

    _mine_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    """Serializes block production."""

    def __post_init__(self) -> None:
        self.store = VersionedStore(
            chain_id=self.chain_id,
            address=self.contract_address,
            validator=self.validator,
        )
        self._blocks = [[]]

    @property
    def head(self) -> int:
        """Number of the most recent block."""
        return len(self._blocks) - 1

    def _check_reachable(self) -> None:
        if not self.reachable:
            raise TransportError(f"chain {self.chain_id} unreachable")

    def _block_hash(self, number: int) -> Bytes32:
        return keccak256(b"block" + self.chain_id.to_bytes(4, "big") + number.to_bytes(8, "big"))

    async def set_value(self, sender: Address, key: str, value: bytes) -> Receipt:
        """Perform one local write in its own transaction and block."""
        (receipt,) = await self.mine_block([[(sender, key, value)]])
        return receipt

    async def mine_block(self, transactions: Sequence[Sequence[Write]]) -> list[Receipt]:
        """
        Execute transactions of store writes and seal them into one block.

        A transaction may hold several writes, each emitting one write event.
        Ownership is checked for the whole block before any write runs, so a
        rejected block leaves the store untouched and mines nothing.

        Raises:
            NotOwner: If any write targets a key bound to another owner.
        """
        self._check_reachable()

        async with self._mine_lock:
            bound: dict[Bytes32, Address] = {}
            for tx in transactions:
                for sender, key, _ in tx:
                    key_hash = hashed_key(sender, key)
                    owner = bound.get(key_hash) or self.store.owner_of(key_hash)
                    if owner is not None and owner != sender:
                        raise NotOwner()
                    bound[key_hash] = sender

            number = self.head + 1
            block_hash = self._block_hash(number)
            receipts: list[Receipt] = []
            log_index = 0

            for tx_index, tx in enumerate(transactions):
                tx_hash = keccak256(bytes(block_hash) + tx_index.to_bytes(4, "big"))
                logs: list[Log] = []
                for sender, key, value in tx:
                    event = await self.store.write(sender, key, value)
                    logs.append(
                        self._log(
                            event.topics(),
                            event.data(),
                            number,
                            block_hash,
                            tx_hash,
                            tx_index,
                            log_index,
                        )
                    )
                    log_index += 1
                receipts.append(self._receipt(tx_hash, tx_index, number, block_hash, logs))

            self._seal(receipts)

        return receipts

    async def submit_proof(self, proof: bytes) -> SubmissionReceipt:
        """
        Apply a proof to the hosted store and mine the resulting update.

        A rejected proof mines nothing.
        """
        self._check_reachable()
        if self.fail_submissions > 0:
            self.fail_submissions -= 1
            raise TransportError(f"chain {self.chain_id}: submission dropped")

        async with self._mine_lock:
            update = await self.store.apply_remote(proof)

            number = self.head + 1
            block_hash = self._block_hash(number)
            tx_hash = keccak256(bytes(block_hash) + (0).to_bytes(4, "big"))
            log = self._log(update.topics(), update.data(), number, block_hash, tx_hash, 0, 0)
            self._seal([self._receipt(tx_hash, 0, number, block_hash, [log])])

        return SubmissionReceipt(
            chain_id=self.chain_id,
            transaction_hash=tx_hash,
            block_number=number,
            update=update,
        )

    async def get_value(self, owner: Address, key: str) -> bytes:
        """Read a value. Unwritten keys read as empty bytes."""
        self._check_reachable()
        value = self.store.read(owner, key)
        return b"" if value is None else value

    async def block_number(self) -> int:
        """Return the number of the most recent block."""
        self._check_reachable()
        return self.head

    async def get_logs(
        self,
        address: Address,
        topic: Bytes32,
        from_block: int,
        to_block: int,
    ) -> list[Log]:
        """Return matching logs in an inclusive block range, in chain order."""
        self._check_reachable()
        if address != self.contract_address:
            return []
        return [
            log
            for block in self._blocks[max(from_block, 0) : to_block + 1]
            for receipt in block
            for log in receipt.logs
            if log.topics and log.topics[0] == topic
        ]

    async def get_transaction_receipt(self, transaction_hash: Bytes32) -> Receipt | None:
        """Return the receipt of a mined transaction."""
        self._check_reachable()
        return self._receipts.get(transaction_hash)

    def find_log(self, locator: Locator) -> Log | None:
        """Locate a log by block, transaction index and per-transaction log index."""
        if locator.block_number > self.head:
            return None
        block = self._blocks[locator.block_number]
        if locator.transaction_index >= len(block):
            return None
        logs = block[locator.transaction_index].logs
        if locator.local_log_index >= len(logs):
            return None
        return logs[locator.local_log_index]

    def _log(
        self,
        topics: Iterable[Bytes32],
        data: bytes,
        number: int,
        block_hash: Bytes32,
        tx_hash: Bytes32,
        tx_index: int,
        log_index: int,
    ) -> Log:
        return Log(
            address=self.contract_address,
            topics=tuple(topics),
            data=data,
            block_number=number,
            block_hash=block_hash,
            transaction_hash=tx_hash,
            transaction_index=tx_index,
            log_index=log_index,
        )

    @staticmethod
    def _receipt(
        tx_hash: Bytes32,
        tx_index: int,
        number: int,
        block_hash: Bytes32,
        logs: list[Log],
    ) -> Receipt:
        return Receipt(
            transaction_hash=tx_hash,
            transaction_index=tx_index,
            block_number=number,
            block_hash=block_hash,
            status=1,
            logs=tuple(logs),
        )

    def _seal(self, receipts: list[Receipt]) -> None:
        self._blocks.append(receipts)
        for receipt in receipts:
            self._receipts[receipt.transaction_hash] = receipt
        logger.debug(f"Chain {self.chain_id} mined block {self.head} with {len(receipts)} txs")


@dataclass(slots=True)
class LocalProver:
    """Proof service over a set of local chains."""

    chains: dict[int, LocalChain] = field(default_factory=dict)
    """Known chains by id."""

    def register(self, chain: LocalChain) -> None:
        """Make a chain's logs provable."""
        self.chains[chain.chain_id] = chain

    def generate_proof(self, locator: Locator) -> bytes:
        """
        Produce a proof for the log at `locator`.

        Raises:
            ProofFailed: If the chain is unknown or the log does not exist.
        """
        chain = self.chains.get(locator.source_chain_id)
        if chain is None:
            raise ProofFailed(f"unknown chain {locator.source_chain_id}")

        log = chain.find_log(locator)
        if log is None:
            raise ProofFailed(f"no log at {locator}")
        if len(log.topics) > MAX_PROOF_TOPICS:
            raise ProofFailed(f"log at {locator} has {len(log.topics)} topics")

        padded = list(log.topics) + [ZERO_HASH] * (MAX_PROOF_TOPICS - len(log.topics))
        return encode(
            PROOF_TYPES,
            [
                locator.source_chain_id,
                locator.block_number,
                locator.transaction_index,
                locator.local_log_index,
                log.address,
                len(log.topics),
                *padded,
                log.data,
            ],
        )

    async def validate_event(self, proof: bytes) -> ValidatedEvent:
        """
        Check a proof against the source ledger and return the event.

        Raises:
            InvalidProof: If the proof is malformed or does not match the log
                recorded at its stated position.
        """
        try:
            (
                chain_id,
                block_number,
                tx_index,
                log_index,
                emitter,
                topic_count,
                *topic_slots,
                data,
            ) = decode(PROOF_TYPES, proof)
        except ABIDecodingError as exc:
            raise InvalidProof(f"{InvalidProof.REASON}: {exc}") from exc

        if topic_count > MAX_PROOF_TOPICS:
            raise InvalidProof(f"{InvalidProof.REASON}: topic count {topic_count}")

        chain = self.chains.get(chain_id)
        if chain is None:
            raise InvalidProof(f"{InvalidProof.REASON}: unknown chain {chain_id}")

        locator = Locator(
            source_chain_id=chain_id,
            block_number=block_number,
            transaction_index=tx_index,
            local_log_index=log_index,
        )
        log = chain.find_log(locator)
        topics = tuple(Bytes32(topic) for topic in topic_slots[:topic_count])

        if (
            log is None
            or bytes(log.address) != bytes(emitter)
            or log.topics != topics
            or log.data != data
        ):
            raise InvalidProof(f"{InvalidProof.REASON}: no matching log at {locator}")

        return ValidatedEvent(
            source_chain_id=chain_id,
            source_contract=log.address,
            topics=log.topics,
            data=log.data,
        )


@dataclass(slots=True)
class LocalNetwork:
    """A set of local chains sharing one prover."""

    prover: LocalProver
    """Proof service and validator for every chain."""

    chains: dict[int, LocalChain]
    """Chains by id."""

    @classmethod
    def create(cls, chain_ids: Iterable[int]) -> Self:
        """Build one chain per id, each with its own store address."""
        prover = LocalProver()
        chains: dict[int, LocalChain] = {}
        for chain_id in chain_ids:
            chain = LocalChain(
                chain_id=chain_id,
                contract_address=contract_address_for(chain_id),
                validator=prover,
            )
            prover.register(chain)
            chains[chain_id] = chain
        return cls(prover=prover, chains=chains)

    def chain(self, chain_id: int) -> LocalChain:
        """Return the chain with the given id."""
        return self.chains[chain_id]

    def registry(self) -> ChainRegistry:
        """Build a registry describing the local chains."""
        return ChainRegistry.from_entries(
            ChainEntry(
                name=f"local-{chain_id}",
                chain_id=chain_id,
                rpc_endpoint=f"local://{chain_id}",
                contract_address=chain.contract_address,
            )
            for chain_id, chain in self.chains.items()
        )
