"""
Chain access interfaces.

The relayer needs two views of a chain: reading write events off a source,
and submitting proofs to a destination. Both the JSON-RPC client and the
in-memory ledger satisfy these protocols structurally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from state_sync.types import Address, Bytes32

    from .types import Log, Receipt, SubmissionReceipt


class SourceChain(Protocol):
    """Read access to a chain the relayer watches."""

    @property
    def chain_id(self) -> int:
        """Identifier of the chain."""
        ...

    async def block_number(self) -> int:
        """
        Return the number of the most recent block.

        Raises:
            TransportError: If the chain cannot be reached.
        """
        ...

    async def get_logs(
        self,
        address: Address,
        topic: Bytes32,
        from_block: int,
        to_block: int,
    ) -> list[Log]:
        """
        Return logs emitted by `address` with topic 0 equal to `topic`.

        Both block bounds are inclusive. Logs come back in chain order.
        """
        ...

    async def get_transaction_receipt(self, transaction_hash: Bytes32) -> Receipt | None:
        """Return the receipt of a mined transaction, or None if unknown."""
        ...


class DestinationChain(Protocol):
    """Write access to a chain the relayer delivers proofs to."""

    @property
    def chain_id(self) -> int:
        """Identifier of the chain."""
        ...

    async def submit_proof(self, proof: bytes) -> SubmissionReceipt:
        """
        Call `setValueFromSource(proof)` and wait for confirmation.

        Raises:
            ValidationError: If the destination store rejects the proof.
            TransportError: If the chain cannot be reached or the call fails
                for reasons unrelated to the proof.
        """
        ...

    async def get_value(self, owner: Address, key: str) -> bytes:
        """Call `getValue(owner, key)`. Unwritten keys read as empty bytes."""
        ...
