"""Proof service request and response types."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from state_sync.types import StrictBaseModel


class Locator(StrictBaseModel):
    """
    Identifies one event on a source chain for the proof service.

    The proof service addresses logs by transaction position, not by hash:
    the block, the transaction's index within it, and the log's index among
    that transaction's logs.
    """

    source_chain_id: int = Field(ge=0, lt=2**32)
    """Chain the event was emitted on."""

    block_number: int = Field(ge=0, lt=2**64)
    """Block containing the transaction."""

    transaction_index: int = Field(ge=0, lt=2**32)
    """Position of the transaction within the block."""

    local_log_index: int = Field(ge=0, lt=2**32)
    """Position of the log among the transaction's logs."""

    def to_params(self) -> list[int]:
        """Return the positional parameters of `log_requestProof`."""
        return [
            self.source_chain_id,
            self.block_number,
            self.transaction_index,
            self.local_log_index,
        ]

    def __str__(self) -> str:
        return (
            f"{self.source_chain_id}@{self.block_number}:"
            f"{self.transaction_index}:{self.local_log_index}"
        )


class ProofStatus(Enum):
    """Job states reported by `log_queryProof`."""

    PENDING = "pending"
    """Queued, not started."""

    GENERATING = "generating"
    """Proof construction in progress."""

    COMPLETE = "complete"
    """Proof available in the response."""

    ERROR = "error"
    """The service gave up on the job."""


class ProofResult(StrictBaseModel):
    """
    Outcome of one poll.

    Exactly one of three shapes:

    - Pending: `status` is PENDING or GENERATING, no proof, no error.
    - Complete: `status` is COMPLETE and `proof` holds the decoded bytes.
    - Failed: `status` is ERROR and `error` holds the service's reason.
    """

    status: ProofStatus
    """Reported job state."""

    proof: bytes | None = None
    """Raw proof bytes, once complete."""

    error: str | None = None
    """Failure reason, when the job failed."""

    @property
    def is_pending(self) -> bool:
        """Whether the proof is still being produced."""
        return self.status in {ProofStatus.PENDING, ProofStatus.GENERATING}

    @property
    def is_complete(self) -> bool:
        """Whether the proof is available."""
        return self.status == ProofStatus.COMPLETE

    @property
    def is_failed(self) -> bool:
        """Whether the job failed for good."""
        return self.status == ProofStatus.ERROR
