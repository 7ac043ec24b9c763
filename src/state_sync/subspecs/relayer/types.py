"""Relay tasks and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import Field
from typing_extensions import Self

from state_sync.subspecs.oracle.types import Locator
from state_sync.subspecs.registry import RelayerSettings
from state_sync.subspecs.watcher import ObservedWrite
from state_sync.types import StrictBaseModel


class SyncTask(StrictBaseModel):
    """
    One unit of relay work: deliver one source event to one destination.

    Derived deterministically from the event, so re-deriving it from the same
    event yields an equal task.
    """

    source_chain_id: int = Field(ge=0, lt=2**32)
    """Chain the write happened on."""

    block_number: int = Field(ge=0)
    """Block containing the write."""

    position_in_block: int = Field(ge=0)
    """Index of the writing transaction within the block."""

    local_log_index: int = Field(ge=0)
    """Index of the write event among the transaction's logs."""

    destination_chain_id: int = Field(ge=0, lt=2**32)
    """Chain the write is delivered to."""

    @classmethod
    def for_destination(cls, observed: ObservedWrite, destination_chain_id: int) -> Self:
        """Derive the task delivering `observed` to one destination."""
        return cls(
            source_chain_id=observed.source_chain_id,
            block_number=observed.block_number,
            position_in_block=observed.position_in_block,
            local_log_index=observed.local_log_index,
            destination_chain_id=destination_chain_id,
        )

    @property
    def locator(self) -> Locator:
        """Position of the source event as the proof service addresses it."""
        return Locator(
            source_chain_id=self.source_chain_id,
            block_number=self.block_number,
            transaction_index=self.position_in_block,
            local_log_index=self.local_log_index,
        )

    def __str__(self) -> str:
        return (
            f"{self.source_chain_id}->{self.destination_chain_id}@"
            f"{self.block_number}:{self.position_in_block}:{self.local_log_index}"
        )


class TaskStatus(Enum):
    """Terminal state of a relay pipeline."""

    APPLIED = "applied"
    """The destination applied the write."""

    ALREADY_APPLIED = "already_applied"
    """The destination had already consumed this proof."""

    STALE_VERSION = "stale_version"
    """The destination already holds this version or a newer one."""

    PROOF_FAILED = "proof_failed"
    """The proof service cannot prove the event."""

    PROOF_TIMEOUT = "proof_timeout"
    """The proof was not ready in time on any attempt."""

    ORACLE_UNAVAILABLE = "oracle_unavailable"
    """The proof service could not be reached on any attempt."""

    REJECTED = "rejected"
    """The destination rejected the write as invalid."""

    SUBMIT_FAILED = "submit_failed"
    """The destination could not be reached on any attempt."""

    @property
    def is_success(self) -> bool:
        """Whether the destination ends up at or past the write."""
        return self in {TaskStatus.APPLIED, TaskStatus.ALREADY_APPLIED, TaskStatus.STALE_VERSION}


class TaskOutcome(StrictBaseModel):
    """Result of one relay pipeline."""

    task: SyncTask
    """The task that ran."""

    status: TaskStatus
    """How it ended."""

    detail: str = ""
    """Error message or other context."""

    proof_attempts: int = Field(default=0, ge=0)
    """Proof requests made."""

    attempts: int = Field(default=0, ge=0)
    """Submissions made to the destination."""


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Retry and concurrency policy of the dispatcher."""

    submit_attempts: int = 3
    """Submission attempts per task on transport failures."""

    proof_attempts: int = 2
    """Proof requests per task on unavailable or slow proof service."""

    backoff: float = 1.0
    """Delay before the first retry, in seconds."""

    backoff_factor: float = 2.0
    """Multiplier applied to the delay after every retry."""

    max_in_flight: int = 64
    """Pipelines allowed to run concurrently."""

    @classmethod
    def from_settings(cls, settings: RelayerSettings) -> DispatchConfig:
        """Build the policy from relayer configuration."""
        return cls(
            submit_attempts=settings.submit_attempts,
            proof_attempts=settings.proof_attempts,
            backoff=settings.backoff,
            max_in_flight=settings.max_in_flight,
        )

    def delay(self, attempt: int) -> float:
        """Delay before retrying after the given failed attempt (1-based)."""
        return self.backoff * self.backoff_factor ** (attempt - 1)
