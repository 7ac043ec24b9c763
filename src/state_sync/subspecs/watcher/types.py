"""Events as handed from the watcher to the dispatcher."""

from __future__ import annotations

from pydantic import Field

from state_sync.subspecs.oracle.types import Locator
from state_sync.subspecs.storage import EventKey
from state_sync.subspecs.store import WriteEvent
from state_sync.types import Bytes32, StrictBaseModel


class ObservedWrite(StrictBaseModel):
    """A write event found on a source chain, with its exact position."""

    source_chain_id: int = Field(ge=0, lt=2**32)
    """Chain the event was emitted on."""

    block_number: int = Field(ge=0)
    """Block containing the event."""

    block_hash: Bytes32
    """Hash of that block."""

    transaction_hash: Bytes32
    """Transaction that emitted the event."""

    position_in_block: int = Field(ge=0)
    """Index of the transaction within the block."""

    log_index: int = Field(ge=0)
    """Block-wide index of the log."""

    local_log_index: int = Field(ge=0)
    """Index of the log among its transaction's logs."""

    event: WriteEvent
    """The decoded write."""

    @property
    def locator(self) -> Locator:
        """Position of the event as the proof service addresses it."""
        return Locator(
            source_chain_id=self.source_chain_id,
            block_number=self.block_number,
            transaction_index=self.position_in_block,
            local_log_index=self.local_log_index,
        )

    @property
    def key(self) -> EventKey:
        """Identity of the event for deduplication."""
        return (self.source_chain_id, self.block_hash, self.transaction_hash, self.log_index)
