"""
Ledger data as seen by the relayer.

Ethereum JSON-RPC encodes quantities as 0x-prefixed hex strings and data as
0x-prefixed hex bytes. The `from_rpc` constructors parse those payloads into
typed models.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from typing_extensions import Self

from state_sync.subspecs.store import UpdateEvent
from state_sync.types import Address, Bytes32, StrictBaseModel


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC quantity such as ``"0x1a"``."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"Invalid quantity: {value!r}")
    return int(value, 16)


def parse_data(value: Any) -> bytes:
    """Parse JSON-RPC data such as ``"0xdeadbeef"``."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"Invalid data: {value!r}")
    return bytes.fromhex(value[2:])


class Log(StrictBaseModel):
    """One event log included in a block."""

    address: Address
    """Contract that emitted the log."""

    topics: tuple[Bytes32, ...]
    """Indexed topics, event selector first."""

    data: bytes
    """ABI-encoded unindexed fields."""

    block_number: int = Field(ge=0)
    """Block containing the log."""

    block_hash: Bytes32
    """Hash of that block."""

    transaction_hash: Bytes32
    """Transaction that emitted the log."""

    transaction_index: int = Field(ge=0)
    """Position of the transaction within the block."""

    log_index: int = Field(ge=0)
    """Position of the log within the block (block-wide, not per transaction)."""

    removed: bool = False
    """Set by the node when the log was dropped by a reorganization."""

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> Self:
        """Parse an `eth_getLogs` / receipt log entry."""
        return cls(
            address=Address(parse_data(raw["address"])),
            topics=tuple(Bytes32(parse_data(topic)) for topic in raw["topics"]),
            data=parse_data(raw["data"]),
            block_number=parse_quantity(raw["blockNumber"]),
            block_hash=Bytes32(parse_data(raw["blockHash"])),
            transaction_hash=Bytes32(parse_data(raw["transactionHash"])),
            transaction_index=parse_quantity(raw["transactionIndex"]),
            log_index=parse_quantity(raw["logIndex"]),
            removed=bool(raw.get("removed", False)),
        )


class Receipt(StrictBaseModel):
    """Execution receipt of one transaction."""

    transaction_hash: Bytes32
    """Hash of the transaction."""

    transaction_index: int = Field(ge=0)
    """Position of the transaction within its block."""

    block_number: int = Field(ge=0)
    """Block the transaction was included in."""

    block_hash: Bytes32
    """Hash of that block."""

    status: int
    """1 on success, 0 if execution reverted."""

    logs: tuple[Log, ...] = ()
    """Logs emitted by the transaction, in emission order."""

    @property
    def succeeded(self) -> bool:
        """Whether execution succeeded."""
        return self.status == 1

    def local_log_index(self, log_index: int) -> int | None:
        """
        Return the position of a log among this transaction's logs.

        Args:
            log_index: Block-wide index of the log.

        Returns:
            The per-transaction index, or None if the log is not in this receipt.
        """
        for position, log in enumerate(self.logs):
            if log.log_index == log_index:
                return position
        return None

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> Self:
        """Parse an `eth_getTransactionReceipt` result."""
        return cls(
            transaction_hash=Bytes32(parse_data(raw["transactionHash"])),
            transaction_index=parse_quantity(raw["transactionIndex"]),
            block_number=parse_quantity(raw["blockNumber"]),
            block_hash=Bytes32(parse_data(raw["blockHash"])),
            status=parse_quantity(raw.get("status", "0x1")),
            logs=tuple(Log.from_rpc(entry) for entry in raw.get("logs", [])),
        )


class SubmissionReceipt(StrictBaseModel):
    """Confirmation that a destination applied a proof."""

    chain_id: int
    """Destination chain."""

    transaction_hash: Bytes32
    """Transaction carrying the proof."""

    block_number: int = Field(ge=0)
    """Block the transaction was included in."""

    update: UpdateEvent | None = None
    """The update event emitted by the destination, if found in the receipt."""
