"""
Chain registry.

Static mapping of chain identifier to RPC endpoint and store contract. Built
once at startup and consumed read-only. Anything missing here is a startup
error, never a runtime fault.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import Field, field_validator

from state_sync.types import Address, ConfigurationError, StrictBaseModel


class ChainEntry(StrictBaseModel):
    """One supported chain."""

    name: str = Field(min_length=1)
    """Human-readable label used in logs, e.g. "optimism-sepolia"."""

    chain_id: int = Field(ge=0, lt=2**32)
    """EIP-155 chain identifier."""

    rpc_endpoint: str = Field(min_length=1)
    """JSON-RPC URL of a node for this chain."""

    contract_address: Address
    """Address of the state sync contract on this chain."""

    @field_validator("contract_address", mode="before")
    @classmethod
    def parse_hex_address(cls, v: Any) -> Address:
        """
        Convert hex strings to a validated Address.

        YAML parsers may interpret 0x-prefixed values as integers.
        Handles both string and integer inputs.
        """
        if isinstance(v, int) and not isinstance(v, bool):
            v = f"0x{v:040x}"
        if isinstance(v, (str, bytes)):
            return Address(v)
        raise ValueError(f"contract_address must be a hex string, got {type(v).__name__}")

    def __str__(self) -> str:
        return f"{self.name}({self.chain_id})"


@dataclass(frozen=True, slots=True)
class ChainRegistry:
    """Read-only lookup of chain entries by chain id."""

    _entries: dict[int, ChainEntry] = field(default_factory=dict)
    """Entries keyed by chain id, in configuration order."""

    @classmethod
    def from_entries(cls, entries: Iterable[ChainEntry]) -> ChainRegistry:
        """
        Build a registry.

        Raises:
            ConfigurationError: If the list is empty or a chain id repeats.
        """
        by_id: dict[int, ChainEntry] = {}
        for entry in entries:
            if entry.chain_id in by_id:
                raise ConfigurationError(
                    f"Duplicate chain id {entry.chain_id}: "
                    f"{by_id[entry.chain_id].name} and {entry.name}"
                )
            by_id[entry.chain_id] = entry

        if not by_id:
            raise ConfigurationError("Chain registry is empty")

        return cls(_entries=by_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._entries

    def __iter__(self) -> Iterator[ChainEntry]:
        return iter(self._entries.values())

    @property
    def chain_ids(self) -> list[int]:
        """All configured chain ids, in configuration order."""
        return list(self._entries)

    def get(self, chain_id: int) -> ChainEntry:
        """
        Look up a chain.

        Raises:
            ConfigurationError: If the chain is not configured.
        """
        entry = self._entries.get(chain_id)
        if entry is None:
            raise ConfigurationError(f"No registry entry for chain {chain_id}")
        return entry

    def destinations_for(self, source_chain_id: int) -> list[ChainEntry]:
        """Return every configured chain other than the source."""
        self.get(source_chain_id)
        return [entry for entry in self._entries.values() if entry.chain_id != source_chain_id]
