"""
Event journal interface.

The watcher records every event it hands to the dispatcher. Checking the
journal before enqueueing keeps each event from being relayed twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from state_sync.types import Bytes32

EventKey = tuple[int, Bytes32, Bytes32, int]
"""(chain id, block hash, transaction hash, block-wide log index)."""


class EventJournal(Protocol):
    """Record of processed events and scan progress."""

    def contains(self, key: EventKey) -> bool:
        """Check whether an event was already processed."""
        ...

    def add(self, key: EventKey) -> None:
        """Mark an event as processed."""
        ...

    def cursor(self, chain_id: int) -> int | None:
        """Return the next block to scan on a chain, if recorded."""
        ...

    def set_cursor(self, chain_id: int, next_block: int) -> None:
        """Record the next block to scan on a chain."""
        ...

    def close(self) -> None:
        """Release resources."""
        ...


@dataclass(slots=True)
class InMemoryEventJournal:
    """Journal that lives for the duration of one run."""

    _events: set[EventKey] = field(default_factory=set)
    _cursors: dict[int, int] = field(default_factory=dict)

    def contains(self, key: EventKey) -> bool:
        return key in self._events

    def add(self, key: EventKey) -> None:
        self._events.add(key)

    def cursor(self, chain_id: int) -> int | None:
        return self._cursors.get(chain_id)

    def set_cursor(self, chain_id: int, next_block: int) -> None:
        self._cursors[chain_id] = next_block

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._events)
