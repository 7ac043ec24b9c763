"""
Source chain event watcher.

One watcher runs per source chain. It scans the store contract's write
events block range by block range and hands each one to the dispatcher
exactly once.

How It Works
------------
1. Read the head and subtract the confirmation depth.
2. Fetch write-event logs from the cursor up to that block, in bounded ranges.
3. For each log not seen before, fetch its receipt to learn the log's
   position among its transaction's logs.
4. Enqueue the event, then mark it seen.
5. Advance the cursor past the range.

A failure anywhere in a range leaves the cursor at the start of that range.
Events already enqueued from it are marked seen, so the retry on the next
poll only picks up what is left.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from state_sync.subspecs.chain import Log, SourceChain
from state_sync.subspecs.metrics import events_observed, queue_depth, watcher_cursor
from state_sync.subspecs.registry import ChainEntry
from state_sync.subspecs.storage import EventJournal, InMemoryEventJournal
from state_sync.subspecs.store import VALUE_SET_TOPIC, WriteEvent
from state_sync.types import TransportError, ValidationError

from .types import ObservedWrite

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EventWatcher:
    """Polls one source chain for write events."""

    entry: ChainEntry
    """Registry entry of the watched chain."""

    client: SourceChain
    """Read access to the chain."""

    queue: asyncio.Queue[ObservedWrite]
    """Bounded queue shared with the dispatcher."""

    poll_interval: float = 2.0
    """Seconds between polls."""

    confirmations: int = 0
    """Blocks an event must be buried under before it is delivered."""

    start_block: int | None = None
    """First block to scan. Defaults to the first block after the current head."""

    max_block_range: int = 1000
    """Largest span of blocks requested in one log query."""

    journal: EventJournal = field(default_factory=InMemoryEventJournal)
    """Record of delivered events and scan progress."""

    _next_block: int | None = field(default=None, repr=False)
    """Next block to scan."""

    _running: bool = field(default=False, repr=False)
    """Whether the watcher is running."""

    @property
    def chain_id(self) -> int:
        """Identifier of the watched chain."""
        return self.entry.chain_id

    @property
    def next_block(self) -> int | None:
        """Next block to scan, once known."""
        return self._next_block

    async def run(self) -> None:
        """
        Main loop - poll until stopped.

        Transport failures are logged and retried on the next poll.
        """
        self._running = True
        logger.info(f"Watching {self.entry} at {self.entry.contract_address}")

        while self._running:
            try:
                await self.poll_once()
            except TransportError as exc:
                logger.warning(f"Polling {self.entry} failed, retrying: {exc.message}")

            if not self._running:
                break
            await asyncio.sleep(self.poll_interval)

    def stop(self) -> None:
        """Request the loop to exit after the current poll."""
        self._running = False

    async def poll_once(self) -> int:
        """
        Scan all confirmed blocks past the cursor.

        Returns:
            Number of events delivered.

        Raises:
            TransportError: If the chain cannot be read. The cursor stays at
                the first block not fully delivered.
        """
        head = await self.client.block_number()
        safe_head = head - self.confirmations

        if self._next_block is None:
            self._next_block = self._initial_cursor(safe_head)
            logger.info(f"{self.entry} scanning from block {self._next_block}")

        delivered = 0
        while self._next_block <= safe_head:
            from_block = self._next_block
            to_block = min(from_block + self.max_block_range - 1, safe_head)

            logs = await self.client.get_logs(
                self.entry.contract_address,
                VALUE_SET_TOPIC,
                from_block,
                to_block,
            )
            for log in logs:
                if await self._deliver(log):
                    delivered += 1

            self._advance(to_block + 1)

        return delivered

    def _initial_cursor(self, safe_head: int) -> int:
        resumed = self.journal.cursor(self.chain_id)
        if resumed is not None:
            return resumed
        if self.start_block is not None:
            return self.start_block
        return max(safe_head + 1, 0)

    def _advance(self, next_block: int) -> None:
        self._next_block = next_block
        self.journal.set_cursor(self.chain_id, next_block)
        watcher_cursor.labels(chain=self.entry.name).set(next_block)

    async def _deliver(self, log: Log) -> bool:
        """Enqueue one log if it is new. Returns whether it was enqueued."""
        if log.removed:
            return False

        key = (self.chain_id, log.block_hash, log.transaction_hash, log.log_index)
        if self.journal.contains(key):
            return False

        receipt = await self.client.get_transaction_receipt(log.transaction_hash)
        if receipt is None:
            raise TransportError(
                f"{self.entry}: receipt of {log.transaction_hash.hex()[:16]} not available"
            )

        local_log_index = receipt.local_log_index(log.log_index)
        if local_log_index is None:
            raise TransportError(
                f"{self.entry}: log {log.log_index} missing from receipt of "
                f"{log.transaction_hash.hex()[:16]}"
            )

        try:
            event = WriteEvent.from_log(log.topics, log.data)
        except ValidationError as exc:
            # A malformed log never becomes valid. Skip it for good.
            logger.error(
                f"{self.entry}: undecodable write event at block {log.block_number}: {exc}"
            )
            self.journal.add(key)
            return False

        observed = ObservedWrite(
            source_chain_id=self.chain_id,
            block_number=log.block_number,
            block_hash=log.block_hash,
            transaction_hash=log.transaction_hash,
            position_in_block=receipt.transaction_index,
            log_index=log.log_index,
            local_log_index=local_log_index,
            event=event,
        )

        await self.queue.put(observed)
        self.journal.add(key)

        events_observed.labels(chain=self.entry.name).inc()
        queue_depth.set(self.queue.qsize())
        logger.info(
            f"Observed write on {self.entry}: block={log.block_number} "
            f"tx={receipt.transaction_index} log={local_log_index} version={event.version}"
        )
        return True
