"""Tests for the source chain event watcher."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from state_sync.subspecs.chain import LocalChain, LocalNetwork, Log, Receipt
from state_sync.subspecs.registry import ChainEntry
from state_sync.subspecs.storage import InMemoryEventJournal, SQLiteEventJournal
from state_sync.subspecs.watcher import EventWatcher, ObservedWrite
from state_sync.types import Address, Bytes32, TransportError
from tests.state_sync.helpers import ALICE, BOB, SOURCE_CHAIN_ID, observed_from_receipt


@dataclass
class FlakySource:
    """Source chain wrapper with scripted faults."""

    chain: LocalChain
    missing_receipts: set[int] = field(default_factory=set)
    removed: set[int] = field(default_factory=set)
    corrupted: set[int] = field(default_factory=set)
    ranges: list[tuple[int, int]] = field(default_factory=list)

    async def block_number(self) -> int:
        return await self.chain.block_number()

    async def get_logs(
        self, address: Address, topic: Bytes32, from_block: int, to_block: int
    ) -> list[Log]:
        self.ranges.append((from_block, to_block))
        logs = await self.chain.get_logs(address, topic, from_block, to_block)
        result = []
        for log in logs:
            if log.block_number in self.removed:
                log = log.model_copy(update={"removed": True})
            if log.block_number in self.corrupted:
                log = log.model_copy(update={"data": b"\x00"})
            result.append(log)
        return result

    async def get_transaction_receipt(self, transaction_hash: Bytes32) -> Receipt | None:
        receipt = await self.chain.get_transaction_receipt(transaction_hash)
        if receipt is not None and receipt.block_number in self.missing_receipts:
            return None
        return receipt


def _entry(network: LocalNetwork) -> ChainEntry:
    return network.registry().get(SOURCE_CHAIN_ID)


def _watcher(
    network: LocalNetwork,
    client: LocalChain | FlakySource,
    start_block: int | None = None,
    confirmations: int = 0,
    max_block_range: int = 1000,
    journal: InMemoryEventJournal | SQLiteEventJournal | None = None,
) -> EventWatcher:
    return EventWatcher(
        entry=_entry(network),
        client=client,
        queue=asyncio.Queue(),
        poll_interval=0.01,
        confirmations=confirmations,
        start_block=start_block,
        max_block_range=max_block_range,
        journal=InMemoryEventJournal() if journal is None else journal,
    )


def _drain(queue: asyncio.Queue[ObservedWrite]) -> list[ObservedWrite]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


class TestScanning:
    """Tests for finding write events."""

    async def test_starts_after_head(self, network: LocalNetwork, source: LocalChain) -> None:
        """Without a start block, history before startup is skipped."""
        await source.set_value(ALICE, "old", b"1")
        watcher = _watcher(network, source)

        assert await watcher.poll_once() == 0
        assert watcher.next_block == 2

        receipt = await source.set_value(ALICE, "new", b"2")
        assert await watcher.poll_once() == 1
        assert _drain(watcher.queue) == [observed_from_receipt(SOURCE_CHAIN_ID, receipt)]

    async def test_start_block_replays_history(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """An explicit start block scans from there."""
        first = await source.set_value(ALICE, "a", b"1")
        second = await source.set_value(BOB, "b", b"2")
        watcher = _watcher(network, source, start_block=1)

        assert await watcher.poll_once() == 2

        delivered = _drain(watcher.queue)
        assert [item.block_number for item in delivered] == [
            first.block_number,
            second.block_number,
        ]
        assert watcher.next_block == 3

    async def test_confirmations(self, network: LocalNetwork, source: LocalChain) -> None:
        """Events are held back until buried under enough blocks."""
        watcher = _watcher(network, source, start_block=1, confirmations=2)
        await source.set_value(ALICE, "a", b"1")

        assert await watcher.poll_once() == 0

        await source.mine_block([])
        assert await watcher.poll_once() == 0

        await source.mine_block([])
        assert await watcher.poll_once() == 1

    async def test_bounded_ranges(self, network: LocalNetwork, source: LocalChain) -> None:
        """Log queries never span more than max_block_range blocks."""
        for value in (b"1", b"2", b"3", b"4", b"5"):
            await source.set_value(ALICE, "a", value)
        flaky = FlakySource(source)
        watcher = _watcher(network, flaky, start_block=1, max_block_range=2)

        assert await watcher.poll_once() == 5
        assert flaky.ranges == [(1, 2), (3, 4), (5, 5)]

    async def test_positions_within_block(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """Each event carries its transaction index and per-transaction log index."""
        await source.mine_block([[(ALICE, "a", b"1"), (ALICE, "b", b"2")], [(BOB, "a", b"3")]])
        watcher = _watcher(network, source, start_block=1)

        await watcher.poll_once()

        delivered = _drain(watcher.queue)
        assert [
            (item.position_in_block, item.log_index, item.local_log_index) for item in delivered
        ] == [(0, 0, 0), (0, 1, 1), (1, 2, 0)]
        assert [item.event.key for item in delivered] == ["a", "b", "a"]


class TestDeduplication:
    """Tests for delivering each event once."""

    async def test_journaled_events_skipped(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """Events already in the journal are not delivered again."""
        first = await source.set_value(ALICE, "a", b"1")
        await source.set_value(ALICE, "a", b"2")
        journal = InMemoryEventJournal()
        journal.add(observed_from_receipt(SOURCE_CHAIN_ID, first).key)
        watcher = _watcher(network, source, start_block=1, journal=journal)

        assert await watcher.poll_once() == 1
        assert len(journal) == 2

    async def test_removed_logs_skipped(self, network: LocalNetwork, source: LocalChain) -> None:
        """Logs dropped by a reorganization are ignored."""
        await source.set_value(ALICE, "a", b"1")
        await source.set_value(ALICE, "a", b"2")
        flaky = FlakySource(source, removed={1})
        watcher = _watcher(network, flaky, start_block=1)

        assert await watcher.poll_once() == 1
        (item,) = _drain(watcher.queue)
        assert item.block_number == 2

    async def test_malformed_log_skipped_for_good(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """An undecodable write is journaled and never retried."""
        await source.set_value(ALICE, "a", b"1")
        flaky = FlakySource(source, corrupted={1})
        journal = InMemoryEventJournal()
        watcher = _watcher(network, flaky, start_block=1, journal=journal)

        assert await watcher.poll_once() == 0
        assert len(journal) == 1
        assert watcher.next_block == 2


class TestFailures:
    """Tests for partial failures."""

    async def test_missing_receipt_keeps_cursor(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """A range that cannot be fully delivered is retried from its start."""
        await source.set_value(ALICE, "a", b"1")
        await source.set_value(ALICE, "a", b"2")
        flaky = FlakySource(source, missing_receipts={2})
        watcher = _watcher(network, flaky, start_block=1)

        with pytest.raises(TransportError, match="receipt"):
            await watcher.poll_once()
        assert watcher.next_block == 1
        assert watcher.queue.qsize() == 1

        flaky.missing_receipts.clear()
        assert await watcher.poll_once() == 1
        assert watcher.next_block == 3
        assert [item.event.value for item in _drain(watcher.queue)] == [b"1", b"2"]

    async def test_run_survives_unreachable_chain(
        self, network: LocalNetwork, source: LocalChain
    ) -> None:
        """Transport failures are retried on the next poll."""
        source.reachable = False
        watcher = _watcher(network, source, start_block=1)
        task = asyncio.create_task(watcher.run())

        await asyncio.sleep(0.03)
        source.reachable = True
        await source.set_value(ALICE, "a", b"1")
        item = await asyncio.wait_for(watcher.queue.get(), timeout=1.0)

        watcher.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert item.event.value == b"1"


class TestResume:
    """Tests for resuming from a persistent journal."""

    async def test_restart_resumes_from_cursor(
        self, network: LocalNetwork, source: LocalChain, tmp_path: Path
    ) -> None:
        """Writes made while the relayer was down are picked up on restart."""
        path = tmp_path / "journal.db"
        await source.set_value(ALICE, "a", b"1")

        first_run = SQLiteEventJournal(path)
        watcher = _watcher(network, source, start_block=1, journal=first_run)
        assert await watcher.poll_once() == 1
        first_run.close()

        await source.set_value(ALICE, "a", b"2")

        second_run = SQLiteEventJournal(path)
        restarted = _watcher(network, source, journal=second_run)
        assert await restarted.poll_once() == 1
        (item,) = _drain(restarted.queue)
        assert item.event.value == b"2"
        second_run.close()
