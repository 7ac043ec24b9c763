"""Table definitions for the event journal."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProcessedEventNamespace:
    """
    Namespace for events already handed to the dispatcher.

    An event is identified by where it sits on its chain. The block hash is
    part of the key so that a log re-included in a different block after a
    reorganization counts as a new event.
    """

    TABLE_NAME: str = "processed_events"
    """Table name for processed events."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS processed_events (
            chain_id INTEGER NOT NULL,
            block_hash BLOB NOT NULL,
            tx_hash BLOB NOT NULL,
            log_index INTEGER NOT NULL,
            PRIMARY KEY (chain_id, block_hash, tx_hash, log_index)
        )
    """
    """SQL to create the processed events table."""


@dataclass(frozen=True, slots=True)
class CursorNamespace:
    """
    Namespace for watcher progress.

    One row per source chain: the next block the watcher will scan.
    """

    TABLE_NAME: str = "cursors"
    """Table name for watcher cursors."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS cursors (
            chain_id INTEGER PRIMARY KEY,
            next_block INTEGER NOT NULL
        )
    """
    """SQL to create the cursors table."""


PROCESSED_EVENTS = ProcessedEventNamespace()
CURSORS = CursorNamespace()
