"""
SQLite event journal.

Persists processed events and watcher cursors so a restarted relayer neither
re-relays events it already enqueued nor rescans from the chain head and
misses events emitted while it was down.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .journal import EventKey
from .namespaces import CURSORS, PROCESSED_EVENTS


class SQLiteEventJournal:
    """
    SQLite implementation of the EventJournal protocol.

    Every mutation commits immediately: an event marked processed stays
    marked even if the process dies right after.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Open or create a journal.

        Args:
            path: Path to the SQLite file. Use ":memory:" for a throwaway journal.
        """
        self._path = Path(path) if isinstance(path, str) else path
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        cursor = self._conn.cursor()
        cursor.execute(PROCESSED_EVENTS.CREATE_TABLE)
        cursor.execute(CURSORS.CREATE_TABLE)
        self._conn.commit()

    def contains(self, key: EventKey) -> bool:
        """Check whether an event was already processed."""
        chain_id, block_hash, tx_hash, log_index = key
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            SELECT 1 FROM {PROCESSED_EVENTS.TABLE_NAME}
            WHERE chain_id = ? AND block_hash = ? AND tx_hash = ? AND log_index = ?
            """,
            (chain_id, bytes(block_hash), bytes(tx_hash), log_index),
        )
        return cursor.fetchone() is not None

    def add(self, key: EventKey) -> None:
        """Mark an event as processed. Adding twice is a no-op."""
        chain_id, block_hash, tx_hash, log_index = key
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {PROCESSED_EVENTS.TABLE_NAME}
            (chain_id, block_hash, tx_hash, log_index)
            VALUES (?, ?, ?, ?)
            """,
            (chain_id, bytes(block_hash), bytes(tx_hash), log_index),
        )
        self._conn.commit()

    def cursor(self, chain_id: int) -> int | None:
        """Return the next block to scan on a chain, if recorded."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT next_block FROM {CURSORS.TABLE_NAME} WHERE chain_id = ?",
            (chain_id,),
        )
        row = cursor.fetchone()
        return None if row is None else int(row["next_block"])

    def set_cursor(self, chain_id: int, next_block: int) -> None:
        """Record the next block to scan on a chain."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"INSERT OR REPLACE INTO {CURSORS.TABLE_NAME} (chain_id, next_block) VALUES (?, ?)",
            (chain_id, next_block),
        )
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __len__(self) -> int:
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT COUNT(*) FROM {PROCESSED_EVENTS.TABLE_NAME}")
        return int(cursor.fetchone()[0])
