"""
Event journal storage.

Tracks which source events were handed to the dispatcher and how far each
chain has been scanned.
"""

from .journal import EventJournal, EventKey, InMemoryEventJournal
from .sqlite import SQLiteEventJournal

__all__ = [
    "EventJournal",
    "EventKey",
    "InMemoryEventJournal",
    "SQLiteEventJournal",
]
