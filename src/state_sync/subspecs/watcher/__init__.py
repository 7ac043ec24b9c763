"""Watches source chains for write events."""

from .types import ObservedWrite
from .watcher import EventWatcher

__all__ = [
    "EventWatcher",
    "ObservedWrite",
]
