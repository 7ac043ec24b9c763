"""
Relay dispatcher.

Delivers every observed write to every other configured chain, one
independent proof-and-submit pipeline per destination.
"""

from .dispatcher import Dispatcher, ProofSource
from .types import DispatchConfig, SyncTask, TaskOutcome, TaskStatus

__all__ = [
    "DispatchConfig",
    "Dispatcher",
    "ProofSource",
    "SyncTask",
    "TaskOutcome",
    "TaskStatus",
]
