"""
Chain access.

Protocols for reading from and submitting to a chain, the JSON-RPC client
that implements them against a node, and an in-memory ledger that implements
them locally.
"""

from .interfaces import DestinationChain, SourceChain
from .local import LocalChain, LocalNetwork, LocalProver, contract_address_for
from .rpc import JsonRpcChainClient, revert_to_error
from .types import Log, Receipt, SubmissionReceipt

__all__ = [
    # Interfaces
    "SourceChain",
    "DestinationChain",
    # Clients
    "JsonRpcChainClient",
    "revert_to_error",
    "LocalChain",
    "LocalProver",
    "LocalNetwork",
    "contract_address_for",
    # Types
    "Log",
    "Receipt",
    "SubmissionReceipt",
]
