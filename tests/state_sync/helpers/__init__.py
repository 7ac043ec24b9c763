"""Test helpers for state sync unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import (
    ALICE,
    BOB,
    DEST_CHAIN_ID,
    SOURCE_CHAIN_ID,
    THIRD_CHAIN_ID,
    make_address,
    make_bytes32,
    make_chain_entry,
    make_observed_write,
    make_write_event,
    observed_from_receipt,
    proof_for,
    rpc_log,
    rpc_receipt,
)
from .mocks import (
    ORACLE_URL,
    TEST_API_KEY,
    InstantProofSource,
    MockProofService,
    ScriptedRpcNode,
    rpc_error,
    revert,
    rpc_result,
)

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    "run_async",
    # Builders
    "ALICE",
    "BOB",
    "DEST_CHAIN_ID",
    "SOURCE_CHAIN_ID",
    "THIRD_CHAIN_ID",
    "make_address",
    "make_bytes32",
    "make_chain_entry",
    "make_observed_write",
    "make_write_event",
    "observed_from_receipt",
    "proof_for",
    "rpc_log",
    "rpc_receipt",
    # Mocks
    "ORACLE_URL",
    "TEST_API_KEY",
    "InstantProofSource",
    "MockProofService",
    "ScriptedRpcNode",
    "rpc_error",
    "revert",
    "rpc_result",
]
