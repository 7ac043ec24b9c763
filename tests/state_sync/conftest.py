"""
Shared pytest fixtures for all state_sync tests.

Provides local ledgers wired to a shared local prover.
"""

from __future__ import annotations

import pytest

from state_sync.subspecs.chain import LocalChain, LocalNetwork
from tests.state_sync.helpers import DEST_CHAIN_ID, SOURCE_CHAIN_ID, THIRD_CHAIN_ID


@pytest.fixture
def network() -> LocalNetwork:
    """Two local chains: a source and a destination."""
    return LocalNetwork.create([SOURCE_CHAIN_ID, DEST_CHAIN_ID])


@pytest.fixture
def three_chains() -> LocalNetwork:
    """Three local chains sharing one prover."""
    return LocalNetwork.create([SOURCE_CHAIN_ID, DEST_CHAIN_ID, THIRD_CHAIN_ID])


@pytest.fixture
def source(network: LocalNetwork) -> LocalChain:
    """The source chain of the two-chain network."""
    return network.chain(SOURCE_CHAIN_ID)


@pytest.fixture
def destination(network: LocalNetwork) -> LocalChain:
    """The destination chain of the two-chain network."""
    return network.chain(DEST_CHAIN_ID)
