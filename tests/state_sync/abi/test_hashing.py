"""Tests for Keccak-256 helpers."""

from __future__ import annotations

import hashlib

from state_sync.abi import event_topic, function_selector, keccak256
from state_sync.types import Bytes4, Bytes32


class TestKeccak256:
    """Tests for the raw digest."""

    def test_empty_input(self) -> None:
        """Matches the well-known Keccak-256 digest of empty input."""
        assert keccak256(b"") == Bytes32(
            "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_is_not_sha3(self) -> None:
        """Keccak-256 differs from NIST SHA3-256 on the same input."""
        assert bytes(keccak256(b"")) != hashlib.sha3_256(b"").digest()


class TestSelectors:
    """Tests for function selectors and event topics."""

    def test_erc20_transfer_selector(self) -> None:
        """Matches the ERC-20 transfer selector."""
        assert function_selector("transfer(address,uint256)") == Bytes4("0xa9059cbb")

    def test_erc20_transfer_topic(self) -> None:
        """Matches the ERC-20 Transfer event topic."""
        assert event_topic("Transfer(address,address,uint256)") == Bytes32(
            "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
        )
