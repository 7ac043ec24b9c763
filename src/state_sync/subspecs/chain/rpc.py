"""
JSON-RPC chain client.

Talks to a standard Ethereum node over HTTP. Reads use `eth_blockNumber`,
`eth_getLogs`, `eth_getTransactionReceipt` and `eth_call`. Proof submission
simulates the call first, so a store rejection surfaces as its revert reason
before any gas is spent, then sends it with `eth_sendTransaction` and waits
for the receipt.

Signing is left to the node: the configured sender must be an account the
node manages.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from state_sync.abi import ABIDecodingError, decode, encode, function_selector
from state_sync.subspecs.registry import ChainEntry
from state_sync.subspecs.store import UpdateEvent
from state_sync.types import (
    REVERT_REASONS,
    Address,
    Bytes32,
    ConfigurationError,
    InvalidProof,
    TransportError,
    ValidationError,
)

from .types import Log, Receipt, SubmissionReceipt, parse_data, parse_quantity

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
"""HTTP request timeout in seconds."""

SET_VALUE_FROM_SOURCE = function_selector("setValueFromSource(bytes)")
"""Selector of the destination entry point."""

GET_VALUE = function_selector("getValue(address,string)")
"""Selector of the value getter."""

ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")
"""Selector of Solidity's `Error(string)` revert payload."""


def revert_to_error(message: str, data: Any) -> ValidationError | None:
    """
    Map a JSON-RPC execution error to a store rejection.

    Nodes report reverts either as an `Error(string)` payload in `data` or as
    text in `message`, depending on the client. Both are checked.

    Returns:
        The matching rejection, or None if the error is not a revert.
    """
    reason: str | None = None

    if isinstance(data, str) and data.startswith("0x"):
        try:
            payload = parse_data(data)
        except ValueError:
            payload = b""
        if payload[:4] == ERROR_STRING_SELECTOR:
            try:
                (reason,) = decode(["string"], payload[4:])
            except ABIDecodingError:
                reason = None

    if reason is None:
        for known in REVERT_REASONS:
            if known in message:
                reason = known
                break

    if reason is not None and reason in REVERT_REASONS:
        return REVERT_REASONS[reason]()

    # Any other execution revert of the store is a rejection we cannot name.
    if reason is not None or "revert" in message.lower():
        return InvalidProof(f"{InvalidProof.REASON}: {reason or message}")

    return None


@dataclass(slots=True)
class JsonRpcChainClient:
    """
    Source and destination access to one chain through its JSON-RPC endpoint.

    A fresh HTTP client is opened per call. A custom transport may be
    injected for testing.
    """

    entry: ChainEntry
    """Registry entry of the chain."""

    sender: Address | None = None
    """Node-managed account used to submit proofs. Required for submission only."""

    timeout: float = DEFAULT_TIMEOUT
    """HTTP request timeout in seconds."""

    receipt_poll_interval: float = 1.0
    """Seconds between receipt lookups after sending a transaction."""

    receipt_timeout: float = 120.0
    """Seconds to wait for a submitted transaction to be mined."""

    transport: httpx.AsyncBaseTransport | None = None
    """Optional transport override."""

    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))
    """Request id generator."""

    @property
    def chain_id(self) -> int:
        """Identifier of the chain."""
        return self.entry.chain_id

    async def _call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC request.

        Raises:
            ValidationError: If the node reports a store revert.
            TransportError: On network failure, HTTP error or malformed reply.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.entry.rpc_endpoint, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.RequestError as exc:
            raise TransportError(f"{self.entry}: network error calling {method}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{self.entry}: HTTP {exc.response.status_code} calling {method}"
            ) from exc
        except ValueError as exc:
            raise TransportError(f"{self.entry}: malformed reply to {method}") from exc

        if not isinstance(body, dict):
            raise TransportError(f"{self.entry}: malformed reply to {method}")

        error = body.get("error")
        if error is not None:
            message = str(error.get("message", "")) if isinstance(error, dict) else str(error)
            data = error.get("data") if isinstance(error, dict) else None
            rejection = revert_to_error(message, data)
            if rejection is not None:
                raise rejection
            raise TransportError(f"{self.entry}: {method} failed: {message}")

        if "result" not in body:
            raise TransportError(f"{self.entry}: reply to {method} has no result")
        return body["result"]

    async def block_number(self) -> int:
        """Return the number of the most recent block."""
        result = await self._call("eth_blockNumber", [])
        try:
            return parse_quantity(result)
        except ValueError as exc:
            raise TransportError(f"{self.entry}: bad block number {result!r}") from exc

    async def get_logs(
        self,
        address: Address,
        topic: Bytes32,
        from_block: int,
        to_block: int,
    ) -> list[Log]:
        """Return logs of `address` with topic 0 `topic` in an inclusive block range."""
        params = [
            {
                "address": address.to_hex(),
                "topics": [topic.to_hex()],
                "fromBlock": hex(from_block),
                "toBlock": hex(to_block),
            }
        ]
        result = await self._call("eth_getLogs", params)
        try:
            return [Log.from_rpc(raw) for raw in result]
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(f"{self.entry}: malformed logs: {exc}") from exc

    async def get_transaction_receipt(self, transaction_hash: Bytes32) -> Receipt | None:
        """Return the receipt of a mined transaction, or None if not mined yet."""
        result = await self._call("eth_getTransactionReceipt", [transaction_hash.to_hex()])
        if result is None:
            return None
        try:
            return Receipt.from_rpc(result)
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(f"{self.entry}: malformed receipt: {exc}") from exc

    async def get_value(self, owner: Address, key: str) -> bytes:
        """Call `getValue(owner, key)` on the store contract."""
        calldata = bytes(GET_VALUE) + encode(["address", "string"], [owner, key])
        result = await self._call("eth_call", [self._call_object(calldata), "latest"])
        try:
            (value,) = decode(["bytes"], parse_data(result))
        except (ValueError, ABIDecodingError) as exc:
            raise TransportError(f"{self.entry}: malformed getValue reply: {exc}") from exc
        return value

    async def submit_proof(self, proof: bytes) -> SubmissionReceipt:
        """
        Submit a proof to the store and wait until it is mined.

        Raises:
            ConfigurationError: If no sender account is configured.
            ValidationError: If the store rejects the proof.
            TransportError: If the node is unreachable or the transaction is
                not mined in time.
        """
        if self.sender is None:
            raise ConfigurationError(f"{self.entry}: no sender account configured")

        calldata = bytes(SET_VALUE_FROM_SOURCE) + encode(["bytes"], [proof])
        call = self._call_object(calldata)

        # Dry run. A rejection surfaces here with its revert reason.
        await self._call("eth_call", [call, "latest"])

        result = await self._call("eth_sendTransaction", [call])
        try:
            tx_hash = Bytes32(parse_data(result))
        except ValueError as exc:
            raise TransportError(f"{self.entry}: bad transaction hash {result!r}") from exc

        logger.info(f"Proof submitted to {self.entry}: tx={tx_hash.hex()[:16]}")

        receipt = await self._wait_for_receipt(tx_hash)

        if not receipt.succeeded:
            # The state moved between the dry run and inclusion. Replay the
            # call to recover the revert reason.
            await self._call("eth_call", [call, "latest"])
            raise TransportError(f"{self.entry}: transaction {tx_hash.hex()[:16]} reverted")

        update = None
        for log in receipt.logs:
            if log.address == self.entry.contract_address:
                update = UpdateEvent.from_log(log.topics, log.data)
                if update is not None:
                    break

        logger.info(f"Proof confirmed on {self.entry}: block={receipt.block_number}")

        return SubmissionReceipt(
            chain_id=self.chain_id,
            transaction_hash=tx_hash,
            block_number=receipt.block_number,
            update=update,
        )

    async def _wait_for_receipt(self, tx_hash: Bytes32) -> Receipt:
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            if time.monotonic() >= deadline:
                raise TransportError(
                    f"{self.entry}: transaction {tx_hash.hex()[:16]} not mined "
                    f"within {self.receipt_timeout}s"
                )
            await asyncio.sleep(self.receipt_poll_interval)

    def _call_object(self, calldata: bytes) -> dict[str, str]:
        call = {"to": self.entry.contract_address.to_hex(), "data": "0x" + calldata.hex()}
        if self.sender is not None:
            call["from"] = self.sender.to_hex()
        return call
