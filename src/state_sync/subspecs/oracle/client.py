"""
Proof service client.

The proof service attests that a log was emitted on a source chain. It works
asynchronously: a request returns a job id, and the proof is collected by
polling until the job completes or fails.

Wire Protocol
-------------
JSON-RPC 2.0 over HTTPS, authenticated with a bearer token.

- `log_requestProof(chainId, blockNumber, txIndex, localLogIndex)` -> job id
- `log_queryProof(jobId)` -> ``{"status": ..., "proof": base64, "error": ...}``

Status is one of `pending`, `generating`, `complete` or `error`.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from state_sync.types import OracleUnavailable, ProofFailed, ProofTimeout

from .config import (
    DEFAULT_FIRST_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT,
    OracleSettings,
)
from .types import Locator, ProofResult, ProofStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProofOracleClient:
    """
    Client for the proof service.

    Stateless apart from the in-flight job table: concurrent `await_proof`
    calls share one client safely.
    """

    url: str
    """JSON-RPC endpoint."""

    api_key: str
    """Bearer token."""

    timeout: float = DEFAULT_TIMEOUT
    """HTTP request timeout in seconds."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    """Default seconds between polls."""

    first_delay: float = DEFAULT_FIRST_DELAY
    """Default seconds before the first poll."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    """Default polls per job."""

    transport: httpx.AsyncBaseTransport | None = None
    """Optional transport override, used in tests."""

    _in_flight: dict[int, Locator] = field(default_factory=dict)
    """Jobs currently being awaited, by job id."""

    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))
    """Request id generator."""

    @classmethod
    def from_settings(
        cls,
        settings: OracleSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProofOracleClient:
        """Build a client from configuration."""
        return cls(
            url=settings.url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            poll_interval=settings.poll_interval,
            first_delay=settings.first_delay,
            max_attempts=settings.max_attempts,
            transport=transport,
        )

    @property
    def in_flight(self) -> dict[int, Locator]:
        """Snapshot of jobs currently being awaited."""
        return dict(self._in_flight)

    async def _call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC request.

        Raises:
            OracleUnavailable: On network failure, non-2xx status, JSON-RPC
                error or malformed reply.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.RequestError as exc:
            raise OracleUnavailable(f"Network error calling {method}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise OracleUnavailable(
                f"HTTP {exc.response.status_code} calling {method}: {exc.response.text[:200]}"
            ) from exc
        except ValueError as exc:
            raise OracleUnavailable(f"Malformed reply to {method}") from exc

        if not isinstance(body, dict):
            raise OracleUnavailable(f"Malformed reply to {method}")
        if body.get("error") is not None:
            raise OracleUnavailable(f"{method} failed: {body['error']}")
        if "result" not in body:
            raise OracleUnavailable(f"Reply to {method} has no result")
        return body["result"]

    async def request_proof(self, locator: Locator) -> int:
        """
        Ask the proof service to prove the log at `locator`.

        Returns:
            The job id to poll.
        """
        result = await self._call("log_requestProof", locator.to_params())

        if isinstance(result, str) and result.isdigit():
            result = int(result)
        if not isinstance(result, int) or isinstance(result, bool):
            raise OracleUnavailable(f"Malformed job id: {result!r}")
        return result

    async def poll_proof(self, job_id: int) -> ProofResult:
        """
        Query the state of a proof job.

        Raises:
            OracleUnavailable: If the reply cannot be interpreted.
            ProofFailed: If the service reports a proof that is not valid base64.
        """
        result = await self._call("log_queryProof", [job_id])
        if not isinstance(result, dict):
            raise OracleUnavailable(f"Malformed proof status: {result!r}")

        try:
            status = ProofStatus(result.get("status"))
        except ValueError as exc:
            raise OracleUnavailable(f"Unknown proof status: {result.get('status')!r}") from exc

        if status == ProofStatus.COMPLETE:
            encoded = result.get("proof")
            if not isinstance(encoded, str):
                raise ProofFailed(f"job {job_id} complete without a proof")
            try:
                proof = base64.b64decode(encoded, validate=True)
            except binascii.Error as exc:
                raise ProofFailed(f"job {job_id} returned an undecodable proof") from exc
            return ProofResult(status=status, proof=proof)

        if status == ProofStatus.ERROR:
            return ProofResult(status=status, error=str(result.get("error") or "unknown error"))

        return ProofResult(status=status)

    async def await_proof(
        self,
        locator: Locator,
        poll_interval: float | None = None,
        first_delay: float | None = None,
        max_attempts: int | None = None,
    ) -> bytes:
        """
        Request a proof and poll until it is ready.

        Args:
            locator: Event to prove.
            poll_interval: Seconds between polls. Defaults to the client setting.
            first_delay: Seconds before the first poll. Defaults to the client setting.
            max_attempts: Polls before giving up. Defaults to the client setting.

        Returns:
            The proof bytes.

        Raises:
            OracleUnavailable: If the service cannot be reached.
            ProofFailed: As soon as the service reports the job failed.
            ProofTimeout: If the job is still pending after all polls.
        """
        interval = self.poll_interval if poll_interval is None else poll_interval
        delay = self.first_delay if first_delay is None else first_delay
        attempts = self.max_attempts if max_attempts is None else max_attempts

        job_id = await self.request_proof(locator)
        logger.info(f"Proof requested for {locator}: job={job_id}")

        self._in_flight[job_id] = locator
        try:
            await asyncio.sleep(delay)

            for attempt in range(1, attempts + 1):
                result = await self.poll_proof(job_id)

                if result.is_complete:
                    assert result.proof is not None
                    logger.info(f"Proof complete for {locator}: job={job_id} attempts={attempt}")
                    return result.proof

                if result.is_failed:
                    raise ProofFailed(result.error or "unknown error")

                logger.debug(
                    f"Proof polling for {locator}: job={job_id} {result.status.value} "
                    f"(attempt {attempt}/{attempts})"
                )
                if attempt < attempts:
                    await asyncio.sleep(interval)

            raise ProofTimeout(job_id, attempts)
        finally:
            self._in_flight.pop(job_id, None)
