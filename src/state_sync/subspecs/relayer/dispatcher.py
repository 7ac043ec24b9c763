"""
Relay dispatcher.

Turns each observed write into one task per destination and runs every task
as an independent pipeline:

    acquire proof --> submit to destination --> outcome

Retry Policy
------------
+---------------------+-----------------------------------------------+
| Failure             | Handling                                      |
+=====================+===============================================+
| OracleUnavailable   | retried up to `proof_attempts`, with backoff  |
| ProofTimeout        | retried up to `proof_attempts`, with backoff  |
| ProofFailed         | terminal, destination never called            |
| TransportError      | retried up to `submit_attempts`, with backoff |
| AlreadyApplied      | terminal, benign                              |
| StaleVersion        | terminal, benign                              |
| other rejections    | terminal, logged as errors                    |
+---------------------+-----------------------------------------------+

A pipeline never raises. Its failure never affects other destinations of the
same event, or other events.

Ordering
--------
Pipelines for different events may finish in any order. Destinations use the
version check to drop writes that arrive after newer ones.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from state_sync.subspecs.chain import DestinationChain
from state_sync.subspecs.metrics import (
    pipelines_in_flight,
    proof_latency,
    proof_outcomes,
    proofs_requested,
    queue_depth,
    submissions,
)
from state_sync.subspecs.oracle.types import Locator
from state_sync.subspecs.registry import ChainRegistry
from state_sync.subspecs.watcher import ObservedWrite
from state_sync.types import (
    AlreadyApplied,
    ConfigurationError,
    OracleError,
    OracleUnavailable,
    ProofFailed,
    ProofTimeout,
    StaleVersion,
    TransportError,
    ValidationError,
)

from .types import DispatchConfig, SyncTask, TaskOutcome, TaskStatus

logger = logging.getLogger(__name__)


class ProofSource(Protocol):
    """Anything that can turn an event locator into proof bytes."""

    async def await_proof(self, locator: Locator) -> bytes:
        """Request a proof and wait until it is ready."""
        ...


@dataclass(slots=True)
class _ProofAttempts:
    """Failure of proof acquisition after retries."""

    error: OracleError
    attempts: int


@dataclass(slots=True)
class Dispatcher:
    """Consumes observed writes and relays each one to every other chain."""

    registry: ChainRegistry
    """Supported chains."""

    oracle: ProofSource
    """Proof service."""

    destinations: Mapping[int, DestinationChain]
    """Submission access per chain id."""

    queue: asyncio.Queue[ObservedWrite]
    """Queue fed by the watchers."""

    config: DispatchConfig = field(default_factory=DispatchConfig)
    """Retry and concurrency policy."""

    outcome_counts: Counter[TaskStatus] = field(default_factory=Counter)
    """Pipelines finished, by status."""

    _semaphore: asyncio.Semaphore = field(init=False, repr=False)
    """Bounds concurrently running pipelines."""

    _tasks: set[asyncio.Task[TaskOutcome]] = field(default_factory=set, repr=False)
    """Pipelines currently running."""

    _running: bool = field(default=False, repr=False)
    """Whether the consumer loop is running."""

    def __post_init__(self) -> None:
        missing = [cid for cid in self.registry.chain_ids if cid not in self.destinations]
        if missing:
            raise ConfigurationError(f"No destination client for chains {missing}")
        self._semaphore = asyncio.Semaphore(self.config.max_in_flight)

    @property
    def in_flight(self) -> int:
        """Number of pipelines currently running."""
        return len(self._tasks)

    def tasks_for(self, observed: ObservedWrite) -> list[SyncTask]:
        """Derive one task per destination of an observed write."""
        return [
            SyncTask.for_destination(observed, entry.chain_id)
            for entry in self.registry.destinations_for(observed.source_chain_id)
        ]

    async def run(self) -> None:
        """
        Main loop - drain the queue and spawn pipelines.

        Waits for a free pipeline slot before spawning each task, so a full
        set of in-flight pipelines stops the queue from draining and in turn
        blocks the watchers.
        """
        self._running = True
        try:
            while self._running:
                observed = await self.queue.get()
                queue_depth.set(self.queue.qsize())
                try:
                    for task in self.tasks_for(observed):
                        await self._semaphore.acquire()
                        pipeline = asyncio.create_task(self._run_pipeline(task, observed))
                        self._tasks.add(pipeline)
                        pipeline.add_done_callback(self._finished)
                finally:
                    self.queue.task_done()
        finally:
            for pipeline in list(self._tasks):
                pipeline.cancel()

    def stop(self) -> None:
        """Request the consumer loop to exit after the current event."""
        self._running = False

    async def join(self) -> None:
        """Wait until the queue is drained and every pipeline has finished."""
        await self.queue.join()
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def dispatch(self, observed: ObservedWrite) -> list[TaskOutcome]:
        """Relay one write to every destination and collect the outcomes."""
        return list(
            await asyncio.gather(
                *(self.process(task, observed) for task in self.tasks_for(observed))
            )
        )

    async def _run_pipeline(self, task: SyncTask, observed: ObservedWrite) -> TaskOutcome:
        try:
            return await self.process(task, observed)
        finally:
            self._semaphore.release()

    def _finished(self, pipeline: asyncio.Task[TaskOutcome]) -> None:
        self._tasks.discard(pipeline)
        if pipeline.cancelled():
            return
        exc = pipeline.exception()
        if exc is not None:
            logger.error(f"Relay pipeline crashed: {exc!r}", exc_info=exc)

    async def process(self, task: SyncTask, observed: ObservedWrite) -> TaskOutcome:
        """
        Run one pipeline to completion.

        Every delivery failure is mapped to a terminal status. Only a
        ConfigurationError propagates, raised by a destination that has no
        submitting account; loading configuration rejects that setup at startup.
        """
        pipelines_in_flight.inc()
        try:
            outcome = await self._process(task, observed)
        finally:
            pipelines_in_flight.dec()

        self.outcome_counts[outcome.status] += 1
        # Pipelines that never got a proof are counted by proof_outcomes only.
        if outcome.attempts > 0:
            destination = self.registry.get(task.destination_chain_id)
            submissions.labels(destination=destination.name, outcome=outcome.status.value).inc()
        return outcome

    async def _process(self, task: SyncTask, observed: ObservedWrite) -> TaskOutcome:
        proof = await self._acquire_proof(task)
        if isinstance(proof, _ProofAttempts):
            return self._proof_failure(task, proof)

        proof_bytes, proof_attempts = proof
        destination = self.destinations[task.destination_chain_id]

        for attempt in range(1, self.config.submit_attempts + 1):
            logger.info(f"task={task} proof submitted (attempt {attempt})")
            try:
                receipt = await destination.submit_proof(proof_bytes)
            except ValidationError as exc:
                return self._rejection(task, exc, proof_attempts, attempt)
            except TransportError as exc:
                if attempt == self.config.submit_attempts:
                    logger.error(
                        f"task={task} submission failed after {attempt} attempts: {exc.message}"
                    )
                    return TaskOutcome(
                        task=task,
                        status=TaskStatus.SUBMIT_FAILED,
                        detail=exc.message,
                        proof_attempts=proof_attempts,
                        attempts=attempt,
                    )
                delay = self.config.delay(attempt)
                logger.warning(
                    f"task={task} submission failed, retrying in {delay:.1f}s: {exc.message}"
                )
                await asyncio.sleep(delay)
                continue

            logger.info(
                f"task={task} proof confirmed: block={receipt.block_number} "
                f"version={observed.event.version}"
            )
            return TaskOutcome(
                task=task,
                status=TaskStatus.APPLIED,
                detail=receipt.transaction_hash.hex(),
                proof_attempts=proof_attempts,
                attempts=attempt,
            )

        raise AssertionError("unreachable: submit_attempts must be at least 1")

    async def _acquire_proof(self, task: SyncTask) -> tuple[bytes, int] | _ProofAttempts:
        """Fetch a proof, retrying transient proof service failures."""
        for attempt in range(1, self.config.proof_attempts + 1):
            logger.info(f"task={task} proof requested (attempt {attempt})")
            proofs_requested.inc()
            started = time.monotonic()

            try:
                proof = await self.oracle.await_proof(task.locator)
            except ProofFailed as exc:
                proof_outcomes.labels(outcome="failed").inc()
                return _ProofAttempts(error=exc, attempts=attempt)
            except (OracleUnavailable, ProofTimeout) as exc:
                label = "timeout" if isinstance(exc, ProofTimeout) else "unavailable"
                proof_outcomes.labels(outcome=label).inc()
                if attempt == self.config.proof_attempts:
                    return _ProofAttempts(error=exc, attempts=attempt)
                delay = self.config.delay(attempt)
                logger.warning(f"task={task} proof {label}, retrying in {delay:.1f}s: {exc}")
                await asyncio.sleep(delay)
                continue

            proof_outcomes.labels(outcome="complete").inc()
            proof_latency.observe(time.monotonic() - started)
            logger.info(f"task={task} proof complete ({len(proof)} bytes)")
            return proof, attempt

        raise AssertionError("unreachable: proof_attempts must be at least 1")

    @staticmethod
    def _proof_failure(task: SyncTask, failure: _ProofAttempts) -> TaskOutcome:
        error = failure.error
        if isinstance(error, ProofFailed):
            status = TaskStatus.PROOF_FAILED
        elif isinstance(error, ProofTimeout):
            status = TaskStatus.PROOF_TIMEOUT
        else:
            status = TaskStatus.ORACLE_UNAVAILABLE

        logger.error(f"task={task} {status.value} after {failure.attempts} attempts: {error}")
        return TaskOutcome(
            task=task,
            status=status,
            detail=str(error),
            proof_attempts=failure.attempts,
        )

    @staticmethod
    def _rejection(
        task: SyncTask,
        exc: ValidationError,
        proof_attempts: int,
        attempt: int,
    ) -> TaskOutcome:
        if isinstance(exc, AlreadyApplied):
            status = TaskStatus.ALREADY_APPLIED
        elif isinstance(exc, StaleVersion):
            status = TaskStatus.STALE_VERSION
        else:
            status = TaskStatus.REJECTED

        if exc.is_benign:
            logger.info(f"task={task} {status.value}: {exc.message}")
        else:
            logger.error(f"task={task} rejected by destination: {exc.message}")

        return TaskOutcome(
            task=task,
            status=status,
            detail=exc.message,
            proof_attempts=proof_attempts,
            attempts=attempt,
        )
