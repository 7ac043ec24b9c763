"""
Relayer node orchestrator.

Wires together all services and runs them with structured concurrency.

One watcher per configured chain feeds a bounded queue. A single dispatcher
drains it, running one proof-and-submit pipeline per (event, destination).
An optional HTTP server exposes health, status and metrics.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from state_sync.subspecs.api import ApiServer, ApiServerConfig
from state_sync.subspecs.chain import DestinationChain, JsonRpcChainClient, SourceChain
from state_sync.subspecs.oracle import ProofOracleClient
from state_sync.subspecs.registry import ChainRegistry, RelayerConfig, RelayerSettings
from state_sync.subspecs.relayer import DispatchConfig, Dispatcher, ProofSource
from state_sync.subspecs.storage import EventJournal, InMemoryEventJournal, SQLiteEventJournal
from state_sync.subspecs.watcher import EventWatcher, ObservedWrite
from state_sync.types import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RelayerNode:
    """
    Relayer orchestrator.

    Runs every watcher, the dispatcher and the API server concurrently until
    shutdown is requested.
    """

    registry: ChainRegistry
    """Supported chains."""

    watchers: list[EventWatcher]
    """One watcher per source chain."""

    dispatcher: Dispatcher
    """Queue consumer running the relay pipelines."""

    journal: EventJournal
    """Record of delivered events, shared by the watchers."""

    api_server: ApiServer | None = field(default=None)
    """Optional API server for health, status and metrics."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    """Event signaling shutdown request."""

    _service_tasks: list[asyncio.Task[None]] = field(default_factory=list)
    """Tasks running the services, cancelled on shutdown."""

    @classmethod
    def wire(
        cls,
        registry: ChainRegistry,
        sources: Mapping[int, SourceChain],
        destinations: Mapping[int, DestinationChain],
        oracle: ProofSource,
        settings: RelayerSettings | None = None,
        journal: EventJournal | None = None,
        api_config: ApiServerConfig | None = None,
    ) -> RelayerNode:
        """
        Assemble a node from already-built chain and proof clients.

        Every registry chain is both watched and delivered to.
        """
        settings = settings or RelayerSettings()
        journal = journal if journal is not None else InMemoryEventJournal()
        queue: asyncio.Queue[ObservedWrite] = asyncio.Queue(maxsize=settings.queue_size)

        watchers = [
            EventWatcher(
                entry=entry,
                client=sources[entry.chain_id],
                queue=queue,
                poll_interval=settings.poll_interval,
                confirmations=settings.confirmations,
                start_block=settings.start_block,
                max_block_range=settings.max_block_range,
                journal=journal,
            )
            for entry in registry
        ]

        dispatcher = Dispatcher(
            registry=registry,
            oracle=oracle,
            destinations=destinations,
            queue=queue,
            config=DispatchConfig.from_settings(settings),
        )

        node = cls(
            registry=registry,
            watchers=watchers,
            dispatcher=dispatcher,
            journal=journal,
        )
        if api_config is not None:
            node.api_server = ApiServer(config=api_config, status_getter=node.status)
        return node

    @classmethod
    def from_config(
        cls,
        config: RelayerConfig,
        journal_path: Path | str | None = None,
        api_config: ApiServerConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RelayerNode:
        """
        Create a fully-wired node talking to real endpoints.

        Args:
            config: Validated relayer configuration.
            journal_path: SQLite file persisting delivered events. In memory if None.
            api_config: API server settings. No server if None.
            transport: HTTP transport override shared by all clients.

        Raises:
            ConfigurationError: If the journal file cannot be opened.
        """
        registry = config.registry()
        journal: EventJournal = InMemoryEventJournal()
        if journal_path is not None:
            try:
                journal = SQLiteEventJournal(journal_path)
            except sqlite3.Error as exc:
                raise ConfigurationError(f"Cannot open journal {journal_path}: {exc}") from exc

        clients = {
            entry.chain_id: JsonRpcChainClient(
                entry=entry,
                sender=config.relayer.sender,
                transport=transport,
            )
            for entry in registry
        }
        oracle = ProofOracleClient.from_settings(config.oracle, transport=transport)

        return cls.wire(
            registry=registry,
            sources=clients,
            destinations=clients,
            oracle=oracle,
            settings=config.relayer,
            journal=journal,
            api_config=api_config,
        )

    def status(self) -> dict[str, Any]:
        """Snapshot of relayer progress for the status endpoint."""
        return {
            "watchers": {
                str(watcher.chain_id): watcher.next_block for watcher in self.watchers
            },
            "queueDepth": self.dispatcher.queue.qsize(),
            "inFlight": self.dispatcher.in_flight,
            "outcomes": {
                status.value: count for status, count in self.dispatcher.outcome_counts.items()
            },
        }

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        """
        Run all services until shutdown.

        Args:
            install_signal_handlers: Whether to handle SIGINT/SIGTERM.
                Disable for testing or non-main threads.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        if self.api_server is not None:
            await self.api_server.start()

        logger.info(
            f"Relayer starting: chains={[str(entry) for entry in self.registry]} "
            f"max_in_flight={self.dispatcher.config.max_in_flight}"
        )

        # Run services concurrently.
        #
        # A separate task monitors the shutdown signal.
        # When triggered, it stops all services.
        # The finally block ensures the journal is closed on shutdown.
        try:
            async with asyncio.TaskGroup() as tg:
                self._service_tasks = [tg.create_task(watcher.run()) for watcher in self.watchers]
                self._service_tasks.append(tg.create_task(self.dispatcher.run()))
                if self.api_server is not None:
                    self._service_tasks.append(tg.create_task(self.api_server.run()))
                tg.create_task(self._wait_shutdown())
        finally:
            self.journal.close()
            logger.info("Relayer stopped")

    def _install_signal_handlers(self) -> None:
        """
        Install signal handlers for graceful shutdown.

        Handles SIGINT (Ctrl+C) and SIGTERM (process termination).

        Silently ignores errors if handlers cannot be installed.
        This happens in non-main threads or embedded contexts.
        """
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown.set)
        except (ValueError, RuntimeError):
            # Cannot add handlers outside main thread.
            pass

    async def _wait_shutdown(self) -> None:
        """
        Wait for shutdown signal then stop services.

        Loops blocked on the queue or a sleep are cancelled. In-flight
        pipelines are abandoned: their events stay journaled but are not
        retried after a restart.
        """
        await self._shutdown.wait()
        logger.info("Shutdown requested")

        for watcher in self.watchers:
            watcher.stop()
        self.dispatcher.stop()
        if self.api_server is not None:
            self.api_server.stop()
            # Let the server cleanup run before its task is cancelled.
            await asyncio.sleep(0)

        for task in self._service_tasks:
            task.cancel()

    def stop(self) -> None:
        """
        Request graceful shutdown.

        Signals the node to stop all services and exit.
        """
        self._shutdown.set()

    @property
    def is_running(self) -> bool:
        """Check if node is currently running."""
        return not self._shutdown.is_set()
