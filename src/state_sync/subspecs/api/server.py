"""
API server for relayer health, status, and metrics endpoints.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /status - Watcher cursors, queue depth, in-flight pipelines and outcome counts
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST

from state_sync.subspecs.metrics import generate_metrics

logger = logging.getLogger(__name__)


def _no_status() -> dict[str, Any] | None:
    """Default status getter that returns None."""
    return None


async def _handle_health(_request: web.Request) -> web.Response:
    """Handle health check endpoint."""
    return web.json_response({"status": "healthy", "service": "state-sync-relayer"})


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the API server."""

    host: str = "0.0.0.0"
    """Host address to bind to."""

    port: int = 8545
    """Port to listen on."""

    enabled: bool = True
    """Whether the API server is enabled."""


@dataclass(slots=True)
class ApiServer:
    """
    HTTP API server for relayer monitoring.

    Uses aiohttp to handle HTTP protocol details efficiently.
    """

    config: ApiServerConfig
    """Server configuration."""

    status_getter: Callable[[], dict[str, Any] | None] = _no_status
    """Callable that returns a JSON-serializable status snapshot."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes."""
        app = web.Application()
        app.add_routes(
            [
                web.get("/health", _handle_health),
                web.get("/metrics", _handle_metrics),
                web.get("/status", self._handle_status),
            ]
        )
        return app

    async def start(self) -> None:
        """Start the API server in the background."""
        if not self.config.enabled:
            logger.info("API server is disabled")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info(f"API server listening on {self.config.host}:{self.config.port}")

    async def run(self) -> None:
        """
        Run the API server until shutdown.

        This method blocks until stop() is called.
        """
        await self.start()

        # Keep running until stopped
        while self._runner is not None:
            await asyncio.sleep(1)

    def stop(self) -> None:
        """Request graceful shutdown."""
        if self._runner is not None:
            asyncio.create_task(self._async_stop())

    async def _async_stop(self) -> None:
        """Gracefully stop the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")

    async def _handle_status(self, _request: web.Request) -> web.Response:
        """
        Handle relayer status endpoint.

        Response format:
        {
            "watchers": {"<chain id>": <next block>, ...},
            "queueDepth": <events waiting>,
            "inFlight": <pipelines running>,
            "outcomes": {"<status>": <count>, ...}
        }
        """
        status = self.status_getter()
        if status is None:
            raise web.HTTPServiceUnavailable(reason="Relayer not initialized")
        return web.json_response(status)
