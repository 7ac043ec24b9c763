"""
Cross-chain state sync relayer CLI entry point.

Watches every configured chain for writes to the state sync contract and
relays each one, with a proof of its inclusion, to all other chains.

Usage::

    python -m state_sync --config relayer.yaml
    python -m state_sync --config relayer.yaml --journal relayer.db --api-port 8545

Options:
    --config     Path to relayer YAML configuration (required)
    --journal    SQLite file remembering relayed events across restarts
    --api-port   Serve /health, /status and /metrics on this port
    --api-host   Address for the API server (default: 0.0.0.0)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from state_sync.subspecs.api import ApiServerConfig
from state_sync.subspecs.node import RelayerNode
from state_sync.subspecs.registry import load_config
from state_sync.types import ConfigurationError

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{timestamp} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the relayer with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def create_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="state_sync",
        description="Cross-chain state sync relayer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Path to relayer YAML configuration",
    )
    parser.add_argument(
        "--journal",
        type=Path,
        default=None,
        help="SQLite file remembering relayed events across restarts",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Serve /health, /status and /metrics on this port",
    )
    parser.add_argument(
        "--api-host",
        default="0.0.0.0",
        help="Address for the API server (default: 0.0.0.0)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    return parser


async def run_relayer(node: RelayerNode) -> None:
    """Run the relayer until interrupted."""
    logger.info("Starting relayer...")
    await node.run()


def main(argv: Sequence[str] | None = None) -> int:
    """
    CLI entry point.

    Returns:
        Process exit status: 0 on clean shutdown, 1 on configuration errors.
    """
    args = create_parser().parse_args(argv)
    setup_logging(args.verbose, args.no_color)

    api_config = None
    if args.api_port is not None:
        api_config = ApiServerConfig(host=args.api_host, port=args.api_port)

    try:
        config = load_config(args.config)
        node = RelayerNode.from_config(config, journal_path=args.journal, api_config=api_config)
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc.message}")
        return 1

    try:
        asyncio.run(run_relayer(node))
    except KeyboardInterrupt:
        # asyncio.run() handles task cancellation, but we log for clarity.
        logger.info("Shutting down...")

    return 0


if __name__ == "__main__":
    sys.exit(main())
