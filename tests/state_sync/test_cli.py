"""Tests for the relayer command line."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from state_sync.__main__ import create_parser, main
from state_sync.subspecs.node import RelayerNode
from state_sync.subspecs.storage import InMemoryEventJournal, SQLiteEventJournal
from tests.state_sync.helpers import DEST_CHAIN_ID, ORACLE_URL, SOURCE_CHAIN_ID, TEST_API_KEY

SENDER_BLOCK = f'relayer:\n  sender: "0x{"11" * 20}"\n'

CONFIG = f"""
oracle:
  url: {ORACLE_URL}
  api_key: {TEST_API_KEY}
{SENDER_BLOCK}chains:
- name: optimism-sepolia
  chain_id: {SOURCE_CHAIN_ID}
  rpc_endpoint: http://optimism.test
  contract_address: "0x{"a1" * 20}"
- name: base-sepolia
  chain_id: {DEST_CHAIN_ID}
  rpc_endpoint: http://base.test
  contract_address: "0x{"b2" * 20}"
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """A valid configuration file."""
    path = tmp_path / "relayer.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_config_required(self) -> None:
        """Running without --config is a usage error."""
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_defaults(self) -> None:
        """Only the configuration path is mandatory."""
        args = create_parser().parse_args(["--config", "relayer.yaml"])

        assert args.config == Path("relayer.yaml")
        assert args.journal is None
        assert args.api_port is None
        assert args.api_host == "0.0.0.0"
        assert not args.verbose
        assert not args.no_color

    def test_all_options(self) -> None:
        """Every option is parsed to its type."""
        args = create_parser().parse_args(
            [
                "--config",
                "relayer.yaml",
                "--journal",
                "relayer.db",
                "--api-port",
                "9000",
                "--api-host",
                "127.0.0.1",
                "-v",
                "--no-color",
            ]
        )

        assert args.journal == Path("relayer.db")
        assert args.api_port == 9000
        assert args.api_host == "127.0.0.1"
        assert args.verbose
        assert args.no_color


class TestMain:
    """Tests for the entry point."""

    def test_missing_config_file(self, tmp_path: Path) -> None:
        """An unreadable configuration exits with status 1."""
        with patch("state_sync.__main__.setup_logging"):
            status = main(["--config", str(tmp_path / "missing.yaml")])

        assert status == 1

    def test_invalid_config_file(self, tmp_path: Path) -> None:
        """An invalid configuration exits with status 1 before anything starts."""
        path = tmp_path / "relayer.yaml"
        path.write_text("chains: []\n", encoding="utf-8")

        with (
            patch("state_sync.__main__.setup_logging"),
            patch("state_sync.__main__.run_relayer", new_callable=AsyncMock) as run,
        ):
            status = main(["--config", str(path)])

        assert status == 1
        run.assert_not_called()

    def test_config_without_sender(self, tmp_path: Path) -> None:
        """A configuration with no submitting account exits with status 1."""
        path = tmp_path / "relayer.yaml"
        path.write_text(CONFIG.replace(SENDER_BLOCK, ""), encoding="utf-8")

        with (
            patch("state_sync.__main__.setup_logging"),
            patch("state_sync.__main__.run_relayer", new_callable=AsyncMock) as run,
        ):
            status = main(["--config", str(path)])

        assert status == 1
        run.assert_not_called()

    def test_unopenable_journal(self, config_path: Path, tmp_path: Path) -> None:
        """A journal path in a missing directory exits with status 1."""
        journal = tmp_path / "missing" / "journal.db"

        with (
            patch("state_sync.__main__.setup_logging"),
            patch("state_sync.__main__.run_relayer", new_callable=AsyncMock) as run,
        ):
            status = main(["--config", str(config_path), "--journal", str(journal)])

        assert status == 1
        run.assert_not_called()
        assert not journal.parent.exists()

    def test_runs_wired_node(self, config_path: Path) -> None:
        """A valid configuration builds a node with an in-memory journal and no API."""
        with (
            patch("state_sync.__main__.setup_logging"),
            patch("state_sync.__main__.run_relayer", new_callable=AsyncMock) as run,
        ):
            status = main(["--config", str(config_path)])

        assert status == 0
        (node,) = run.await_args.args
        assert isinstance(node, RelayerNode)
        assert isinstance(node.journal, InMemoryEventJournal)
        assert node.api_server is None

    def test_journal_and_api_options(self, config_path: Path, tmp_path: Path) -> None:
        """The journal path and API flags reach the node."""
        with (
            patch("state_sync.__main__.setup_logging"),
            patch("state_sync.__main__.run_relayer", new_callable=AsyncMock) as run,
        ):
            status = main(
                [
                    "--config",
                    str(config_path),
                    "--journal",
                    str(tmp_path / "relayer.db"),
                    "--api-port",
                    "18548",
                    "--api-host",
                    "127.0.0.1",
                ]
            )

        assert status == 0
        (node,) = run.await_args.args
        assert isinstance(node.journal, SQLiteEventJournal)
        assert node.api_server is not None
        assert (node.api_server.config.host, node.api_server.config.port) == ("127.0.0.1", 18548)
        node.journal.close()
