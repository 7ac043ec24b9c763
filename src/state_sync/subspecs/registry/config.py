"""
Relayer configuration loader.

Loads the relayer's YAML configuration:

    oracle:
      url: https://proof.testnet.polymer.zone
      api_key: ${POLYMER_API_KEY}
    relayer:
      sender: ${RELAYER_ADDRESS}
      confirmations: 0
    chains:
    - name: optimism-sepolia
      chain_id: 11155420
      rpc_endpoint: ${OPTIMISM_SEPOLIA_RPC}
      contract_address: ${OPTIMISM_SEPOLIA_CONTRACT_ADDRESS}

`${VAR}` references expand from the environment before validation.
Expanded values stay text. Validation runs in lax mode so numeric fields
accept them, while keys and URLs keep every character the environment gave.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from typing_extensions import Self

from state_sync.subspecs.oracle.config import API_KEY_ENV, OracleSettings
from state_sync.types import Address, ConfigurationError, StrictBaseModel

from .registry import ChainEntry, ChainRegistry

ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
"""Matches `${VAR}` references."""


class RelayerSettings(StrictBaseModel):
    """Watcher and dispatcher tuning."""

    sender: Address | None = None
    """Node-managed account used to submit proofs."""

    confirmations: int = Field(default=0, ge=0)
    """Blocks a write must be buried under before it is relayed."""

    poll_interval: float = Field(default=2.0, gt=0)
    """Seconds between source chain polls."""

    start_block: int | None = Field(default=None, ge=0)
    """First block to scan. Defaults to the head at startup."""

    max_block_range: int = Field(default=1000, ge=1)
    """Largest block span fetched in one log query."""

    submit_attempts: int = Field(default=3, ge=1)
    """Submission attempts per destination on transport failures."""

    proof_attempts: int = Field(default=2, ge=1)
    """Proof requests per destination on unavailable or slow proof service."""

    backoff: float = Field(default=1.0, ge=0)
    """Initial retry delay in seconds, doubled after every failed attempt."""

    max_in_flight: int = Field(default=64, ge=1)
    """Relay pipelines allowed to run concurrently."""

    queue_size: int = Field(default=1024, ge=1)
    """Capacity of the queue between watchers and dispatcher."""

    @field_validator("sender", mode="before")
    @classmethod
    def parse_hex_sender(cls, v: Any) -> Any:
        """Accept the sender as a hex string, or as an integer from YAML."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = f"0x{v:040x}"
        if isinstance(v, str):
            return Address(v)
        return v


class RelayerConfig(StrictBaseModel):
    """Complete relayer configuration."""

    oracle: OracleSettings
    """Proof service settings."""

    relayer: RelayerSettings = Field(default_factory=RelayerSettings)
    """Watcher and dispatcher tuning."""

    chains: list[ChainEntry] = Field(min_length=2)
    """Supported chains. Every write on one is relayed to all others."""

    @model_validator(mode="after")
    def require_sender(self) -> Self:
        """Submitting proofs needs an account, so the sender is mandatory here."""
        if self.relayer.sender is None:
            raise ValueError("relayer.sender is required to submit proofs")
        return self

    def registry(self) -> ChainRegistry:
        """Build the chain registry."""
        return ChainRegistry.from_entries(self.chains)

    @classmethod
    def from_mapping(
        cls,
        data: Any,
        environ: Mapping[str, str] | None = None,
    ) -> RelayerConfig:
        """
        Validate parsed YAML.

        Raises:
            ConfigurationError: If a variable is unset or a value is invalid.
        """
        environ = os.environ if environ is None else environ

        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        data = expand_env(data, environ)

        oracle = data.get("oracle")
        if isinstance(oracle, dict) and "api_key" not in oracle and API_KEY_ENV in environ:
            data["oracle"] = oracle | {"api_key": environ[API_KEY_ENV]}

        try:
            config = cls.model_validate(data, strict=False)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

        # Surface duplicate chain ids at load time.
        config.registry()
        return config

    @classmethod
    def from_yaml(cls, content: str, environ: Mapping[str, str] | None = None) -> RelayerConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML: {exc}") from exc
        return cls.from_mapping(data, environ)


def load_config(path: Path | str, environ: Mapping[str, str] | None = None) -> RelayerConfig:
    """
    Load configuration from a YAML file.

    Raises:
        ConfigurationError: If the file is unreadable or its contents are invalid.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration {path}: {exc}") from exc
    return RelayerConfig.from_yaml(content, environ)


def expand_env(value: Any, environ: Mapping[str, str]) -> Any:
    """
    Expand `${VAR}` references in every string of a parsed YAML tree.

    Raises:
        ConfigurationError: If a referenced variable is unset.
    """
    if isinstance(value, dict):
        return {key: expand_env(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item, environ) for item in value]
    if not isinstance(value, str):
        return value

    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in environ:
            raise ConfigurationError(f"Environment variable {name} is not set")
        return environ[name]

    return ENV_REFERENCE.sub(lookup, value)
