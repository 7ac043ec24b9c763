"""Proof service client configuration."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from state_sync.types import StrictBaseModel

DEFAULT_POLL_INTERVAL = 0.5
"""Seconds between status polls."""

DEFAULT_FIRST_DELAY = 0.5
"""Seconds to wait after requesting a proof before the first poll."""

DEFAULT_MAX_ATTEMPTS = 10
"""Polls before giving up on a job."""

DEFAULT_TIMEOUT = 30.0
"""HTTP request timeout in seconds."""

API_KEY_ENV = "POLYMER_API_KEY"
"""Environment variable consulted when no API key is configured."""


class OracleSettings(StrictBaseModel):
    """Connection and polling settings for the proof service."""

    url: str = Field(min_length=1)
    """JSON-RPC endpoint of the proof service."""

    api_key: str = Field(min_length=1)
    """Bearer token sent with every request."""

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    """Seconds between status polls."""

    first_delay: float = Field(default=DEFAULT_FIRST_DELAY, ge=0)
    """Seconds before the first poll."""

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    """Polls per job before timing out."""

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    """HTTP request timeout in seconds."""

    @field_validator("api_key", mode="before")
    @classmethod
    def stringify_api_key(cls, v: Any) -> Any:
        """YAML may parse an all-digit key as an integer."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
