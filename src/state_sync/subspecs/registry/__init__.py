"""
Chain registry and relayer configuration.

Maps each supported chain id to its RPC endpoint and store contract address.
"""

from .config import RelayerConfig, RelayerSettings, expand_env, load_config
from .registry import ChainEntry, ChainRegistry

__all__ = [
    "ChainEntry",
    "ChainRegistry",
    "RelayerConfig",
    "RelayerSettings",
    "expand_env",
    "load_config",
]
