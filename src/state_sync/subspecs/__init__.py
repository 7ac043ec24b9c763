"""Components of the cross-chain state sync relayer."""

from .api import ApiServer, ApiServerConfig
from .registry import ChainEntry, ChainRegistry, RelayerConfig, load_config

__all__ = [
    "ApiServer",
    "ApiServerConfig",
    "ChainEntry",
    "ChainRegistry",
    "RelayerConfig",
    "load_config",
]
