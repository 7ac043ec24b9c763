"""Client for the external proof service."""

from .client import ProofOracleClient
from .config import OracleSettings
from .types import Locator, ProofResult, ProofStatus

__all__ = [
    "Locator",
    "OracleSettings",
    "ProofOracleClient",
    "ProofResult",
    "ProofStatus",
]
