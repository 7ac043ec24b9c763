"""Reusable type definitions for cross-chain state sync."""

from .base import CamelModel, StrictBaseModel
from .byte_arrays import ZERO_HASH, Address, Bytes4, Bytes32
from .exceptions import (
    REVERT_REASONS,
    AlreadyApplied,
    ConfigurationError,
    InvalidProof,
    InvalidSignature,
    NotOwner,
    OracleError,
    OracleUnavailable,
    ProofFailed,
    ProofTimeout,
    StaleVersion,
    StateSyncError,
    TransportError,
    ValidationError,
)

__all__ = [
    # Core types
    "Address",
    "Bytes4",
    "Bytes32",
    "ZERO_HASH",
    "CamelModel",
    "StrictBaseModel",
    # Exceptions
    "StateSyncError",
    "ConfigurationError",
    "OracleError",
    "OracleUnavailable",
    "ProofTimeout",
    "ProofFailed",
    "ValidationError",
    "InvalidSignature",
    "AlreadyApplied",
    "StaleVersion",
    "NotOwner",
    "InvalidProof",
    "REVERT_REASONS",
    "TransportError",
]
