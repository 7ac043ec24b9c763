"""
Exception hierarchy for cross-chain state sync.

The taxonomy drives the relayer's retry policy:

- ConfigurationError: fatal at startup, never raised once the relayer runs.
- OracleError: the proof service failed; retried a bounded number of times.
- ValidationError: the destination rejected a write; never retried.
- TransportError: a chain endpoint was unreachable; retried with backoff.
"""

from __future__ import annotations

from typing import ClassVar


class StateSyncError(Exception):
    """
    Base exception for all state sync errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(StateSyncError):
    """A required endpoint, address, key or registry entry is missing or invalid."""


# -----------------------------------------------------------------------------
# Oracle errors
# -----------------------------------------------------------------------------


class OracleError(StateSyncError):
    """Base class for proof service failures."""


class OracleUnavailable(OracleError):
    """The proof service could not be reached or answered with a non-2xx status."""


class ProofTimeout(OracleError):
    """
    The proof was not ready after the configured number of polls.

    Attributes:
        job_id: Proof service job identifier.
        attempts: Number of polls performed.
    """

    def __init__(self, job_id: int, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Proof job {job_id} not complete after {attempts} polls")


class ProofFailed(OracleError):
    """
    The proof service reported that it cannot produce the proof.

    Attributes:
        reason: Error string returned by the proof service.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Proof generation failed: {reason}")


# -----------------------------------------------------------------------------
# Validation errors
# -----------------------------------------------------------------------------


class ValidationError(StateSyncError):
    """
    Base class for writes rejected by a store.

    Each subclass carries the revert reason string the on-chain contract uses,
    so the same error surfaces whether the store is local or remote.
    """

    REASON: ClassVar[str] = "Validation failed"
    """Revert reason string emitted by the contract."""

    is_benign: ClassVar[bool] = False
    """Whether the rejection means the destination is already at or past this write."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.REASON)


class InvalidSignature(ValidationError):
    """The proven event is not a write event."""

    REASON = "Invalid event signature"


class AlreadyApplied(ValidationError):
    """The proof hash was already consumed on this store."""

    REASON = "Proof already used"
    is_benign = True


class StaleVersion(ValidationError):
    """The proven write is not newer than the stored version."""

    REASON = "Stale version"
    is_benign = True


class NotOwner(ValidationError):
    """The key is bound to a different owner."""

    REASON = "Not owner"


class InvalidProof(ValidationError):
    """The proof failed validation or its payload is malformed."""

    REASON = "Invalid proof"


REVERT_REASONS: dict[str, type[ValidationError]] = {
    cls.REASON: cls
    for cls in (InvalidSignature, AlreadyApplied, StaleVersion, NotOwner, InvalidProof)
}
"""Contract revert reason string to the matching exception type."""


# -----------------------------------------------------------------------------
# Transport errors
# -----------------------------------------------------------------------------


class TransportError(StateSyncError):
    """A chain RPC endpoint is unreachable or returned an unusable reply."""
