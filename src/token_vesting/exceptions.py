"""
Vesting exception hierarchy.

Every failure of the engine is a precondition failure raised as one of the
typed exceptions below. The ``code`` attribute is a stable identifier that
callers (and the CLI's JSON output) can match on without importing classes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VestingError(Exception):
    """Base exception for all vesting errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the same call can succeed later without changes
    """

    code = "VestingError"
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# ==================== Validation Errors ====================


class InvalidScheduleError(VestingError):
    """Raised when a schedule violates a structural invariant.

    Examples: end time not after start time, zero total amount, cliff beyond
    end time, basis points outside [0, 10000].
    """

    code = "InvalidSchedule"


# ==================== Release Errors ====================


class NothingToReleaseError(VestingError):
    """Raised when a release finds no releasable value.

    Callers should treat this as a no-op; it may succeed once time advances.
    """

    code = "NothingToRelease"
    recoverable = True


class ScheduleRevokedError(NothingToReleaseError):
    """Raised when releasing from, or updating, a revoked schedule."""

    code = "ScheduleRevoked"
    recoverable = False


# ==================== Revocation Errors ====================


class NotRevocableError(VestingError):
    """Raised when revoking a schedule created with is_revocable=False."""

    code = "NotRevocable"


class AlreadyRevokedError(VestingError):
    """Raised when revoking a schedule twice."""

    code = "AlreadyRevoked"


# ==================== Lifecycle Errors ====================


class ScheduleNotCompleteError(VestingError):
    """Raised when closing a schedule that is neither completed nor revoked."""

    code = "ScheduleNotComplete"


# ==================== Ledger Errors ====================


class UnauthorizedError(VestingError):
    """Raised when the caller is not the pool authority or the beneficiary."""

    code = "Unauthorized"


class PoolNotActiveError(VestingError):
    """Raised when adding a schedule to a deactivated pool."""

    code = "PoolNotActive"


class ScheduleNotFoundError(VestingError):
    """Raised when a schedule id is unknown to the ledger."""

    code = "ScheduleNotFound"


class PoolNotFoundError(VestingError):
    """Raised when a pool id is unknown to the ledger."""

    code = "PoolNotFound"


class ConcurrentModificationError(VestingError):
    """Raised when a compare-and-swap write finds the record has changed."""

    code = "ConcurrentModification"
    recoverable = True
