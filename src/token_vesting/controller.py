"""
Release controller.

Wraps the evaluator with release tracking and the revoke/close lifecycle.
Every operation takes a schedule snapshot plus the current time and returns a
new snapshot; nothing here holds state between calls or performs I/O. The
ledger owns persistence, value transfer, authorization and the serialization
of concurrent calls on the same schedule.

State machine per schedule::

    NotStarted -> CliffPeriod (cliff policies) -> Vesting -> FullyVested -> Completed
    any state  -> Revoked (revocable schedules only; terminal)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from token_vesting.evaluator import vested_amount
from token_vesting.exceptions import (
    AlreadyRevokedError,
    InvalidScheduleError,
    NothingToReleaseError,
    NotRevocableError,
    ScheduleNotCompleteError,
    ScheduleRevokedError,
)
from token_vesting.schedule import VestingSchedule, VestingStatus, with_changes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseRecord:
    """Audit entry for one successful release."""

    schedule_ref: str
    beneficiary: str
    amount: int
    released_at: int
    total_released: int


@dataclass(frozen=True)
class RevocationRecord:
    """Audit entry the ledger persists alongside a revoked schedule."""

    schedule_ref: str
    beneficiary: str
    reason: str
    revoked_at: int
    amount_vested: int
    amount_released: int
    amount_revoked: int
    revoked_by: Optional[str] = None


@dataclass(frozen=True)
class ReleaseResult:
    amount: int
    schedule: VestingSchedule
    record: ReleaseRecord


@dataclass(frozen=True)
class RevocationResult:
    schedule: VestingSchedule
    record: RevocationRecord


def releasable_amount(schedule: VestingSchedule, current_time: int) -> int:
    """Vested but not yet released; never negative."""
    return max(0, vested_amount(schedule, current_time) - schedule.released_amount)


def release(
    schedule: VestingSchedule,
    current_time: int,
    schedule_ref: str = "",
) -> ReleaseResult:
    """
    Release everything currently releasable.

    Args:
        schedule: Snapshot read by the ledger
        current_time: Trusted timestamp supplied by the ledger
        schedule_ref: Ledger identifier stamped on the audit record

    Returns:
        The amount to transfer, the updated schedule and a release record.

    Raises:
        ScheduleRevokedError: the schedule is revoked
        NothingToReleaseError: nothing has vested since the last release
    """
    if schedule.is_revoked:
        logger.debug(
            "Release rejected for revoked schedule %s",
            schedule_ref or schedule.beneficiary,
            extra={"event": "vesting.release_rejected", "reason": "revoked"},
        )
        raise ScheduleRevokedError(
            "Schedule has been revoked",
            details={"schedule": schedule_ref, "revoked_at": schedule.revoked_at},
        )

    amount = releasable_amount(schedule, current_time)
    if amount == 0:
        logger.debug(
            "No tokens available to release for schedule %s",
            schedule_ref or schedule.beneficiary,
            extra={"event": "vesting.release_rejected", "reason": "nothing_to_release"},
        )
        raise NothingToReleaseError(
            "No tokens available to release",
            details={
                "schedule": schedule_ref,
                "current_time": current_time,
                "released_amount": schedule.released_amount,
            },
        )

    last_release = schedule.last_release_time
    if last_release is None or current_time > last_release:
        last_release = current_time

    updated = with_changes(
        schedule,
        released_amount=schedule.released_amount + amount,
        last_release_time=last_release,
    )
    record = ReleaseRecord(
        schedule_ref=schedule_ref,
        beneficiary=schedule.beneficiary,
        amount=amount,
        released_at=current_time,
        total_released=updated.released_amount,
    )
    logger.info(
        "Released %d base units to %s (%d/%d)",
        amount,
        schedule.beneficiary,
        updated.released_amount,
        updated.total_amount,
        extra={"event": "vesting.released", "schedule": schedule_ref},
    )
    return ReleaseResult(amount=amount, schedule=updated, record=record)


def revoke(
    schedule: VestingSchedule,
    current_time: int,
    reason: str,
    schedule_ref: str = "",
    revoked_by: Optional[str] = None,
) -> RevocationResult:
    """
    Freeze a revocable schedule.

    Released value stays with the beneficiary; everything else is forfeited
    back to the pool.

    Raises:
        NotRevocableError: the schedule was created non-revocable
        AlreadyRevokedError: the schedule is already revoked
    """
    if not schedule.is_revocable:
        raise NotRevocableError(
            "Schedule is not revocable",
            details={"schedule": schedule_ref},
        )
    if schedule.is_revoked:
        raise AlreadyRevokedError(
            "Schedule already revoked",
            details={"schedule": schedule_ref, "revoked_at": schedule.revoked_at},
        )

    vested_before = vested_amount(schedule, current_time)
    updated = with_changes(schedule, is_revoked=True, revoked_at=current_time)
    record = RevocationRecord(
        schedule_ref=schedule_ref,
        beneficiary=schedule.beneficiary,
        reason=reason,
        revoked_at=current_time,
        amount_vested=vested_before,
        amount_released=schedule.released_amount,
        amount_revoked=schedule.total_amount - schedule.released_amount,
        revoked_by=revoked_by,
    )
    logger.info(
        "Schedule %s revoked: %d base units returned to pool",
        schedule_ref or schedule.beneficiary,
        record.amount_revoked,
        extra={"event": "vesting.revoked", "reason": reason},
    )
    return RevocationResult(schedule=updated, record=record)


def status(schedule: VestingSchedule, current_time: int) -> VestingStatus:
    """Classify a schedule; revoked and completed dominate time-based states."""
    if schedule.is_revoked:
        return VestingStatus.REVOKED
    if schedule.released_amount == schedule.total_amount:
        return VestingStatus.COMPLETED
    if current_time < schedule.start_time:
        return VestingStatus.NOT_STARTED
    if schedule.cliff_time is not None and current_time < schedule.cliff_time:
        return VestingStatus.CLIFF_PERIOD
    if current_time >= schedule.end_time:
        return VestingStatus.FULLY_VESTED
    return VestingStatus.VESTING


def update_beneficiary(schedule: VestingSchedule, new_beneficiary: str) -> VestingSchedule:
    """Point a live schedule at a different beneficiary."""
    if schedule.is_revoked:
        raise ScheduleRevokedError("Schedule has been revoked")
    if not new_beneficiary:
        raise InvalidScheduleError("Beneficiary identifier cannot be empty.")

    logger.info(
        "Beneficiary updated from %s to %s",
        schedule.beneficiary,
        new_beneficiary,
        extra={"event": "vesting.beneficiary_updated"},
    )
    return with_changes(schedule, beneficiary=new_beneficiary)


def is_closable(schedule: VestingSchedule) -> bool:
    return schedule.is_revoked or schedule.released_amount == schedule.total_amount


def ensure_closable(schedule: VestingSchedule) -> None:
    """Raise unless the schedule is completed or revoked."""
    if not is_closable(schedule):
        raise ScheduleNotCompleteError(
            "Schedule is not complete",
            details={
                "released_amount": schedule.released_amount,
                "total_amount": schedule.total_amount,
            },
        )
