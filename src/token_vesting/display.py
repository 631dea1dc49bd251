"""
Human-facing helpers for vesting schedules.

Cosmetic only: percentages here are floats and must never feed back into
release or revoke decisions.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional

from token_vesting.constants import BASIS_POINTS_PER_PERCENT, DEFAULT_TOKEN_DECIMALS, SECONDS_PER_DAY
from token_vesting.controller import releasable_amount, status
from token_vesting.evaluator import vested_amount
from token_vesting.schedule import (
    CliffLinearVesting,
    CliffVesting,
    LinearVesting,
    MilestoneVesting,
    VestingSchedule,
    VestingStatus,
    VestingType,
)
from token_vesting.units import format_amount

STATUS_LABELS: Dict[VestingStatus, str] = {
    VestingStatus.NOT_STARTED: "Not Started",
    VestingStatus.CLIFF_PERIOD: "Cliff Period",
    VestingStatus.VESTING: "Vesting",
    VestingStatus.FULLY_VESTED: "Fully Vested",
    VestingStatus.COMPLETED: "Completed",
    VestingStatus.REVOKED: "Revoked",
}


def vesting_progress(schedule: VestingSchedule, current_time: int) -> float:
    """Vested share of the total, in percent."""
    if schedule.total_amount == 0:
        return 0.0
    return vested_amount(schedule, current_time) / schedule.total_amount * 100


def days_until_fully_vested(schedule: VestingSchedule, current_time: int) -> int:
    if current_time >= schedule.end_time:
        return 0
    return math.ceil((schedule.end_time - current_time) / SECONDS_PER_DAY)


def days_until_cliff_end(schedule: VestingSchedule, current_time: int) -> Optional[int]:
    """Whole days left in the cliff, or None when the policy has no cliff."""
    if schedule.cliff_time is None:
        return None
    if current_time >= schedule.cliff_time:
        return 0
    return math.ceil((schedule.cliff_time - current_time) / SECONDS_PER_DAY)


def format_vesting_type(vesting_type: VestingType) -> str:
    if isinstance(vesting_type, LinearVesting):
        return "Linear"
    if isinstance(vesting_type, CliffVesting):
        days = vesting_type.cliff_duration // SECONDS_PER_DAY
        return f"Cliff ({days} days)"
    if isinstance(vesting_type, CliffLinearVesting):
        days = vesting_type.cliff_duration // SECONDS_PER_DAY
        percentage = vesting_type.cliff_percentage / BASIS_POINTS_PER_PERCENT
        return f"Cliff + Linear ({days} days, {percentage:g}%)"
    if isinstance(vesting_type, MilestoneVesting):
        count = len(vesting_type.milestones)
        return f"Milestone ({count} milestone{'s' if count != 1 else ''})"
    return "Unknown"


def status_label(vesting_status: VestingStatus) -> str:
    return STATUS_LABELS[vesting_status]


def summarize(
    schedule: VestingSchedule,
    current_time: int,
    decimals: int = DEFAULT_TOKEN_DECIMALS,
) -> Dict[str, Any]:
    """Snapshot of everything a dashboard shows for one schedule."""
    vested = vested_amount(schedule, current_time)
    return {
        "beneficiary": schedule.beneficiary,
        "pool": schedule.pool,
        "type": format_vesting_type(schedule.vesting_type),
        "status": status_label(status(schedule, current_time)),
        "total_amount": schedule.total_amount,
        "vested_amount": vested,
        "released_amount": schedule.released_amount,
        "releasable_amount": releasable_amount(schedule, current_time),
        "total_display": format_amount(schedule.total_amount, decimals),
        "vested_display": format_amount(vested, decimals),
        "progress_percent": round(vesting_progress(schedule, current_time), 2),
        "days_until_fully_vested": days_until_fully_vested(schedule, current_time),
        "days_until_cliff_end": days_until_cliff_end(schedule, current_time),
    }
