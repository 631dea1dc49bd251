"""
Schedule evaluator.

Maps a schedule and a caller-supplied timestamp to the amount vested at that
time. Pure integer arithmetic with floor division: two evaluations of the same
inputs always agree bit for bit, and the result is non-decreasing in time for
a fixed schedule.
"""

from __future__ import annotations

from typing import Iterable

from token_vesting.schedule import (
    CliffLinearVesting,
    CliffVesting,
    LinearVesting,
    Milestone,
    MilestoneVesting,
    VestingSchedule,
)
from token_vesting.units import basis_points_of, mul_div_floor


def vested_amount(schedule: VestingSchedule, current_time: int) -> int:
    """
    Amount vested under ``schedule`` at ``current_time``.

    Precedence: before start nothing is vested; a revoked schedule is frozen
    at its released amount; otherwise the vesting policy decides.
    """
    if current_time < schedule.start_time:
        return 0

    if schedule.is_revoked:
        return schedule.released_amount

    vesting_type = schedule.vesting_type
    if isinstance(vesting_type, LinearVesting):
        return linear_vested(
            schedule.total_amount, schedule.start_time, schedule.end_time, current_time
        )
    if isinstance(vesting_type, CliffVesting):
        return cliff_vested(
            schedule.total_amount,
            schedule.start_time + vesting_type.cliff_duration,
            current_time,
        )
    if isinstance(vesting_type, CliffLinearVesting):
        return cliff_linear_vested(
            schedule.total_amount,
            schedule.start_time + vesting_type.cliff_duration,
            schedule.end_time,
            vesting_type.cliff_percentage,
            current_time,
        )
    if isinstance(vesting_type, MilestoneVesting):
        return milestone_vested(schedule.total_amount, vesting_type.milestones, current_time)
    raise TypeError(f"Unsupported vesting type: {type(vesting_type).__name__}")


def linear_vested(total_amount: int, start_time: int, end_time: int, current_time: int) -> int:
    if current_time >= end_time:
        return total_amount
    duration = end_time - start_time
    if duration <= 0:
        return total_amount
    return mul_div_floor(total_amount, current_time - start_time, duration)


def cliff_vested(total_amount: int, cliff_time: int, current_time: int) -> int:
    # All or nothing
    return total_amount if current_time >= cliff_time else 0


def cliff_linear_vested(
    total_amount: int,
    cliff_time: int,
    end_time: int,
    cliff_percentage: int,
    current_time: int,
) -> int:
    if current_time < cliff_time:
        return 0

    cliff_amount = basis_points_of(total_amount, cliff_percentage)
    if current_time >= end_time:
        return total_amount

    remaining = total_amount - cliff_amount
    linear_duration = end_time - cliff_time
    if linear_duration > 0:
        linear = mul_div_floor(remaining, current_time - cliff_time, linear_duration)
    else:
        linear = remaining
    return cliff_amount + linear


def milestone_vested(total_amount: int, milestones: Iterable[Milestone], current_time: int) -> int:
    vested = sum(
        basis_points_of(total_amount, milestone.percentage)
        for milestone in milestones
        if milestone.unlock_time <= current_time
    )
    # Percentages are not required to sum to 10000
    return min(vested, total_amount)
