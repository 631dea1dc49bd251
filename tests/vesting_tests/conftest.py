import logging

import pytest

from token_vesting.constants import SECONDS_PER_DAY
from token_vesting.schedule import (
    CliffLinearVesting,
    CliffVesting,
    LinearVesting,
    Milestone,
    MilestoneVesting,
    create_schedule,
)


@pytest.fixture
def linear_schedule():
    """1,000,000 units vesting linearly over [0, 1000)."""
    return create_schedule(
        pool="pool-1",
        beneficiary="alice",
        vesting_type=LinearVesting(),
        total_amount=1_000_000,
        start_time=0,
        duration=1000,
        is_revocable=True,
    )


@pytest.fixture
def cliff_schedule():
    """500,000 units unlocking all at once after a one-year cliff."""
    return create_schedule(
        pool="pool-1",
        beneficiary="bob",
        vesting_type=CliffVesting(cliff_duration=365 * SECONDS_PER_DAY),
        total_amount=500_000,
        start_time=0,
        duration=365 * SECONDS_PER_DAY,
        is_revocable=False,
    )


@pytest.fixture
def cliff_linear_schedule():
    """2,000,000 units: 25% at a one-year cliff, the rest linear to year four."""
    return create_schedule(
        pool="pool-1",
        beneficiary="carol",
        vesting_type=CliffLinearVesting(
            cliff_duration=365 * SECONDS_PER_DAY,
            cliff_percentage=2500,
        ),
        total_amount=2_000_000,
        start_time=0,
        duration=4 * 365 * SECONDS_PER_DAY,
        is_revocable=True,
    )


@pytest.fixture
def milestone_schedule():
    """1,000,000 units: 30% at t=100, 70% at t=200."""
    return create_schedule(
        pool="pool-1",
        beneficiary="dave",
        vesting_type=MilestoneVesting(
            milestones=(
                Milestone(unlock_time=100, percentage=3000),
                Milestone(unlock_time=200, percentage=7000),
            )
        ),
        total_amount=1_000_000,
        start_time=0,
        duration=1000,
        is_revocable=True,
    )


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers the CLI attaches so later tests don't log to closed streams."""
    yield
    package_logger = logging.getLogger("token_vesting")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
