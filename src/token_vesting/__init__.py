"""
Token Vesting Engine.

Deterministic, replay-safe vesting calculation and release tracking:
- Schedule model: linear, cliff, cliff + linear and milestone policies
- Evaluator: integer-exact vested amount at any timestamp
- Controller: releasable amount, release, revoke and lifecycle status
- Ledger: thread-safe in-memory reference system of record
- Display: progress, countdowns and labels for dashboards and the CLI
"""

from .controller import (
    ReleaseRecord,
    ReleaseResult,
    RevocationRecord,
    RevocationResult,
    ensure_closable,
    is_closable,
    releasable_amount,
    release,
    revoke,
    status,
    update_beneficiary,
)
from .evaluator import vested_amount
from .exceptions import (
    AlreadyRevokedError,
    ConcurrentModificationError,
    InvalidScheduleError,
    NothingToReleaseError,
    NotRevocableError,
    PoolNotActiveError,
    PoolNotFoundError,
    ScheduleNotCompleteError,
    ScheduleNotFoundError,
    ScheduleRevokedError,
    UnauthorizedError,
    VestingError,
)
from .ledger import BeneficiaryStats, InMemoryVestingLedger, PoolStats, VestingPool
from .schedule import (
    CliffLinearVesting,
    CliffVesting,
    LinearVesting,
    Milestone,
    MilestoneVesting,
    VestingSchedule,
    VestingStatus,
    VestingType,
    create_schedule,
    schedule_from_dict,
    schedule_to_dict,
    validate_schedule,
)

__version__ = "0.1.0"

__all__ = [
    # Schedule model
    "VestingSchedule",
    "VestingType",
    "VestingStatus",
    "LinearVesting",
    "CliffVesting",
    "CliffLinearVesting",
    "MilestoneVesting",
    "Milestone",
    "create_schedule",
    "validate_schedule",
    "schedule_to_dict",
    "schedule_from_dict",
    # Evaluator
    "vested_amount",
    # Controller
    "releasable_amount",
    "release",
    "revoke",
    "status",
    "update_beneficiary",
    "is_closable",
    "ensure_closable",
    "ReleaseRecord",
    "ReleaseResult",
    "RevocationRecord",
    "RevocationResult",
    # Ledger
    "InMemoryVestingLedger",
    "VestingPool",
    "PoolStats",
    "BeneficiaryStats",
    # Errors
    "VestingError",
    "InvalidScheduleError",
    "NothingToReleaseError",
    "ScheduleRevokedError",
    "NotRevocableError",
    "AlreadyRevokedError",
    "ScheduleNotCompleteError",
    "UnauthorizedError",
    "PoolNotActiveError",
    "PoolNotFoundError",
    "ScheduleNotFoundError",
    "ConcurrentModificationError",
]
