"""
Vesting schedule data model.

A schedule is an immutable snapshot. The engine never mutates one in place:
every state change produces a new record via ``dataclasses.replace`` and the
ledger decides whether to persist it.

Vesting policies are a closed set of frozen variant classes. Code that needs
to branch on the policy checks the variant class, never a string tag; the
tagged dict form only exists at the serialization boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from token_vesting.constants import MAX_BASIS_POINTS
from token_vesting.exceptions import InvalidScheduleError
from token_vesting.units import is_integer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Milestone:
    """A single unlock event worth ``percentage`` basis points."""

    unlock_time: int
    percentage: int


@dataclass(frozen=True)
class LinearVesting:
    """Value unlocks continuously between start and end time."""


@dataclass(frozen=True)
class CliffVesting:
    """All-or-nothing: everything unlocks at start + cliff_duration."""

    cliff_duration: int


@dataclass(frozen=True)
class CliffLinearVesting:
    """A lump of ``cliff_percentage`` bps at the cliff, the rest linear to end."""

    cliff_duration: int
    cliff_percentage: int


@dataclass(frozen=True)
class MilestoneVesting:
    """Discrete unlocks; every milestone at or before now contributes."""

    milestones: Tuple[Milestone, ...] = field(default_factory=tuple)


VestingType = Union[LinearVesting, CliffVesting, CliffLinearVesting, MilestoneVesting]

VESTING_TYPES = (LinearVesting, CliffVesting, CliffLinearVesting, MilestoneVesting)
CLIFF_TYPES = (CliffVesting, CliffLinearVesting)


class VestingStatus(Enum):
    """Mutually exclusive lifecycle classification of a schedule."""

    NOT_STARTED = "not_started"
    CLIFF_PERIOD = "cliff_period"
    VESTING = "vesting"
    FULLY_VESTED = "fully_vested"
    COMPLETED = "completed"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self in (VestingStatus.COMPLETED, VestingStatus.REVOKED)


@dataclass(frozen=True)
class VestingSchedule:
    """A single vesting commitment of a fixed total to one beneficiary.

    Amounts are integer base units; timestamps are integer seconds.
    """

    pool: str
    beneficiary: str
    vesting_type: VestingType
    total_amount: int
    start_time: int
    end_time: int
    released_amount: int = 0
    cliff_time: Optional[int] = None
    last_release_time: Optional[int] = None
    is_revocable: bool = False
    is_revoked: bool = False
    revoked_at: Optional[int] = None
    created_at: Optional[int] = None

    @property
    def remaining_amount(self) -> int:
        """Value not yet released."""
        return self.total_amount - self.released_amount

    @property
    def is_completed(self) -> bool:
        return self.released_amount == self.total_amount

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time


def cliff_time_for(vesting_type: VestingType, start_time: int) -> Optional[int]:
    """Cliff timestamp implied by a policy, or None for policies without one."""
    if isinstance(vesting_type, CLIFF_TYPES):
        return start_time + vesting_type.cliff_duration
    return None


# --- Validation ---


def _require(condition: bool, message: str, **details: Any) -> None:
    if not condition:
        raise InvalidScheduleError(message, details=details or None)


def _validate_basis_points(value: Any, name: str) -> None:
    _require(is_integer(value), f"{name} must be an integer number of basis points", value=value)
    _require(
        0 <= value <= MAX_BASIS_POINTS,
        f"{name} must be between 0 and {MAX_BASIS_POINTS} basis points",
        value=value,
    )


def validate_vesting_type(vesting_type: Any) -> None:
    """Check the policy parameters in isolation."""
    if isinstance(vesting_type, LinearVesting):
        return
    if isinstance(vesting_type, CLIFF_TYPES):
        _require(
            is_integer(vesting_type.cliff_duration),
            "Cliff duration must be an integer number of seconds",
        )
        _require(
            vesting_type.cliff_duration >= 0,
            "Cliff duration cannot be negative",
            cliff_duration=vesting_type.cliff_duration,
        )
        if isinstance(vesting_type, CliffLinearVesting):
            _validate_basis_points(vesting_type.cliff_percentage, "Cliff percentage")
        return
    if isinstance(vesting_type, MilestoneVesting):
        _require(len(vesting_type.milestones) > 0, "Milestone vesting needs at least one milestone")
        for index, milestone in enumerate(vesting_type.milestones):
            _require(
                isinstance(milestone, Milestone),
                "Milestones must be Milestone records",
                index=index,
            )
            _require(
                is_integer(milestone.unlock_time),
                "Milestone unlock time must be an integer timestamp",
                index=index,
            )
            _validate_basis_points(milestone.percentage, f"Milestone {index} percentage")
        return
    raise InvalidScheduleError(
        "Unknown vesting type",
        details={"vesting_type": type(vesting_type).__name__},
    )


def validate_schedule(schedule: VestingSchedule) -> VestingSchedule:
    """
    Check every structural invariant of a schedule record.

    Returns the schedule unchanged so the call can be chained.

    Raises:
        InvalidScheduleError: on the first violated invariant
    """
    _require(
        isinstance(schedule.pool, str) and bool(schedule.pool),
        "Pool identifier cannot be empty.",
    )
    _require(
        isinstance(schedule.beneficiary, str) and bool(schedule.beneficiary),
        "Beneficiary identifier cannot be empty.",
    )
    _require(is_integer(schedule.total_amount), "Total amount must be an integer.")
    _require(
        schedule.total_amount > 0,
        "Total amount must be positive.",
        total_amount=schedule.total_amount,
    )
    _require(is_integer(schedule.released_amount), "Released amount must be an integer.")
    _require(
        0 <= schedule.released_amount <= schedule.total_amount,
        "Released amount must be between 0 and the total amount.",
        released_amount=schedule.released_amount,
        total_amount=schedule.total_amount,
    )
    _require(
        is_integer(schedule.start_time) and is_integer(schedule.end_time),
        "Start and end time must be integer timestamps.",
    )
    _require(
        schedule.end_time > schedule.start_time,
        "End time must be after start time.",
        start_time=schedule.start_time,
        end_time=schedule.end_time,
    )

    validate_vesting_type(schedule.vesting_type)

    expected_cliff = cliff_time_for(schedule.vesting_type, schedule.start_time)
    _require(
        schedule.cliff_time == expected_cliff,
        "Cliff time does not match the vesting type.",
        cliff_time=schedule.cliff_time,
        expected=expected_cliff,
    )
    if expected_cliff is not None:
        _require(
            expected_cliff <= schedule.end_time,
            "Cliff cannot be beyond the end time.",
            cliff_time=expected_cliff,
            end_time=schedule.end_time,
        )

    if schedule.last_release_time is not None:
        _require(is_integer(schedule.last_release_time), "Last release time must be an integer.")
    if schedule.revoked_at is not None:
        _require(is_integer(schedule.revoked_at), "Revocation time must be an integer.")
    if schedule.created_at is not None:
        _require(is_integer(schedule.created_at), "Creation time must be an integer.")
    _require(
        isinstance(schedule.is_revocable, bool) and isinstance(schedule.is_revoked, bool),
        "Revocable and revoked flags must be booleans.",
        is_revocable=schedule.is_revocable,
        is_revoked=schedule.is_revoked,
    )

    _require(
        schedule.is_revoked == (schedule.revoked_at is not None),
        "Revocation flag and revocation time must be set together.",
        is_revoked=schedule.is_revoked,
        revoked_at=schedule.revoked_at,
    )
    _require(
        schedule.is_revocable or not schedule.is_revoked,
        "A non-revocable schedule cannot be revoked.",
    )
    return schedule


def create_schedule(
    pool: str,
    beneficiary: str,
    vesting_type: VestingType,
    total_amount: int,
    start_time: int,
    duration: int,
    is_revocable: bool = False,
    created_at: Optional[int] = None,
) -> VestingSchedule:
    """
    Build and validate a fresh schedule.

    Args:
        pool: Owning pool identifier
        beneficiary: Party entitled to released value
        vesting_type: One of the vesting policy variants
        total_amount: Total value in base units (> 0)
        start_time: Vesting start timestamp
        duration: Seconds from start to end (> 0)
        is_revocable: Whether the pool authority may revoke later
        created_at: Creation timestamp, informational only

    Returns:
        A validated schedule with nothing released yet
    """
    _require(is_integer(duration), "Duration must be an integer number of seconds.")
    _require(duration > 0, "Duration must be positive.", duration=duration)
    _require(is_integer(start_time), "Start time must be an integer timestamp.")
    validate_vesting_type(vesting_type)

    if isinstance(vesting_type, MilestoneVesting):
        # Evaluation ignores order; stored ascending for display
        vesting_type = MilestoneVesting(
            milestones=tuple(sorted(vesting_type.milestones, key=lambda m: m.unlock_time))
        )

    schedule = VestingSchedule(
        pool=pool,
        beneficiary=beneficiary,
        vesting_type=vesting_type,
        total_amount=total_amount,
        released_amount=0,
        start_time=start_time,
        end_time=start_time + duration,
        cliff_time=cliff_time_for(vesting_type, start_time),
        last_release_time=start_time,
        is_revocable=bool(is_revocable),
        is_revoked=False,
        revoked_at=None,
        created_at=created_at,
    )
    validate_schedule(schedule)
    logger.debug(
        "Vesting schedule built for %s: %d base units over %d seconds",
        beneficiary,
        total_amount,
        duration,
        extra={"event": "vesting.schedule_built", "pool": pool},
    )
    return schedule


def with_changes(schedule: VestingSchedule, **changes: Any) -> VestingSchedule:
    """Return a copy of ``schedule`` with ``changes`` applied."""
    return replace(schedule, **changes)


# --- Serialization ---


def vesting_type_to_dict(vesting_type: VestingType) -> Dict[str, Any]:
    if isinstance(vesting_type, LinearVesting):
        return {"Linear": {}}
    if isinstance(vesting_type, CliffLinearVesting):
        return {
            "CliffLinear": {
                "cliff_duration": vesting_type.cliff_duration,
                "cliff_percentage": vesting_type.cliff_percentage,
            }
        }
    if isinstance(vesting_type, CliffVesting):
        return {"Cliff": {"cliff_duration": vesting_type.cliff_duration}}
    if isinstance(vesting_type, MilestoneVesting):
        return {
            "Milestone": {
                "milestones": [
                    {"unlock_time": m.unlock_time, "percentage": m.percentage}
                    for m in vesting_type.milestones
                ]
            }
        }
    raise InvalidScheduleError(
        "Unknown vesting type",
        details={"vesting_type": type(vesting_type).__name__},
    )


def vesting_type_from_dict(data: Dict[str, Any]) -> VestingType:
    if not isinstance(data, dict) or len(data) != 1:
        raise InvalidScheduleError("Vesting type must be a single-key tagged object", details={"data": data})
    tag, params = next(iter(data.items()))
    params = params or {}
    try:
        if tag == "Linear":
            return LinearVesting()
        if tag == "Cliff":
            return CliffVesting(cliff_duration=params["cliff_duration"])
        if tag == "CliffLinear":
            return CliffLinearVesting(
                cliff_duration=params["cliff_duration"],
                cliff_percentage=params["cliff_percentage"],
            )
        if tag == "Milestone":
            return MilestoneVesting(
                milestones=tuple(
                    Milestone(unlock_time=m["unlock_time"], percentage=m["percentage"])
                    for m in params["milestones"]
                )
            )
    except (KeyError, TypeError) as exc:
        raise InvalidScheduleError(f"Malformed {tag} vesting type", details={"error": str(exc)}) from exc
    raise InvalidScheduleError(f"Unknown vesting type tag: {tag}", details={"tag": tag})


_SCALAR_FIELDS = (
    "pool",
    "beneficiary",
    "total_amount",
    "released_amount",
    "start_time",
    "end_time",
    "cliff_time",
    "last_release_time",
    "is_revocable",
    "is_revoked",
    "revoked_at",
    "created_at",
)


def schedule_to_dict(schedule: VestingSchedule) -> Dict[str, Any]:
    """Serialize to a JSON-compatible dict."""
    data: Dict[str, Any] = {name: getattr(schedule, name) for name in _SCALAR_FIELDS}
    data["vesting_type"] = vesting_type_to_dict(schedule.vesting_type)
    return data


def schedule_from_dict(data: Dict[str, Any]) -> VestingSchedule:
    """Deserialize and validate a schedule produced by ``schedule_to_dict``."""
    if not isinstance(data, dict):
        raise InvalidScheduleError(
            "Schedule record must be a JSON object",
            details={"type": type(data).__name__},
        )
    try:
        schedule = VestingSchedule(
            pool=data["pool"],
            beneficiary=data["beneficiary"],
            vesting_type=vesting_type_from_dict(data["vesting_type"]),
            total_amount=data["total_amount"],
            released_amount=data.get("released_amount", 0),
            start_time=data["start_time"],
            end_time=data["end_time"],
            cliff_time=data.get("cliff_time"),
            last_release_time=data.get("last_release_time"),
            is_revocable=data.get("is_revocable", False),
            is_revoked=data.get("is_revoked", False),
            revoked_at=data.get("revoked_at"),
            created_at=data.get("created_at"),
        )
    except KeyError as exc:
        raise InvalidScheduleError(f"Missing schedule field: {exc.args[0]}") from exc
    return validate_schedule(schedule)
