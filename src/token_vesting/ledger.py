"""
In-memory reference ledger.

The vesting engine is stateless; this module is the system of record around
it. It persists pools and schedules, checks who may call what, keeps the
pool/beneficiary aggregates, and performs value movement through a
caller-supplied ``transfer`` hook.

Release and revoke on the same schedule are serialized with a per-schedule
lock, and every write is a compare-and-swap against the snapshot the engine
computed from, so two concurrent releases can never both spend the same
releasable delta. A release is persisted before the transfer hook runs
and rolled back if the hook raises.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from token_vesting import controller
from token_vesting.config import LedgerConfig
from token_vesting.constants import MAX_BASIS_POINTS, SECONDS_PER_DAY
from token_vesting.evaluator import vested_amount
from token_vesting.exceptions import (
    ConcurrentModificationError,
    InvalidScheduleError,
    PoolNotActiveError,
    PoolNotFoundError,
    ScheduleNotFoundError,
    UnauthorizedError,
)
from token_vesting.schedule import (
    MilestoneVesting,
    VestingSchedule,
    VestingStatus,
    VestingType,
    create_schedule,
)

logger = logging.getLogger(__name__)

TransferHook = Callable[[str, str, int], None]


@dataclass(frozen=True)
class VestingPool:
    authority: str
    token_mint: str
    vault: str
    name: str
    created_at: int
    total_schedules: int = 0
    total_allocated: int = 0
    total_released: int = 0
    total_revoked: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class BeneficiaryAccount:
    """Aggregates for one wallet within one pool."""

    wallet: str
    pool: str
    first_vesting_at: int
    total_allocated: int = 0
    total_released: int = 0
    total_revoked: int = 0
    schedules_count: int = 0
    last_release_at: Optional[int] = None


@dataclass(frozen=True)
class PoolStats:
    pool_id: str
    name: str
    total_schedules: int
    active_schedules: int
    total_allocated: int
    total_released: int
    total_revoked: int
    total_locked: int
    is_active: bool


@dataclass(frozen=True)
class BeneficiaryStats:
    wallet: str
    pool_id: str
    schedules_count: int
    total_allocated: int
    total_vested: int
    total_released: int
    total_releasable: int
    total_revoked: int


class InMemoryVestingLedger:
    """
    Thread-safe ledger holding pools and schedules in process memory.

    Args:
        config: Explicit ledger configuration (defaults to ``LedgerConfig()``)
        time_provider: Trusted clock returning integer seconds
        transfer: Called as ``transfer(source, destination, amount)`` for
            every release after the new snapshot is stored; an exception
            restores the previous snapshot and propagates
    """

    def __init__(
        self,
        config: LedgerConfig | None = None,
        time_provider: Callable[[], int] | None = None,
        transfer: TransferHook | None = None,
    ):
        self.config = config or LedgerConfig()
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._transfer = transfer
        self._pools: Dict[str, VestingPool] = {}
        self._schedules: Dict[str, VestingSchedule] = {}
        self._beneficiaries: Dict[Tuple[str, str], BeneficiaryAccount] = {}
        self._releases: List[controller.ReleaseRecord] = []
        self._revocations: List[controller.RevocationRecord] = []
        self._schedule_locks: Dict[str, threading.RLock] = {}
        self._pool_counter = 0
        self._schedule_counter = 0
        self._lock = threading.RLock()
        logger.info(
            "Vesting ledger initialized on %s (program %s)",
            self.config.network.value,
            self.config.program_id,
            extra={"event": "ledger.initialized"},
        )

    # --- Clock ---

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    # --- Lookups ---

    def get_pool(self, pool_id: str) -> VestingPool:
        with self._lock:
            pool = self._pools.get(pool_id)
        if pool is None:
            raise PoolNotFoundError(f"Vesting pool {pool_id} not found.", details={"pool": pool_id})
        return pool

    def get_schedule(self, schedule_id: str) -> VestingSchedule:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(
                f"Vesting schedule {schedule_id} not found.", details={"schedule": schedule_id}
            )
        return schedule

    def get_beneficiary(self, pool_id: str, wallet: str) -> Optional[BeneficiaryAccount]:
        with self._lock:
            return self._beneficiaries.get((pool_id, wallet))

    def list_schedules(
        self,
        pool_id: Optional[str] = None,
        beneficiary: Optional[str] = None,
    ) -> Dict[str, VestingSchedule]:
        with self._lock:
            return {
                schedule_id: schedule
                for schedule_id, schedule in self._schedules.items()
                if (pool_id is None or schedule.pool == pool_id)
                and (beneficiary is None or schedule.beneficiary == beneficiary)
            }

    def release_history(self, schedule_id: Optional[str] = None) -> List[controller.ReleaseRecord]:
        with self._lock:
            return [r for r in self._releases if schedule_id is None or r.schedule_ref == schedule_id]

    def revocations(self) -> List[controller.RevocationRecord]:
        with self._lock:
            return list(self._revocations)

    # --- Pools ---

    def create_pool(self, authority: str, token_mint: str, vault: str, name: str) -> str:
        if not authority:
            raise ValueError("Pool authority cannot be empty.")
        if not vault:
            raise ValueError("Pool vault cannot be empty.")

        with self._lock:
            self._pool_counter += 1
            pool_id = f"{self.config.program_id}:pool_{self._pool_counter}"
            self._pools[pool_id] = VestingPool(
                authority=authority,
                token_mint=token_mint,
                vault=vault,
                name=name,
                created_at=self._current_time(),
            )
        logger.info("Vesting pool created: %s (%s)", name, pool_id, extra={"event": "ledger.pool_created"})
        return pool_id

    def deactivate_pool(self, pool_id: str, authority: str) -> VestingPool:
        with self._lock:
            pool = self.get_pool(pool_id)
            self._require_authority(pool, authority)
            pool = replace(pool, is_active=False)
            self._pools[pool_id] = pool
        logger.info("Vesting pool deactivated: %s", pool_id, extra={"event": "ledger.pool_deactivated"})
        return pool

    # --- Schedules ---

    def create_schedule(
        self,
        pool_id: str,
        authority: str,
        beneficiary: str,
        vesting_type: VestingType,
        total_amount: int,
        start_time: int,
        duration: int,
        is_revocable: bool,
    ) -> str:
        """Validate, persist and account for a new schedule; returns its id."""
        with self._lock:
            pool = self.get_pool(pool_id)
            if not pool.is_active:
                raise PoolNotActiveError("Vesting pool is not active", details={"pool": pool_id})
            self._require_authority(pool, authority)

            schedule = create_schedule(
                pool=pool_id,
                beneficiary=beneficiary,
                vesting_type=vesting_type,
                total_amount=total_amount,
                start_time=start_time,
                duration=duration,
                is_revocable=is_revocable,
                created_at=self._current_time(),
            )
            self._check_milestone_sum(schedule.vesting_type)

            self._schedule_counter += 1
            schedule_id = f"{self.config.program_id}:schedule_{self._schedule_counter}"
            self._schedules[schedule_id] = schedule
            self._schedule_locks[schedule_id] = threading.RLock()
            self._pools[pool_id] = replace(
                pool,
                total_schedules=pool.total_schedules + 1,
                total_allocated=pool.total_allocated + total_amount,
            )

            key = (pool_id, beneficiary)
            account = self._beneficiaries.get(key) or BeneficiaryAccount(
                wallet=beneficiary, pool=pool_id, first_vesting_at=start_time
            )
            self._beneficiaries[key] = replace(
                account,
                total_allocated=account.total_allocated + total_amount,
                schedules_count=account.schedules_count + 1,
            )

        logger.info(
            "Vesting schedule %s created for %d base units over %d days",
            schedule_id,
            total_amount,
            duration // SECONDS_PER_DAY,
            extra={"event": "ledger.schedule_created", "beneficiary": beneficiary},
        )
        return schedule_id

    def release(self, schedule_id: str, beneficiary: str) -> controller.ReleaseRecord:
        """Release vested value to the schedule's beneficiary."""
        with self._schedule_lock(schedule_id):
            schedule = self.get_schedule(schedule_id)
            if schedule.beneficiary != beneficiary:
                raise UnauthorizedError(
                    f"Caller {beneficiary} is not the beneficiary of schedule {schedule_id}.",
                    details={"schedule": schedule_id},
                )

            now = self._current_time()
            result = controller.release(schedule, now, schedule_ref=schedule_id)
            pool = self.get_pool(schedule.pool)

            # Persist before moving value; a failed transfer restores the snapshot
            with self._lock:
                self._compare_and_swap(schedule_id, schedule, result.schedule)
            if self._transfer is not None:
                try:
                    self._transfer(pool.vault, beneficiary, result.amount)
                except Exception:
                    with self._lock:
                        self._compare_and_swap(schedule_id, result.schedule, schedule)
                    logger.warning(
                        "Transfer failed for schedule %s, release rolled back",
                        schedule_id,
                        extra={"event": "ledger.release_rolled_back"},
                    )
                    raise

            with self._lock:
                pool = self._pools[schedule.pool]
                self._pools[schedule.pool] = replace(
                    pool, total_released=pool.total_released + result.amount
                )
                key = (schedule.pool, beneficiary)
                account = self._beneficiaries.get(key) or BeneficiaryAccount(
                    wallet=beneficiary, pool=schedule.pool, first_vesting_at=schedule.start_time
                )
                self._beneficiaries[key] = replace(
                    account,
                    total_released=account.total_released + result.amount,
                    last_release_at=now,
                )
                self._releases.append(result.record)
        return result.record

    def revoke(self, schedule_id: str, authority: str, reason: str) -> controller.RevocationRecord:
        """Freeze a schedule; only the pool authority may revoke."""
        with self._schedule_lock(schedule_id):
            schedule = self.get_schedule(schedule_id)
            pool = self.get_pool(schedule.pool)
            self._require_authority(pool, authority)

            result = controller.revoke(
                schedule,
                self._current_time(),
                reason,
                schedule_ref=schedule_id,
                revoked_by=authority,
            )
            amount_revoked = result.record.amount_revoked

            with self._lock:
                self._compare_and_swap(schedule_id, schedule, result.schedule)
                pool = self._pools[schedule.pool]
                self._pools[schedule.pool] = replace(
                    pool, total_revoked=pool.total_revoked + amount_revoked
                )
                key = (schedule.pool, schedule.beneficiary)
                account = self._beneficiaries.get(key)
                if account is not None:
                    self._beneficiaries[key] = replace(
                        account, total_revoked=account.total_revoked + amount_revoked
                    )
                self._revocations.append(result.record)
        return result.record

    def update_beneficiary(self, schedule_id: str, authority: str, new_beneficiary: str) -> VestingSchedule:
        with self._schedule_lock(schedule_id):
            schedule = self.get_schedule(schedule_id)
            self._require_authority(self.get_pool(schedule.pool), authority)
            updated = controller.update_beneficiary(schedule, new_beneficiary)
            with self._lock:
                self._compare_and_swap(schedule_id, schedule, updated)
                if updated.beneficiary != schedule.beneficiary:
                    self._move_allocation(schedule, updated.beneficiary)
        logger.info(
            "Schedule %s reassigned to %s",
            schedule_id,
            updated.beneficiary,
            extra={"event": "ledger.beneficiary_updated"},
        )
        return updated

    def close_schedule(self, schedule_id: str, beneficiary: str) -> VestingSchedule:
        """Remove a completed or revoked schedule; returns the final record."""
        with self._schedule_lock(schedule_id):
            schedule = self.get_schedule(schedule_id)
            if schedule.beneficiary != beneficiary:
                raise UnauthorizedError(
                    f"Caller {beneficiary} is not the beneficiary of schedule {schedule_id}.",
                    details={"schedule": schedule_id},
                )
            controller.ensure_closable(schedule)
            with self._lock:
                del self._schedules[schedule_id]
                self._schedule_locks.pop(schedule_id, None)
        logger.info("Schedule closed: %s", schedule_id, extra={"event": "ledger.schedule_closed"})
        return schedule

    # --- Stats ---

    def pool_stats(self, pool_id: str) -> PoolStats:
        with self._lock:
            pool = self.get_pool(pool_id)
            schedules = [s for s in self._schedules.values() if s.pool == pool_id]
        now = self._current_time()
        active = sum(1 for s in schedules if not controller.status(s, now).is_terminal)
        return PoolStats(
            pool_id=pool_id,
            name=pool.name,
            total_schedules=pool.total_schedules,
            active_schedules=active,
            total_allocated=pool.total_allocated,
            total_released=pool.total_released,
            total_revoked=pool.total_revoked,
            total_locked=pool.total_allocated - pool.total_released - pool.total_revoked,
            is_active=pool.is_active,
        )

    def beneficiary_stats(self, pool_id: str, wallet: str) -> BeneficiaryStats:
        with self._lock:
            account = self._beneficiaries.get((pool_id, wallet))
            schedules = [
                s for s in self._schedules.values() if s.pool == pool_id and s.beneficiary == wallet
            ]
        if account is None:
            raise ScheduleNotFoundError(
                f"No schedules for {wallet} in pool {pool_id}.",
                details={"pool": pool_id, "wallet": wallet},
            )
        now = self._current_time()
        return BeneficiaryStats(
            wallet=wallet,
            pool_id=pool_id,
            schedules_count=account.schedules_count,
            total_allocated=account.total_allocated,
            total_vested=sum(vested_amount(s, now) for s in schedules),
            total_released=account.total_released,
            total_releasable=sum(controller.releasable_amount(s, now) for s in schedules),
            total_revoked=account.total_revoked,
        )

    def status(self, schedule_id: str) -> VestingStatus:
        return controller.status(self.get_schedule(schedule_id), self._current_time())

    # --- Internals ---

    def _schedule_lock(self, schedule_id: str) -> threading.RLock:
        with self._lock:
            lock = self._schedule_locks.get(schedule_id)
        if lock is None:
            raise ScheduleNotFoundError(
                f"Vesting schedule {schedule_id} not found.", details={"schedule": schedule_id}
            )
        return lock

    def _check_milestone_sum(self, vesting_type: VestingType) -> None:
        if not self.config.strict_milestone_sum or not isinstance(vesting_type, MilestoneVesting):
            return
        percentage_sum = sum(m.percentage for m in vesting_type.milestones)
        if percentage_sum > MAX_BASIS_POINTS:
            raise InvalidScheduleError(
                "Milestone percentages exceed 100%",
                details={"percentage_sum": percentage_sum},
            )

    def _move_allocation(self, schedule: VestingSchedule, new_wallet: str) -> None:
        """
        Shift the unreleased part of ``schedule`` from its current beneficiary
        account to ``new_wallet``. Released value stays with the old account.
        Caller must hold ``self._lock``.
        """
        remaining = schedule.remaining_amount
        old_key = (schedule.pool, schedule.beneficiary)
        old_account = self._beneficiaries.get(old_key)
        if old_account is not None:
            self._beneficiaries[old_key] = replace(
                old_account,
                total_allocated=old_account.total_allocated - remaining,
                schedules_count=old_account.schedules_count - 1,
            )

        new_key = (schedule.pool, new_wallet)
        new_account = self._beneficiaries.get(new_key) or BeneficiaryAccount(
            wallet=new_wallet, pool=schedule.pool, first_vesting_at=schedule.start_time
        )
        self._beneficiaries[new_key] = replace(
            new_account,
            total_allocated=new_account.total_allocated + remaining,
            schedules_count=new_account.schedules_count + 1,
            first_vesting_at=min(new_account.first_vesting_at, schedule.start_time),
        )

    def _compare_and_swap(
        self,
        schedule_id: str,
        expected: VestingSchedule,
        updated: VestingSchedule,
    ) -> None:
        current = self._schedules.get(schedule_id)
        if current != expected:
            raise ConcurrentModificationError(
                f"Schedule {schedule_id} changed while being updated.",
                details={"schedule": schedule_id},
            )
        self._schedules[schedule_id] = updated

    @staticmethod
    def _require_authority(pool: VestingPool, authority: str) -> None:
        if pool.authority != authority:
            raise UnauthorizedError(
                f"Caller {authority} is not the pool authority.",
                details={"authority": authority},
            )
