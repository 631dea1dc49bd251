"""
Tests for the in-memory reference ledger: authorization, aggregates,
persistence of controller transitions and serialized concurrent releases.
"""

import threading

import pytest

from token_vesting.config import LedgerConfig
from token_vesting.constants import SECONDS_PER_DAY
from token_vesting.exceptions import (
    AlreadyRevokedError,
    InvalidScheduleError,
    NothingToReleaseError,
    PoolNotActiveError,
    PoolNotFoundError,
    ScheduleNotCompleteError,
    ScheduleNotFoundError,
    ScheduleRevokedError,
    UnauthorizedError,
)
from token_vesting.ledger import InMemoryVestingLedger
from token_vesting.schedule import (
    CliffLinearVesting,
    LinearVesting,
    Milestone,
    MilestoneVesting,
    VestingStatus,
)


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class TransferLog:
    def __init__(self):
        self.transfers = []
        self._lock = threading.Lock()

    def __call__(self, source: str, destination: str, amount: int) -> None:
        with self._lock:
            self.transfers.append((source, destination, amount))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transfers():
    return TransferLog()


@pytest.fixture
def ledger(clock, transfers):
    return InMemoryVestingLedger(time_provider=clock, transfer=transfers)


@pytest.fixture
def pool_id(ledger):
    return ledger.create_pool("admin", "mint", "vault", "Team Vesting Pool")


@pytest.fixture
def linear_id(ledger, pool_id):
    return ledger.create_schedule(
        pool_id, "admin", "alice", LinearVesting(),
        total_amount=1_000_000, start_time=0, duration=1000, is_revocable=True,
    )


class TestPools:
    def test_create_pool(self, ledger, pool_id):
        pool = ledger.get_pool(pool_id)
        assert pool.authority == "admin"
        assert pool.name == "Team Vesting Pool"
        assert pool.is_active
        assert pool_id.startswith(ledger.config.program_id)

    def test_unknown_pool(self, ledger):
        with pytest.raises(PoolNotFoundError):
            ledger.get_pool("missing")

    def test_deactivated_pool_rejects_schedules(self, ledger, pool_id):
        ledger.deactivate_pool(pool_id, "admin")
        with pytest.raises(PoolNotActiveError):
            ledger.create_schedule(pool_id, "admin", "bob", LinearVesting(), 10, 0, 10, False)

    def test_only_authority_deactivates(self, ledger, pool_id):
        with pytest.raises(UnauthorizedError):
            ledger.deactivate_pool(pool_id, "mallory")


class TestCreateSchedule:
    def test_updates_pool_and_beneficiary_aggregates(self, ledger, pool_id, linear_id):
        pool = ledger.get_pool(pool_id)
        assert pool.total_schedules == 1
        assert pool.total_allocated == 1_000_000

        account = ledger.get_beneficiary(pool_id, "alice")
        assert account.schedules_count == 1
        assert account.total_allocated == 1_000_000
        assert account.first_vesting_at == 0

    def test_only_authority_creates(self, ledger, pool_id):
        with pytest.raises(UnauthorizedError):
            ledger.create_schedule(pool_id, "mallory", "bob", LinearVesting(), 10, 0, 10, False)

    def test_invalid_schedule_is_not_persisted(self, ledger, pool_id):
        with pytest.raises(InvalidScheduleError):
            ledger.create_schedule(pool_id, "admin", "bob", LinearVesting(), 0, 0, 10, False)
        assert ledger.get_pool(pool_id).total_schedules == 0
        assert ledger.list_schedules(pool_id) == {}

    def test_lenient_milestone_sum_by_default(self, ledger, pool_id):
        over = MilestoneVesting(milestones=(Milestone(1, 8000), Milestone(2, 8000)))
        ledger.create_schedule(pool_id, "admin", "bob", over, 100, 0, 10, False)

    def test_strict_milestone_sum(self, clock, transfers):
        strict = InMemoryVestingLedger(
            config=LedgerConfig(strict_milestone_sum=True), time_provider=clock, transfer=transfers
        )
        pool_id = strict.create_pool("admin", "mint", "vault", "Strict")
        over = MilestoneVesting(milestones=(Milestone(1, 8000), Milestone(2, 8000)))
        with pytest.raises(InvalidScheduleError):
            strict.create_schedule(pool_id, "admin", "bob", over, 100, 0, 10, False)

    def test_malformed_milestone_reports_invalid_schedule(self, clock, transfers):
        strict = InMemoryVestingLedger(
            config=LedgerConfig(strict_milestone_sum=True), time_provider=clock, transfer=transfers
        )
        pool_id = strict.create_pool("admin", "mint", "vault", "Strict")
        broken = MilestoneVesting(milestones=("not-a-milestone",))
        with pytest.raises(InvalidScheduleError):
            strict.create_schedule(pool_id, "admin", "bob", broken, 100, 0, 10, False)


class TestRelease:
    def test_release_transfers_and_records(self, ledger, clock, transfers, pool_id, linear_id):
        clock.now = 250
        record = ledger.release(linear_id, "alice")

        assert record.amount == 250_000
        assert transfers.transfers == [("vault", "alice", 250_000)]
        assert ledger.get_schedule(linear_id).released_amount == 250_000
        assert ledger.get_pool(pool_id).total_released == 250_000
        assert ledger.get_beneficiary(pool_id, "alice").last_release_at == 250
        assert ledger.release_history(linear_id) == [record]

        with pytest.raises(NothingToReleaseError):
            ledger.release(linear_id, "alice")

    def test_only_beneficiary_releases(self, ledger, clock, linear_id):
        clock.now = 500
        with pytest.raises(UnauthorizedError):
            ledger.release(linear_id, "mallory")

    def test_failed_transfer_is_not_persisted(self, clock, pool_id, linear_id, ledger):
        def failing_transfer(source, destination, amount):
            raise RuntimeError("vault offline")

        ledger._transfer = failing_transfer
        clock.now = 500
        with pytest.raises(RuntimeError):
            ledger.release(linear_id, "alice")
        assert ledger.get_schedule(linear_id).released_amount == 0
        assert ledger.get_pool(pool_id).total_released == 0
        assert ledger.release_history(linear_id) == []

    def test_transfer_runs_after_release_is_stored(self, clock, linear_id, ledger):
        seen = []

        def inspecting_transfer(source, destination, amount):
            seen.append((amount, ledger.get_schedule(linear_id).released_amount))

        ledger._transfer = inspecting_transfer
        clock.now = 400
        ledger.release(linear_id, "alice")
        assert seen == [(400_000, 400_000)]

    def test_unknown_schedule(self, ledger):
        with pytest.raises(ScheduleNotFoundError):
            ledger.release("missing", "alice")

    def test_concurrent_releases_never_double_spend(self, ledger, clock, transfers, linear_id):
        clock.now = 600
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                ledger.release(linear_id, "alice")
            except NothingToReleaseError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(amount for _, _, amount in transfers.transfers) == 600_000
        assert len(transfers.transfers) == 1
        assert len(errors) == 7
        assert ledger.get_schedule(linear_id).released_amount == 600_000


class TestRevoke:
    def test_revoke_scenario(self, ledger, clock, pool_id, linear_id):
        clock.now = 250
        ledger.release(linear_id, "alice")
        clock.now = 260
        record = ledger.revoke(linear_id, "admin", "left the company")

        assert record.amount_revoked == 750_000
        assert record.revoked_by == "admin"
        assert ledger.get_pool(pool_id).total_revoked == 750_000
        assert ledger.get_beneficiary(pool_id, "alice").total_revoked == 750_000
        assert ledger.revocations() == [record]

        clock.now = 900
        stats = ledger.beneficiary_stats(pool_id, "alice")
        assert stats.total_vested == 250_000
        assert stats.total_releasable == 0
        with pytest.raises(ScheduleRevokedError):
            ledger.release(linear_id, "alice")

    def test_only_authority_revokes(self, ledger, linear_id):
        with pytest.raises(UnauthorizedError):
            ledger.revoke(linear_id, "alice", "self-service")

    def test_revoke_twice(self, ledger, linear_id):
        ledger.revoke(linear_id, "admin", "first")
        with pytest.raises(AlreadyRevokedError):
            ledger.revoke(linear_id, "admin", "second")


class TestLifecycle:
    def test_update_beneficiary(self, ledger, clock, linear_id):
        ledger.update_beneficiary(linear_id, "admin", "erin")
        clock.now = 100
        with pytest.raises(UnauthorizedError):
            ledger.release(linear_id, "alice")
        assert ledger.release(linear_id, "erin").amount == 100_000

    def test_update_beneficiary_moves_unreleased_allocation(self, ledger, clock, pool_id, linear_id):
        clock.now = 200
        ledger.release(linear_id, "alice")
        ledger.update_beneficiary(linear_id, "admin", "erin")

        alice = ledger.get_beneficiary(pool_id, "alice")
        assert alice.total_allocated == 200_000
        assert alice.total_released == 200_000
        assert alice.schedules_count == 0

        erin = ledger.get_beneficiary(pool_id, "erin")
        assert erin.total_allocated == 800_000
        assert erin.total_released == 0
        assert erin.schedules_count == 1
        assert erin.first_vesting_at == 0

        clock.now = 500
        stats = ledger.beneficiary_stats(pool_id, "erin")
        assert stats.schedules_count == 1
        assert stats.total_releasable == 300_000

        ledger.release(linear_id, "erin")
        erin = ledger.get_beneficiary(pool_id, "erin")
        assert erin.total_released == 300_000
        assert erin.total_allocated == 800_000
        assert ledger.beneficiary_stats(pool_id, "alice").total_vested == 0

    def test_close_requires_completion(self, ledger, clock, linear_id):
        clock.now = 500
        with pytest.raises(ScheduleNotCompleteError):
            ledger.close_schedule(linear_id, "alice")

        clock.now = 1000
        ledger.release(linear_id, "alice")
        assert ledger.status(linear_id) == VestingStatus.COMPLETED
        closed = ledger.close_schedule(linear_id, "alice")
        assert closed.is_completed
        with pytest.raises(ScheduleNotFoundError):
            ledger.get_schedule(linear_id)

    def test_close_revoked(self, ledger, linear_id):
        ledger.revoke(linear_id, "admin", "cancelled")
        ledger.close_schedule(linear_id, "alice")
        assert ledger.list_schedules() == {}

    def test_pool_stats(self, ledger, clock, pool_id, linear_id):
        other = ledger.create_schedule(
            pool_id, "admin", "bob",
            CliffLinearVesting(cliff_duration=365 * SECONDS_PER_DAY, cliff_percentage=2500),
            total_amount=2_000_000, start_time=0, duration=4 * 365 * SECONDS_PER_DAY, is_revocable=True,
        )
        clock.now = 1000
        ledger.release(linear_id, "alice")
        ledger.revoke(other, "admin", "restructure")

        stats = ledger.pool_stats(pool_id)
        assert stats.total_schedules == 2
        assert stats.active_schedules == 0
        assert stats.total_allocated == 3_000_000
        assert stats.total_released == 1_000_000
        assert stats.total_revoked == 2_000_000
        assert stats.total_locked == 0

    def test_list_schedules_filters(self, ledger, pool_id, linear_id):
        ledger.create_schedule(pool_id, "admin", "bob", LinearVesting(), 10, 0, 10, False)
        assert set(ledger.list_schedules(beneficiary="alice")) == {linear_id}
        assert len(ledger.list_schedules(pool_id=pool_id)) == 2

    def test_beneficiary_stats_unknown(self, ledger, pool_id):
        with pytest.raises(ScheduleNotFoundError):
            ledger.beneficiary_stats(pool_id, "nobody")


def test_time_provider_must_return_integer(transfers):
    ledger = InMemoryVestingLedger(time_provider=lambda: "soon", transfer=transfers)
    with pytest.raises(ValueError):
        ledger.create_pool("admin", "mint", "vault", "Bad Clock")
