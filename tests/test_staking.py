"""Unit tests for the stake ledger.

Tests verify:
- Pro rata reward accrual for one and two stakers
- Lazy reconciliation is idempotent and matches the read-only projection
- Lock period boundaries and relocking on additional stakes
- Claim, unstake and funding bookkeeping
- All-or-nothing rollback, width overflow and serialized access
"""

import threading

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from vestake.engine.asset import AssetLedger
from vestake.engine.audit import AuditTrail
from vestake.engine.clock import ManualClock
from vestake.engine.errors import (
    ArithmeticOverflow,
    BelowMinimum,
    ClockError,
    InsufficientAllowance,
    InvalidAddress,
    InvalidAmount,
    LockActive,
    NothingStaked,
    NothingToClaim,
    Unauthorized,
)
from vestake.engine.fixed_point import RATE_MAX, SCALE
from vestake.engine.rewards import RewardsProgram
from vestake.engine.staking import StakeLedger
from vestake.validation.sanity_checks import check_stake_ledger

CONTROLLER = "treasury"
POOL = "stake-ledger"


def make_ledger(asset, clock, lock_period=0, minimum_stake=0, program=None, funding=10_000):
    program = program or RewardsProgram(rate=10, rewards_start=0, rewards_end=1000)
    ledger = StakeLedger(
        asset=asset,
        program=program,
        controller=CONTROLLER,
        minimum_stake=minimum_stake,
        lock_period=lock_period,
        address=POOL,
        time_provider=clock,
    )
    if funding:
        asset.mint(CONTROLLER, funding)
        asset.approve(CONTROLLER, POOL, funding)
        ledger.fund(CONTROLLER, funding)
    return ledger


def give(asset, user, amount=1_000):
    asset.mint(user, amount)
    asset.approve(user, POOL, amount)


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def asset():
    asset = AssetLedger(symbol="VST")
    for user in ("alice", "bob"):
        give(asset, user)
    return asset


@pytest.fixture
def ledger(asset, clock):
    return make_ledger(asset, clock)


@pytest.fixture
def locked(asset, clock):
    return make_ledger(asset, clock, lock_period=50)


class TestAccrual:
    """Tests for pro rata reward accrual."""

    def test_single_staker(self, ledger, clock):
        """Sole staker earns rate * elapsed."""
        ledger.stake("alice", 100)
        clock.set(10)
        assert ledger.current_user_rewards("alice") == 100

    def test_two_stakers_share_pro_rata(self, ledger, clock):
        """A alone for 5s then shared with B for 5s."""
        ledger.stake("alice", 100)
        clock.set(5)
        ledger.stake("bob", 100)
        clock.set(10)
        assert ledger.current_user_rewards("alice") == 75
        assert ledger.current_user_rewards("bob") == 25

    def test_no_leakage_between_stakers(self, ledger, clock):
        """Sum of user rewards equals rate * elapsed when stake is always present."""
        ledger.stake("alice", 300)
        clock.set(7)
        ledger.stake("bob", 100)
        clock.set(20)
        total = ledger.current_user_rewards("alice") + ledger.current_user_rewards("bob")
        assert total <= 10 * 20
        assert total >= 10 * 20 - 2

    def test_zero_stake_interval_is_lost(self, ledger, clock):
        """Time before anyone stakes is not paid out later."""
        clock.set(500)
        ledger.stake("alice", 100)
        clock.set(510)
        assert ledger.current_user_rewards("alice") == 100

    def test_accrual_stops_at_program_end(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(5000)
        assert ledger.current_user_rewards("alice") == 10 * 1000
        assert ledger.current_rewards_per_token().last_updated == 1000

    def test_no_accrual_before_program_start(self, asset, clock):
        program = RewardsProgram(rate=10, rewards_start=100, rewards_end=200)
        ledger = make_ledger(asset, clock, program=program, funding=1000)
        ledger.stake("alice", 100)
        clock.set(90)
        assert ledger.current_user_rewards("alice") == 0
        clock.set(110)
        assert ledger.current_user_rewards("alice") == 100


class TestSyncUser:
    """Tests for lazy per-user reconciliation."""

    def test_sync_is_idempotent(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(10)
        first = ledger.sync_user("alice")
        second = ledger.sync_user("alice")
        assert first == second
        assert first.accumulated == 100
        assert first.checkpoint == ledger.accumulator.accumulated

    def test_projection_matches_sync(self, ledger, clock):
        """Read-only projection equals the persisted result of a sync."""
        ledger.stake("alice", 100)
        clock.set(3)
        ledger.stake("bob", 250)
        state_before = ledger.accumulator.state
        projected = ledger.current_user_rewards("alice", now=17)
        assert ledger.accumulator.state is state_before
        clock.set(17)
        assert ledger.sync_user("alice").accumulated == projected

    def test_sync_unknown_user(self, ledger, clock):
        """Syncing a user without a stake records the checkpoint and no rewards."""
        ledger.stake("alice", 100)
        clock.set(10)
        rewards = ledger.sync_user("carol")
        assert rewards.accumulated == 0
        assert rewards.checkpoint == ledger.accumulator.accumulated

    def test_checkpoints_never_ahead_of_accumulator(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(4)
        ledger.stake("bob", 50)
        clock.set(9)
        ledger.sync_user("alice")
        assert check_stake_ledger(ledger) == []


class TestStake:
    """Tests for stake preconditions and bookkeeping."""

    def test_stake_moves_funds(self, ledger, asset):
        ledger.stake("alice", 100)
        assert asset.balance_of("alice") == 900
        assert asset.balance_of(POOL) == 10_100
        assert ledger.total_staked == 100
        assert ledger.stake_of("alice").amount == 100

    def test_minimum_is_exclusive(self, asset, clock):
        ledger = make_ledger(asset, clock, minimum_stake=100)
        with pytest.raises(BelowMinimum):
            ledger.stake("alice", 100)
        ledger.stake("alice", 101)
        assert ledger.total_staked == 101

    def test_zero_amount_rejected(self, ledger):
        with pytest.raises(BelowMinimum):
            ledger.stake("alice", 0)

    def test_empty_user_rejected(self, ledger):
        with pytest.raises(InvalidAddress):
            ledger.stake("", 100)

    def test_failed_transfer_rolls_back(self, ledger, asset, clock):
        """A stake without allowance leaves no trace, accumulator included."""
        ledger.stake("alice", 100)
        asset.mint("carol", 500)
        clock.set(20)
        before = ledger.accumulator.state
        with pytest.raises(InsufficientAllowance):
            ledger.stake("carol", 500)
        assert ledger.accumulator.state == before
        assert ledger.total_staked == 100
        assert "carol" not in ledger.stakes
        assert "carol" not in ledger.rewards
        assert asset.balance_of("carol") == 500

    def test_additional_stake_settles_rewards_first(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(10)
        ledger.stake("alice", 100)
        assert ledger.rewards_of("alice").accumulated == 100
        clock.set(20)
        assert ledger.current_user_rewards("alice") == 200

    def test_audit_record_captures_state(self, ledger, clock):
        clock.set(10)
        ledger.stake("alice", 100)
        record = ledger.audit.by_operation("stake")[-1]
        assert record.actor == "alice"
        assert record.amount == 100
        assert record.timestamp == 10
        assert record.state["total_staked"] == 100
        assert record.state["checkpoint"] == ledger.accumulator.accumulated


class TestLock:
    """Tests for the withdrawal lock."""

    def test_unstake_before_lock_fails(self, locked, clock):
        locked.stake("alice", 100)
        clock.set(49)
        with pytest.raises(LockActive):
            locked.unstake("alice")
        assert locked.stake_of("alice").amount == 100

    def test_unstake_at_lock_boundary(self, locked, clock, asset):
        """Exactly at stake_timestamp + lock_period the stake is free."""
        locked.stake("alice", 100)
        clock.set(50)
        assert locked.unstake("alice") == 100 + 500
        assert asset.balance_of("alice") == 1_000 + 500

    def test_restake_relocks_whole_balance(self, locked, clock):
        locked.stake("alice", 100)
        clock.set(40)
        locked.stake("alice", 100)
        assert locked.unlock_time("alice") == 90
        clock.set(60)
        with pytest.raises(LockActive):
            locked.unstake("alice")
        clock.set(90)
        assert locked.unstake("alice") >= 200

    def test_claim_ignores_lock(self, locked, clock):
        locked.stake("alice", 100)
        clock.set(10)
        assert locked.claim("alice") == 100


class TestUnstakeAndClaim:
    """Tests for payouts."""

    def test_nothing_staked(self, ledger, clock):
        clock.set(10)
        with pytest.raises(NothingStaked):
            ledger.unstake("alice")

    def test_unstake_pays_stake_and_rewards(self, ledger, clock, asset):
        ledger.stake("alice", 100)
        clock.set(10)
        assert ledger.unstake("alice") == 200
        assert ledger.total_staked == 0
        assert ledger.stake_of("alice").amount == 0
        assert ledger.rewards_of("alice").accumulated == 0
        assert asset.balance_of("alice") == 1_100

    def test_unstake_twice(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(10)
        ledger.unstake("alice")
        with pytest.raises(NothingStaked):
            ledger.unstake("alice")

    def test_stake_after_end_capped(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(2000)
        assert ledger.unstake("alice") == 100 + 10_000
        assert ledger.reward_reserve() == 0

    def test_claim_keeps_stake(self, ledger, clock, asset):
        ledger.stake("alice", 100)
        clock.set(10)
        assert ledger.claim("alice") == 100
        assert ledger.stake_of("alice").amount == 100
        assert asset.balance_of("alice") == 1_000
        with pytest.raises(NothingToClaim):
            ledger.claim("alice")
        clock.set(15)
        assert ledger.claim("alice") == 50

    def test_claim_without_rewards(self, ledger):
        with pytest.raises(NothingToClaim):
            ledger.claim("bob")


class TestFunding:
    """Tests for reward funding."""

    def test_fund_tracks_total(self, ledger):
        assert ledger.funded_total == 10_000
        assert ledger.required_funding == 10_000
        assert ledger.reward_reserve() == 10_000

    def test_fund_requires_controller(self, ledger, asset):
        with pytest.raises(Unauthorized):
            ledger.fund("alice", 10)

    def test_fund_rejects_zero(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.fund(CONTROLLER, 0)


class TestSafety:
    """Tests for overflow, clock and concurrency handling."""

    def test_accumulator_overflow_fails_closed(self, asset, clock):
        program = RewardsProgram(rate=RATE_MAX, rewards_start=0, rewards_end=2 ** 31)
        ledger = make_ledger(asset, clock, program=program, funding=0)
        ledger.stake("alice", 1)
        clock.set(10 ** 6)
        with pytest.raises(ArithmeticOverflow):
            ledger.sync_user("alice")
        assert ledger.accumulator.last_updated == 0

    def test_backwards_clock_rejected(self, asset):
        times = iter([10, 10, 5])
        ledger = make_ledger(asset, lambda: next(times), funding=0)
        ledger.stake("alice", 100)
        ledger.sync_user("alice")
        with pytest.raises(ClockError):
            ledger.sync_user("alice")

    def test_concurrent_stakes_serialized(self, ledger, clock, asset):
        users = [f"user-{i}" for i in range(16)]
        for user in users:
            give(asset, user, 500)
        errors = []

        def stake_all(user):
            try:
                for _ in range(5):
                    ledger.stake(user, 100)
            except Exception as exc:  # surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=stake_all, args=(user,)) for user in users]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert ledger.total_staked == 16 * 500
        assert check_stake_ledger(ledger) == []

    def test_scaled_accumulator_value(self, ledger, clock):
        ledger.stake("alice", 100)
        clock.set(10)
        ledger.sync_user("alice")
        assert ledger.accumulator.accumulated == SCALE * 10 * 10 // 100

    def test_shared_trail_receives_records(self, asset, clock):
        """A caller-supplied trail is used as is, even while still empty."""
        trail = AuditTrail("shared")
        ledger = StakeLedger(
            asset=asset,
            program=RewardsProgram(rate=10, rewards_start=0, rewards_end=1000),
            controller=CONTROLLER,
            address=POOL,
            time_provider=clock,
            audit=trail,
        )
        assert ledger.audit is trail
        ledger.stake("alice", 100)
        assert [r.operation for r in trail.records] == ["stake"]

    def test_concurrent_asset_transfers_conserve_supply(self):
        """Transfers from several threads on one asset ledger neither lose nor create units."""
        asset = AssetLedger(symbol="VST")
        holders = [f"holder-{i}" for i in range(8)]
        for holder in holders:
            asset.mint(holder, 10_000)

        def churn(index):
            sender = holders[index]
            receiver = holders[(index + 1) % len(holders)]
            for _ in range(2_000):
                asset.transfer(sender, receiver, 1)

        threads = [threading.Thread(target=churn, args=(i,)) for i in range(len(holders))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(asset.balance_of(h) for h in holders) == asset.total_supply == 80_000
        assert all(asset.balance_of(h) == 10_000 for h in holders)
