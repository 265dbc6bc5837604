"""Stake ledger - pooled staking with lazily reconciled rewards.

Key Concepts:
- Stakers share the program's reward rate pro rata to their stake
- Each user keeps a checkpoint of the global accumulator; owed rewards are
  amount * (accumulated - checkpoint) // SCALE, settled whenever the user
  interacts
- Every operation commits the accumulator first, then the caller's
  checkpoint, and only then changes balances
- Staking again resets the lock clock for the whole balance
"""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Optional

from .asset import AssetLedger
from .audit import AuditTrail
from .base import SerializedLedger
from .clock import TimeProvider
from .errors import (
    BelowMinimum,
    InvalidAddress,
    InvalidAmount,
    InvalidDuration,
    LockActive,
    NothingStaked,
    NothingToClaim,
)
from .fixed_point import ACCUMULATOR_MAX, SCALE, check_width, mul_div
from .rewards import RewardAccumulator, RewardsPerToken, RewardsProgram

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserStake:
    """Staked balance and the time of the last stake increase."""
    amount: int = 0
    stake_timestamp: int = 0


@dataclass(frozen=True)
class UserRewards:
    """Rewards owed to a user and the accumulator value they were settled at."""
    accumulated: int = 0
    checkpoint: int = 0


def accrue(rewards: UserRewards, staked: int, accumulated: int) -> UserRewards:
    """Settle ``rewards`` against the accumulator value ``accumulated``."""
    if rewards.checkpoint == accumulated:
        return rewards
    delta = mul_div(staked, accumulated - rewards.checkpoint, SCALE, name="user rewards product")
    return UserRewards(
        accumulated=check_width(rewards.accumulated + delta, ACCUMULATOR_MAX, "user rewards"),
        checkpoint=accumulated,
    )


class StakeLedger(SerializedLedger):
    """Staking pool paying a fixed reward rate to its stakers.

    The pool's asset balance holds both the stakes and the reward budget;
    the controller funds the budget with :meth:`fund`.
    """

    def __init__(
        self,
        asset: AssetLedger,
        program: RewardsProgram,
        controller: str,
        minimum_stake: int = 0,
        lock_period: int = 0,
        address: str = "stake-ledger",
        time_provider: Optional[TimeProvider] = None,
        audit: Optional[AuditTrail] = None,
    ):
        """
        Initialize stake ledger.

        Args:
            asset: Asset ledger holding stakes and rewards
            program: Reward rate and window
            controller: Identity allowed to fund rewards
            minimum_stake: Stakes must be strictly greater than this
            lock_period: Seconds a stake must stay before it can be withdrawn
            address: This ledger's holder identity on the asset ledger
            time_provider: Zero-arg callable returning integer seconds
            audit: Audit trail for operation records
        """
        super().__init__(asset, address, controller, time_provider, audit)
        if minimum_stake < 0:
            raise InvalidAmount("Minimum stake cannot be negative.", details={"minimum_stake": minimum_stake})
        if lock_period < 0:
            raise InvalidDuration("Lock period cannot be negative.", details={"lock_period": lock_period})
        self.program = program
        self.minimum_stake = minimum_stake
        self.lock_period = lock_period
        self.accumulator = RewardAccumulator(program)
        self._stakes: dict[str, UserStake] = {}
        self._rewards: dict[str, UserRewards] = {}
        self.total_staked = 0
        self.funded_total = 0

    # Reads

    @property
    def stakes(self) -> Mapping[str, UserStake]:
        return MappingProxyType(self._stakes)

    @property
    def rewards(self) -> Mapping[str, UserRewards]:
        return MappingProxyType(self._rewards)

    @property
    def required_funding(self) -> int:
        return self.program.total_payable

    def stake_of(self, user: str) -> UserStake:
        return self._stakes.get(user, UserStake())

    def rewards_of(self, user: str) -> UserRewards:
        return self._rewards.get(user, UserRewards())

    def unlock_time(self, user: str) -> int:
        return self.stake_of(user).stake_timestamp + self.lock_period

    def reward_reserve(self) -> int:
        """Pool balance not backing stakes."""
        return self.asset.balance_of(self.address) - self.total_staked

    def current_rewards_per_token(self, now: Optional[int] = None) -> RewardsPerToken:
        """Accumulator as a sync at ``now`` would leave it, without persisting."""
        with self._lock:
            if now is None:
                now = self._now()
            return self.accumulator.sync(now, self.total_staked)

    def current_user_rewards(self, user: str, now: Optional[int] = None) -> int:
        """Rewards ``user`` would hold after a sync at ``now``, without persisting."""
        with self._lock:
            snapshot = self.current_rewards_per_token(now)
            return accrue(self.rewards_of(user), self.stake_of(user).amount, snapshot.accumulated).accumulated

    # Reconciliation

    def _commit_accumulator(self, now: int) -> RewardsPerToken:
        self._touch("state", self.accumulator)
        return self.accumulator.commit(now, self.total_staked)

    def _sync_user(self, user: str, now: int) -> UserRewards:
        snapshot = self._commit_accumulator(now)
        rewards = self.rewards_of(user)
        if rewards.checkpoint == snapshot.accumulated:
            return rewards
        updated = accrue(rewards, self.stake_of(user).amount, snapshot.accumulated)
        self._put(self._rewards, user, updated)
        logger.debug(
            "Synced %s at t=%s: rewards %s -> %s, checkpoint %s",
            user, now, rewards.accumulated, updated.accumulated, updated.checkpoint,
        )
        return updated

    def _state_for(self, user: str) -> dict:
        rewards = self.rewards_of(user)
        return {
            "accumulated": self.accumulator.accumulated,
            "last_updated": self.accumulator.last_updated,
            "checkpoint": rewards.checkpoint,
            "user_rewards": rewards.accumulated,
            "user_stake": self.stake_of(user).amount,
            "total_staked": self.total_staked,
        }

    def sync_user(self, user: str) -> UserRewards:
        """Bring the accumulator and ``user``'s checkpoint up to now."""
        with self._operation("sync_user") as now:
            rewards = self._sync_user(user, now)
            self.audit.emit("sync_user", user, 0, now, self._state_for(user))
            return rewards

    # Mutations

    def stake(self, user: str, amount: int) -> UserStake:
        """
        Stake ``amount`` from ``user`` into the pool.

        Raises:
            BelowMinimum: amount <= minimum_stake
            InsufficientBalance / InsufficientAllowance: transfer into the pool failed
        """
        with self._operation("stake") as now:
            if not isinstance(user, str) or not user:
                raise InvalidAddress("Staker address cannot be empty.", details={"user": user})
            if amount <= self.minimum_stake:
                raise BelowMinimum(
                    f"Stake of {amount} must exceed the minimum of {self.minimum_stake}",
                    details={"amount": amount, "minimum_stake": self.minimum_stake},
                )

            self._sync_user(user, now)
            current = self.stake_of(user)
            updated = UserStake(
                amount=check_width(current.amount + amount, ACCUMULATOR_MAX, "user stake"),
                stake_timestamp=now,
            )
            self._set("total_staked", check_width(self.total_staked + amount, ACCUMULATOR_MAX, "total staked"))
            self._put(self._stakes, user, updated)
            self.asset.transfer_from(self.address, user, self.address, amount)

            logger.info("%s staked %s (balance %s, total %s)", user, amount, updated.amount, self.total_staked)
            self.audit.emit("stake", user, amount, now, self._state_for(user))
            return updated

    def unstake(self, user: str) -> int:
        """
        Withdraw ``user``'s whole stake together with all accrued rewards.

        Returns:
            Total paid out (stake + rewards)

        Raises:
            LockActive: now < stake_timestamp + lock_period
            NothingStaked: user has no stake
        """
        with self._operation("unstake") as now:
            current = self.stake_of(user)
            unlock_at = current.stake_timestamp + self.lock_period
            if now < unlock_at:
                raise LockActive(
                    f"Stake of {user} is locked until {unlock_at}",
                    details={"user": user, "now": now, "unlock_time": unlock_at},
                )
            if current.amount == 0:
                raise NothingStaked(f"{user} has nothing staked", details={"user": user})

            rewards = self._sync_user(user, now)
            self._set("total_staked", self.total_staked - current.amount)
            self._put(self._stakes, user, replace(current, amount=0))
            self._put(self._rewards, user, replace(rewards, accumulated=0))
            payout = current.amount + rewards.accumulated
            self.asset.transfer(self.address, user, payout)

            logger.info(
                "%s unstaked %s with %s rewards (total %s)",
                user, current.amount, rewards.accumulated, self.total_staked,
            )
            self.audit.emit(
                "unstake", user, payout, now,
                {**self._state_for(user), "stake_paid": current.amount, "rewards_paid": rewards.accumulated},
            )
            return payout

    def claim(self, user: str) -> int:
        """
        Pay out ``user``'s accrued rewards, leaving the stake in place.

        Raises:
            NothingToClaim: no rewards accrued
        """
        with self._operation("claim") as now:
            rewards = self._sync_user(user, now)
            if rewards.accumulated == 0:
                raise NothingToClaim(f"{user} has no rewards to claim", details={"user": user, "now": now})
            self._put(self._rewards, user, replace(rewards, accumulated=0))
            self.asset.transfer(self.address, user, rewards.accumulated)

            logger.info("%s claimed %s rewards", user, rewards.accumulated)
            self.audit.emit("claim", user, rewards.accumulated, now, self._state_for(user))
            return rewards.accumulated

    def fund(self, caller: str, amount: int) -> int:
        """Move ``amount`` of reward budget from the controller into the pool."""
        with self._operation("fund") as now:
            self._require_controller(caller, "fund")
            if amount <= 0:
                raise InvalidAmount(f"Funding amount must be positive, got {amount}", details={"amount": amount})
            self._set("funded_total", self.funded_total + amount)
            self.asset.transfer_from(self.address, caller, self.address, amount)

            if self.funded_total < self.required_funding:
                logger.warning(
                    "Rewards underfunded: %s of %s required", self.funded_total, self.required_funding
                )
            self.audit.emit("fund", caller, amount, now, {"funded_total": self.funded_total})
            return self.funded_total
