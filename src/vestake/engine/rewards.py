"""Reward-per-token accumulator for a fixed-rate rewards program.

Key Concepts:
- The program pays ``rate`` units per second between ``rewards_start`` and
  ``rewards_end``, split pro rata across whatever is staked at the time
- ``accumulated`` is the cumulative reward earned by one unit of stake,
  scaled by SCALE: accumulated += SCALE * elapsed * rate // total_staked
- Time during which nothing is staked accrues to nobody and is not
  redistributed later
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from .errors import InvalidAmount, InvalidDuration
from .fixed_point import ACCUMULATOR_MAX, RATE_MAX, SCALE, TIMESTAMP_MAX, check_width, checked_mul

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardsProgram:
    """Immutable rewards program parameters."""
    rate: int  # Reward units per second
    rewards_start: int
    rewards_end: int

    def __post_init__(self):
        if self.rewards_end <= self.rewards_start:
            raise InvalidDuration(
                f"Rewards end {self.rewards_end} must be after start {self.rewards_start}",
                details={"rewards_start": self.rewards_start, "rewards_end": self.rewards_end},
            )
        if self.rewards_start < 0:
            raise InvalidDuration("Rewards start cannot be negative.", details={"rewards_start": self.rewards_start})
        check_width(self.rewards_end, TIMESTAMP_MAX, "rewards end")
        if self.rate < 0:
            raise InvalidAmount(f"Rate cannot be negative, got {self.rate}", details={"rate": self.rate})
        check_width(self.rate, RATE_MAX, "rate")

    @classmethod
    def from_total(cls, total_rewards: int, rewards_start: int, rewards_end: int) -> "RewardsProgram":
        """Derive the per-second rate from a total budget over the program window."""
        if rewards_end <= rewards_start:
            raise InvalidDuration(
                f"Rewards end {rewards_end} must be after start {rewards_start}",
                details={"rewards_start": rewards_start, "rewards_end": rewards_end},
            )
        if total_rewards < 0:
            raise InvalidAmount(
                f"Total rewards cannot be negative, got {total_rewards}", details={"total_rewards": total_rewards}
            )
        rate = total_rewards // (rewards_end - rewards_start)
        return cls(rate=rate, rewards_start=rewards_start, rewards_end=rewards_end)

    @property
    def duration(self) -> int:
        return self.rewards_end - self.rewards_start

    @property
    def total_payable(self) -> int:
        """Rewards paid over the whole program if something is always staked."""
        return self.rate * self.duration


@dataclass(frozen=True)
class RewardsPerToken:
    """Snapshot of the global accumulator."""
    accumulated: int = 0  # Scaled by SCALE
    last_updated: int = 0


class RewardAccumulator:
    """Global rewards-per-token counter.

    :meth:`sync` is pure and returns a new snapshot; :meth:`commit` applies
    it. Both ``accumulated`` and ``last_updated`` only ever move forward.
    """

    def __init__(self, program: RewardsProgram, state: Optional[RewardsPerToken] = None):
        self.program = program
        self.state = state or RewardsPerToken(accumulated=0, last_updated=program.rewards_start)

    @property
    def accumulated(self) -> int:
        return self.state.accumulated

    @property
    def last_updated(self) -> int:
        return self.state.last_updated

    def sync(self, now: int, total_staked: int) -> RewardsPerToken:
        """
        Accumulator state as of ``now`` without persisting it.

        Args:
            now: Current timestamp
            total_staked: Total amount staked since the last update

        Returns:
            Updated snapshot (the current one if nothing changed)
        """
        current = self.state
        program = self.program
        if now < program.rewards_start:
            return current

        update_time = min(now, program.rewards_end)
        elapsed = update_time - current.last_updated
        if elapsed <= 0:
            return current

        if total_staked == 0:
            return replace(current, last_updated=update_time)

        increment = checked_mul(SCALE, elapsed, program.rate, name="rewards per token product") // total_staked
        accumulated = check_width(current.accumulated + increment, ACCUMULATOR_MAX, "rewards per token")
        return RewardsPerToken(accumulated=accumulated, last_updated=update_time)

    def commit(self, now: int, total_staked: int) -> RewardsPerToken:
        """Apply :meth:`sync` and persist it if ``last_updated`` advanced."""
        updated = self.sync(now, total_staked)
        if updated.last_updated != self.state.last_updated:
            logger.debug(
                "Accumulator %s -> %s at t=%s (total staked %s)",
                self.state.accumulated, updated.accumulated, updated.last_updated, total_staked,
            )
            self.state = updated
        return self.state

    def rewards_per_token(self, now: int, total_staked: int) -> int:
        """Scaled rewards per token as of ``now``."""
        return self.sync(now, total_staked).accumulated
