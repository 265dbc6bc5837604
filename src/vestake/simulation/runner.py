"""Simulation runner - replay a staking program and vesting releases over time.

Key Features:
- Deterministic: a single seeded numpy Generator drives every staker decision
- All operations go through the real ledgers on a shared ManualClock
- Snapshots and invariant checks after every step
- Tracks emitted vs distributed rewards to expose rounding dust and idle time
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..config.schema import Config
from ..engine.accounting import LedgerSnapshot, take_snapshot
from ..engine.asset import AssetLedger
from ..engine.audit import AuditTrail
from ..engine.clock import ManualClock
from ..engine.errors import LedgerError
from ..engine.rewards import RewardsProgram
from ..engine.staking import StakeLedger
from ..engine.vesting import VestingLedger
from ..validation.sanity_checks import check_stake_ledger, check_vesting_ledger

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Complete simulation result."""
    config: Config
    snapshots: List[LedgerSnapshot]
    metrics_over_time: List[Dict[str, Any]]
    final_metrics: Dict[str, Any]
    invariant_violations: List[str] = field(default_factory=list)
    rejected_operations: List[str] = field(default_factory=list)
    audit: Optional[AuditTrail] = None


class SimulationRunner:
    """Drive the vesting and stake ledgers through a simulated population."""

    def __init__(self, config: Config):
        """
        Initialize simulation runner.

        Args:
            config: Simulation configuration
        """
        self.config = config
        self.clock = ManualClock(0)
        self.audit = AuditTrail("simulation")
        self.asset = AssetLedger(symbol=config.asset.symbol, decimals=config.asset.decimals)

        self.vesting = VestingLedger(
            asset=self.asset,
            controller=config.vesting.controller,
            time_provider=self.clock,
            audit=self.audit,
        )
        self.program = RewardsProgram.from_total(
            config.staking.total_rewards,
            config.staking.rewards_start,
            config.staking.rewards_end,
        )
        self.staking = StakeLedger(
            asset=self.asset,
            program=self.program,
            controller=config.staking.controller,
            minimum_stake=config.staking.minimum_stake,
            lock_period=config.staking.lock_period,
            time_provider=self.clock,
            audit=self.audit,
        )
        self.stakers = [f"staker-{i:04d}" for i in range(config.simulation.num_stakers)]

        self._invariant_violations: List[str] = []
        self._rejected: List[str] = []
        self._rewards_paid = 0
        self._rewards_emitted = 0
        self._idle_seconds = 0

    def _setup(self) -> None:
        """Mint balances, fund both ledgers and register schedules."""
        config = self.config
        vesting_controller = config.vesting.controller
        staking_controller = config.staking.controller

        self.asset.mint(vesting_controller, config.vesting.funding)
        if config.vesting.funding:
            self.asset.transfer(vesting_controller, self.vesting.address, config.vesting.funding)
        for schedule in config.vesting.schedules:
            self.vesting.create_schedule(
                vesting_controller,
                schedule.beneficiary,
                start=schedule.start,
                cliff_delay=schedule.cliff_delay,
                duration=schedule.duration,
                total_amount=schedule.total_amount,
                cliff_allowance=schedule.cliff_allowance,
            )

        funding = self.program.total_payable
        if funding:
            self.asset.mint(staking_controller, funding)
            self.asset.approve(staking_controller, self.staking.address, funding)
            self.staking.fund(staking_controller, funding)

        for staker in self.stakers:
            self.asset.mint(staker, config.simulation.balance_per_staker)

    def run(self, random_seed: int = None) -> SimulationResult:
        """
        Run the simulation.

        Args:
            random_seed: Random seed (defaults to config value)

        Returns:
            Simulation result
        """
        if random_seed is None:
            random_seed = self.config.simulation.random_seed
        rng = np.random.default_rng(random_seed)

        self._setup()
        snapshots = [take_snapshot(self.vesting, self.staking, self.clock.now)]
        metrics_over_time = [self._compute_metrics(snapshots[-1])]

        sim = self.config.simulation
        for step in range(1, sim.num_steps + 1):
            now = step * sim.step_seconds
            self._track_emission(self.clock.now, now)
            self.clock.set(now)

            previous_accumulator = self.staking.accumulator.state
            self._release_vesting()
            self._step_stakers(rng)

            snapshot = take_snapshot(self.vesting, self.staking, now)
            snapshots.append(snapshot)
            metrics_over_time.append(self._compute_metrics(snapshot))

            errors = check_vesting_ledger(self.vesting) + check_stake_ledger(self.staking, previous_accumulator)
            for error in errors:
                message = f"t={now}: {error}"
                logger.error("Invariant violation %s", message)
                self._invariant_violations.append(message)

        final_metrics = self._compute_final_metrics(snapshots[-1], metrics_over_time)
        logger.info(
            "Simulation finished: %d steps, %d audit records, %d violations",
            sim.num_steps, len(self.audit), len(self._invariant_violations),
        )
        return SimulationResult(
            config=self.config,
            snapshots=snapshots,
            metrics_over_time=metrics_over_time,
            final_metrics=final_metrics,
            invariant_violations=list(self._invariant_violations),
            rejected_operations=list(self._rejected),
            audit=self.audit,
        )

    def _track_emission(self, previous: int, now: int) -> None:
        """Account for rewards emitted between two steps at the current total stake."""
        start = max(previous, self.program.rewards_start)
        end = min(now, self.program.rewards_end)
        if end <= start:
            return
        if self.staking.total_staked > 0:
            self._rewards_emitted += self.program.rate * (end - start)
        else:
            self._idle_seconds += end - start

    def _release_vesting(self) -> None:
        for beneficiary in list(self.vesting.schedules):
            self.vesting.release_all(beneficiary)

    def _attempt(self, description: str, operation, *args) -> Optional[Any]:
        try:
            return operation(*args)
        except LedgerError as exc:
            logger.warning("Rejected %s: %s", description, exc.message)
            self._rejected.append(f"t={self.clock.now} {description}: {exc.kind}: {exc.message}")
            return None

    def _draw_stake(self, rng: np.random.Generator, staker: str) -> int:
        sim = self.config.simulation
        amount = int(rng.integers(sim.stake_min, sim.stake_max, endpoint=True))
        return min(amount, self.asset.balance_of(staker))

    def _stake(self, staker: str, amount: int):
        self.asset.approve(staker, self.staking.address, amount)
        return self.staking.stake(staker, amount)

    def _step_stakers(self, rng: np.random.Generator) -> None:
        sim = self.config.simulation
        now = self.clock.now
        draws = rng.random((len(self.stakers), 4))

        for staker, (arrive, topup, claim, leave) in zip(self.stakers, draws):
            stake = self.staking.stake_of(staker)
            if stake.amount == 0:
                if arrive < sim.arrival_probability:
                    amount = self._draw_stake(rng, staker)
                    if amount > self.staking.minimum_stake:
                        self._attempt(f"stake {staker}", self._stake, staker, amount)
                continue

            if now >= self.staking.unlock_time(staker) and leave < sim.exit_probability:
                paid = self._attempt(f"unstake {staker}", self.staking.unstake, staker)
                if paid is not None:
                    self._rewards_paid += paid - stake.amount
                continue

            if claim < sim.claim_probability and self.staking.current_user_rewards(staker, now) > 0:
                paid = self._attempt(f"claim {staker}", self.staking.claim, staker)
                if paid is not None:
                    self._rewards_paid += paid

            if topup < sim.topup_probability:
                amount = self._draw_stake(rng, staker)
                if amount > self.staking.minimum_stake:
                    self._attempt(f"top up {staker}", self._stake, staker, amount)

    def _rewards_distributed(self, now: int) -> int:
        """Rewards paid plus rewards every staker could claim at ``now``."""
        users = set(self.staking.stakes) | set(self.staking.rewards)
        outstanding = sum(self.staking.current_user_rewards(user, now) for user in users)
        return self._rewards_paid + outstanding

    def _compute_metrics(self, snapshot: LedgerSnapshot) -> Dict[str, Any]:
        return {
            't': snapshot.t,
            'total_staked': snapshot.total_staked,
            'active_stakers': snapshot.active_stakers,
            'rewards_per_token': snapshot.accumulated,
            'rewards_emitted': self._rewards_emitted,
            'rewards_distributed': self._rewards_distributed(snapshot.t),
            'rewards_paid': self._rewards_paid,
            'idle_seconds': self._idle_seconds,
            'vesting_released': snapshot.vesting_released,
            'committed_total': snapshot.committed_total,
            'reward_reserve': snapshot.reward_reserve,
        }

    def _compute_final_metrics(
        self,
        final: LedgerSnapshot,
        metrics_over_time: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        staked_series = np.array([m['total_staked'] for m in metrics_over_time], dtype=float)
        last = metrics_over_time[-1]
        return {
            'final_total_staked': final.total_staked,
            'final_active_stakers': final.active_stakers,
            'peak_total_staked': int(staked_series.max()) if staked_series.size else 0,
            'mean_total_staked': float(staked_series.mean()) if staked_series.size else 0.0,
            'rewards_emitted': last['rewards_emitted'],
            'rewards_distributed': last['rewards_distributed'],
            'rounding_dust': last['rewards_emitted'] - last['rewards_distributed'],
            'idle_seconds': last['idle_seconds'],
            'vesting_released': final.vesting_released,
            'committed_total': final.committed_total,
            'vesting_withdrawable': final.withdrawable,
            'reward_reserve': final.reward_reserve,
            'audit_records': len(self.audit),
            'rejected_operations': len(self._rejected),
            'invariant_violations': len(self._invariant_violations),
        }
