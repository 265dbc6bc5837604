"""Sanity checks for configuration, live ledgers and simulation output."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config.schema import Config
from ..engine.accounting import LedgerSnapshot
from ..engine.rewards import RewardsPerToken
from ..engine.staking import StakeLedger
from ..engine.vesting import VestingLedger


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "input", "conservation", "solvency", "monotonicity"
    message: str
    details: Optional[str] = None


class SanityChecker:
    """Run sanity checks on configuration and ledger snapshots."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        vesting = self.config.vesting
        staking = self.config.staking
        simulation = self.config.simulation

        # Vesting solvency at registration time
        committed = vesting.committed
        if committed > vesting.funding:
            warnings.append(ValidationWarning(
                severity="error",
                category="solvency",
                message=f"Schedules commit {committed:,} but vesting funding is {vesting.funding:,}",
                details="Schedules beyond the funded amount will be rejected with InsufficientFunds"
            ))

        # Reward rate truncation
        window = staking.rewards_end - staking.rewards_start
        if staking.rate == 0 and staking.total_rewards > 0:
            warnings.append(ValidationWarning(
                severity="error",
                category="input",
                message="Total rewards are smaller than the program window; reward rate rounds to zero",
                details=f"total_rewards={staking.total_rewards:,}, window={window:,}s"
            ))
        elif staking.total_rewards % window:
            dust = staking.total_rewards - staking.rate * window
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message=f"{dust:,} reward units are lost to rate truncation",
                details=f"rate={staking.rate:,}/s over {window:,}s"
            ))

        if staking.lock_period >= window:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Lock period is at least as long as the rewards program",
                details=f"lock_period={staking.lock_period:,}s, window={window:,}s"
            ))

        # Simulation feasibility
        if simulation.stake_max <= staking.minimum_stake:
            warnings.append(ValidationWarning(
                severity="error",
                category="input",
                message="Every simulated stake is at or below the minimum stake",
                details=f"stake_max={simulation.stake_max:,}, minimum_stake={staking.minimum_stake:,}"
            ))
        if simulation.stake_max > simulation.balance_per_staker:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Stakers cannot afford the largest simulated stake",
                details=f"stake_max={simulation.stake_max:,}, balance={simulation.balance_per_staker:,}"
            ))
        if simulation.horizon_seconds < staking.rewards_end:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Simulation ends before the rewards program",
                details=f"horizon={simulation.horizon_seconds:,}s, rewards_end={staking.rewards_end:,}"
            ))

        return warnings

    def check_snapshot(
        self,
        snapshot: LedgerSnapshot,
        previous: Optional[LedgerSnapshot] = None
    ) -> List[ValidationWarning]:
        """Check one snapshot, and its progression from ``previous`` if given."""
        warnings = []

        is_valid, error = snapshot.validate_conservation()
        if not is_valid:
            warnings.append(ValidationWarning(severity="error", category="conservation", message=error))

        is_valid, error = snapshot.validate_solvency()
        if not is_valid:
            warnings.append(ValidationWarning(severity="error", category="solvency", message=error))

        if snapshot.last_updated > self.config.staking.rewards_end:
            warnings.append(ValidationWarning(
                severity="error",
                category="bounds",
                message=f"Accumulator updated past program end at t={snapshot.t}",
                details=f"last_updated={snapshot.last_updated}, rewards_end={self.config.staking.rewards_end}"
            ))

        if previous is not None:
            if snapshot.accumulated < previous.accumulated or snapshot.last_updated < previous.last_updated:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"Accumulator moved backwards between t={previous.t} and t={snapshot.t}",
                    details=(
                        f"accumulated {previous.accumulated} -> {snapshot.accumulated}, "
                        f"last_updated {previous.last_updated} -> {snapshot.last_updated}"
                    )
                ))
            if snapshot.vesting_released < previous.vesting_released:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"Released vesting amount decreased at t={snapshot.t}",
                ))

        return warnings

    def check_metrics(self, metrics: Dict[str, Any]) -> List[ValidationWarning]:
        """Check final metrics for leakage between rate and payouts."""
        warnings = []
        emitted = metrics.get('rewards_emitted', 0)
        distributed = metrics.get('rewards_distributed', 0)
        if distributed > emitted:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="More rewards distributed than the program emitted",
                details=f"distributed={distributed:,}, emitted={emitted:,}"
            ))
        if metrics.get('idle_seconds', 0) > 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="sustainability",
                message=f"{metrics['idle_seconds']:,}s of the program ran with nothing staked",
                details="Rewards for those intervals are never distributed"
            ))
        return warnings


def check_vesting_ledger(ledger: VestingLedger) -> List[str]:
    """Return invariant violations of a live vesting ledger."""
    errors = []
    unreleased = 0
    for beneficiary, schedule in ledger.schedules.items():
        unreleased += schedule.unreleased
        if not 0 <= schedule.released_amount <= schedule.total_amount:
            errors.append(f"{beneficiary}: released {schedule.released_amount} outside [0, {schedule.total_amount}]")
        if not 0 <= schedule.cliff_delay <= schedule.duration:
            errors.append(f"{beneficiary}: cliff delay {schedule.cliff_delay} outside [0, {schedule.duration}]")
        if schedule.cliff_allowance > schedule.total_amount:
            errors.append(f"{beneficiary}: cliff allowance exceeds total")
    if unreleased != ledger.committed_total:
        errors.append(f"Committed total {ledger.committed_total} != unreleased sum {unreleased}")
    if ledger.total_balance < ledger.committed_total:
        errors.append(f"Balance {ledger.total_balance} below committed total {ledger.committed_total}")
    return errors


def check_stake_ledger(ledger: StakeLedger, previous: Optional[RewardsPerToken] = None) -> List[str]:
    """Return invariant violations of a live stake ledger."""
    errors = []
    stakes_sum = 0
    for user, stake in ledger.stakes.items():
        stakes_sum += stake.amount
        if stake.amount < 0:
            errors.append(f"{user}: negative stake {stake.amount}")
    if stakes_sum != ledger.total_staked:
        errors.append(f"Total staked {ledger.total_staked} != stake sum {stakes_sum}")

    state = ledger.accumulator.state
    for user, rewards in ledger.rewards.items():
        if rewards.checkpoint > state.accumulated:
            errors.append(f"{user}: checkpoint {rewards.checkpoint} ahead of accumulator {state.accumulated}")
    if state.last_updated > ledger.program.rewards_end:
        errors.append(f"Accumulator last_updated {state.last_updated} past program end")
    if previous is not None:
        if state.accumulated < previous.accumulated:
            errors.append(f"Accumulator decreased {previous.accumulated} -> {state.accumulated}")
        if state.last_updated < previous.last_updated:
            errors.append(f"Accumulator last_updated decreased {previous.last_updated} -> {state.last_updated}")
    if ledger.reward_reserve() < 0:
        errors.append(f"Pool balance below total staked by {-ledger.reward_reserve()}")
    return errors


def validate_simulation_results(
    config: Config,
    snapshots: List[LedgerSnapshot],
    metrics_over_time: List[Dict[str, Any]]
) -> List[ValidationWarning]:
    """
    Validate complete simulation results.

    Args:
        config: Simulation configuration
        snapshots: Ledger snapshots over time
        metrics_over_time: List of metrics dictionaries

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(config)
    warnings = []

    warnings.extend(checker.check_config_inputs())

    previous = None
    for snapshot in snapshots:
        warnings.extend(checker.check_snapshot(snapshot, previous))
        previous = snapshot

    if metrics_over_time:
        warnings.extend(checker.check_metrics(metrics_over_time[-1]))

    return warnings
