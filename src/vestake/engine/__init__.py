"""Ledger engines: vesting, reward accumulator and staking."""

from .asset import AssetLedger
from .audit import AuditRecord, AuditTrail
from .clock import ManualClock, SystemClock
from .fixed_point import SCALE
from .rewards import RewardAccumulator, RewardsPerToken, RewardsProgram
from .staking import StakeLedger, UserRewards, UserStake
from .vesting import VestingLedger, VestingSchedule, releasable_amount, vested_amount

__all__ = [
    "AssetLedger",
    "AuditRecord",
    "AuditTrail",
    "ManualClock",
    "SystemClock",
    "SCALE",
    "RewardAccumulator",
    "RewardsPerToken",
    "RewardsProgram",
    "StakeLedger",
    "UserRewards",
    "UserStake",
    "VestingLedger",
    "VestingSchedule",
    "releasable_amount",
    "vested_amount",
]
