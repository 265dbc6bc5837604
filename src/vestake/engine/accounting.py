"""Point-in-time accounting view across the vesting and stake ledgers."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .staking import StakeLedger
from .vesting import VestingLedger


@dataclass
class LedgerSnapshot:
    """Ledger balances at a point in time.

    Vesting semantics:
    - vesting_balance: asset balance held by the vesting ledger
    - committed_total: reported committed total (sum of unreleased amounts)
    - scheduled_unreleased: sum of unreleased amounts recomputed from schedules
    - vesting_released: cumulative amount released to beneficiaries

    Staking semantics:
    - pool_balance: asset balance held by the stake ledger (stakes + rewards)
    - total_staked: reported total staked
    - stakes_sum: sum of per-user stakes recomputed from records
    - rewards_owed: sum of per-user settled rewards not yet paid
    - accumulated / last_updated: global accumulator

    Conservation identities:
    committed_total = scheduled_unreleased <= vesting_balance
    total_staked = stakes_sum <= pool_balance
    """
    t: int
    vesting_balance: int
    committed_total: int
    scheduled_unreleased: int
    vesting_released: int
    pool_balance: int
    total_staked: int
    stakes_sum: int
    active_stakers: int
    rewards_owed: int
    accumulated: int
    last_updated: int

    @property
    def withdrawable(self) -> int:
        return self.vesting_balance - self.committed_total

    @property
    def reward_reserve(self) -> int:
        return self.pool_balance - self.total_staked

    def validate_conservation(self) -> tuple[bool, Optional[str]]:
        """
        Validate committed total and total staked against their records.

        Returns:
            (is_valid, error_message)
        """
        if self.committed_total != self.scheduled_unreleased:
            return False, (
                f"Committed total mismatch at t={self.t}: "
                f"reported={self.committed_total}, schedules={self.scheduled_unreleased}"
            )
        if self.total_staked != self.stakes_sum:
            return False, (
                f"Total staked mismatch at t={self.t}: "
                f"reported={self.total_staked}, stakes={self.stakes_sum}"
            )
        return True, None

    def validate_solvency(self) -> tuple[bool, Optional[str]]:
        """Both ledgers must hold at least what they owe."""
        if self.vesting_balance < self.committed_total:
            return False, (
                f"Vesting ledger insolvent at t={self.t}: "
                f"balance={self.vesting_balance}, committed={self.committed_total}"
            )
        if self.pool_balance < self.total_staked + self.rewards_owed:
            return False, (
                f"Stake pool insolvent at t={self.t}: balance={self.pool_balance}, "
                f"staked={self.total_staked}, rewards owed={self.rewards_owed}"
            )
        return True, None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def take_snapshot(vesting: VestingLedger, staking: StakeLedger, t: int) -> LedgerSnapshot:
    """Capture both ledgers; the caller holds whatever ordering guarantees it needs."""
    schedules = list(vesting.schedules.values())
    stakes = list(staking.stakes.values())
    return LedgerSnapshot(
        t=t,
        vesting_balance=vesting.total_balance,
        committed_total=vesting.committed_total,
        scheduled_unreleased=sum(s.unreleased for s in schedules),
        vesting_released=sum(s.released_amount for s in schedules),
        pool_balance=staking.asset.balance_of(staking.address),
        total_staked=staking.total_staked,
        stakes_sum=sum(s.amount for s in stakes),
        active_stakers=sum(1 for s in stakes if s.amount > 0),
        rewards_owed=sum(r.accumulated for r in staking.rewards.values()),
        accumulated=staking.accumulator.accumulated,
        last_updated=staking.accumulator.last_updated,
    )
