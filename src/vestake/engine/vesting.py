"""Vesting ledger - per-beneficiary cliff + linear release schedules.

Key Concepts:
- A schedule unlocks ``cliff_allowance`` at ``cliff_time`` and the rest
  linearly until ``start_time + duration``
- Releasable amount: vested(now) - released_amount
- Committed total: sum of unreleased amounts over all schedules; new
  schedules must be covered by the uncommitted balance
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
    AlreadyRegistered,
    InsufficientFunds,
    InsufficientVested,
    InvalidAddress,
    InvalidAmount,
    InvalidCliff,
    InvalidDuration,
    NoSchedule,
)
from .fixed_point import ACCUMULATOR_MAX, TIMESTAMP_MAX, check_width, mul_div

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VestingSchedule:
    """Vesting schedule for one beneficiary.

    Invariants:
    - cliff_time = start_time + cliff_delay, with 0 <= cliff_delay <= duration
    - 0 <= released_amount <= total_amount
    - cliff_allowance <= total_amount
    """
    start_time: int
    cliff_time: int
    duration: int
    total_amount: int
    cliff_allowance: int = 0
    released_amount: int = 0

    @classmethod
    def create(
        cls, start: int, cliff_delay: int, duration: int, total_amount: int, cliff_allowance: int = 0
    ) -> "VestingSchedule":
        """Fresh schedule with nothing released."""
        return cls(
            start_time=start,
            cliff_time=start + cliff_delay,
            duration=duration,
            total_amount=total_amount,
            cliff_allowance=cliff_allowance,
        )

    @property
    def cliff_delay(self) -> int:
        return self.cliff_time - self.start_time

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    @property
    def unreleased(self) -> int:
        """Amount still committed to this beneficiary."""
        return self.total_amount - self.released_amount

    @property
    def fully_released(self) -> bool:
        return self.released_amount == self.total_amount


def vested_amount(schedule: VestingSchedule, now: int) -> int:
    """
    Total amount vested at ``now``, including anything already released.

    Formula (cliff <= now < end):
        cliff_allowance + (total - cliff_allowance) * (now - cliff) // (end - cliff)

    The floor division under-releases by at most one unit.
    """
    if now < schedule.cliff_time:
        return 0
    if now >= schedule.end_time:
        return schedule.total_amount

    elapsed_since_cliff = now - schedule.cliff_time
    # Non-zero here: end_time > now >= cliff_time
    distribution_window = schedule.duration - schedule.cliff_delay
    linear_portion = mul_div(
        schedule.total_amount - schedule.cliff_allowance,
        elapsed_since_cliff,
        distribution_window,
        name="vesting linear portion",
    )
    return linear_portion + schedule.cliff_allowance


def releasable_amount(schedule: VestingSchedule, now: int) -> int:
    """Amount the beneficiary may release at ``now``."""
    return vested_amount(schedule, now) - schedule.released_amount


class VestingLedger(SerializedLedger):
    """Holds vesting schedules and pays out vested amounts.

    The ledger's own asset balance funds every schedule. Only the controller
    may create schedules or withdraw uncommitted funds; beneficiaries release
    their own vested amounts.
    """

    def __init__(
        self,
        asset: AssetLedger,
        controller: str,
        address: str = "vesting-ledger",
        time_provider: Optional[TimeProvider] = None,
        audit: Optional[AuditTrail] = None,
    ):
        """
        Initialize vesting ledger.

        Args:
            asset: Asset ledger holding this ledger's balance
            controller: Identity allowed to create schedules and withdraw
            address: This ledger's holder identity on the asset ledger
            time_provider: Zero-arg callable returning integer seconds
            audit: Audit trail for operation records
        """
        super().__init__(asset, address, controller, time_provider, audit)
        self._schedules: dict[str, VestingSchedule] = {}
        self.committed_total = 0

    @property
    def schedules(self) -> Mapping[str, VestingSchedule]:
        return MappingProxyType(self._schedules)

    @property
    def total_balance(self) -> int:
        return self.asset.balance_of(self.address)

    def withdrawable_amount(self) -> int:
        """Balance not committed to any schedule."""
        return self.total_balance - self.committed_total

    def schedule_of(self, beneficiary: str) -> VestingSchedule:
        schedule = self._schedules.get(beneficiary)
        if schedule is None:
            raise NoSchedule(f"No vesting schedule for {beneficiary}", details={"beneficiary": beneficiary})
        return schedule

    def releasable(self, beneficiary: str, now: Optional[int] = None) -> int:
        """Releasable amount for ``beneficiary`` at ``now`` (defaults to the clock)."""
        schedule = self.schedule_of(beneficiary)
        if now is None:
            now = self._now()
        return releasable_amount(schedule, now)

    def create_schedule(
        self,
        caller: str,
        beneficiary: str,
        start: int,
        cliff_delay: int,
        duration: int,
        total_amount: int,
        cliff_allowance: int = 0,
    ) -> VestingSchedule:
        """
        Register a vesting schedule for ``beneficiary``.

        Raises:
            Unauthorized: caller is not the controller
            InsufficientFunds: uncommitted balance < total_amount
            InvalidDuration: duration == 0
            InvalidAmount: total_amount == 0 or cliff_allowance out of range
            InvalidCliff: cliff_delay < 0 or duration < cliff_delay
            AlreadyRegistered: beneficiary already has a schedule
        """
        with self._operation("create_schedule") as now:
            self._require_controller(caller, "create_schedule")
            if not isinstance(beneficiary, str) or not beneficiary:
                raise InvalidAddress("Beneficiary address cannot be empty.", details={"beneficiary": beneficiary})

            available = self.withdrawable_amount()
            if available < total_amount:
                raise InsufficientFunds(
                    f"Uncommitted balance {available} cannot cover schedule of {total_amount}",
                    details={"available": available, "total_amount": total_amount},
                )
            if duration <= 0:
                raise InvalidDuration(f"Duration must be positive, got {duration}", details={"duration": duration})
            if total_amount <= 0:
                raise InvalidAmount(
                    f"Total amount must be positive, got {total_amount}", details={"total_amount": total_amount}
                )
            if cliff_delay < 0 or duration < cliff_delay:
                raise InvalidCliff(
                    f"Cliff delay {cliff_delay} must lie within duration {duration}",
                    details={"cliff_delay": cliff_delay, "duration": duration},
                )
            if cliff_allowance < 0 or cliff_allowance > total_amount:
                raise InvalidAmount(
                    f"Cliff allowance {cliff_allowance} must lie within total amount {total_amount}",
                    details={"cliff_allowance": cliff_allowance, "total_amount": total_amount},
                )
            if beneficiary in self._schedules:
                raise AlreadyRegistered(
                    f"Vesting schedule already exists for {beneficiary}", details={"beneficiary": beneficiary}
                )
            check_width(start + duration, TIMESTAMP_MAX, "vesting end time")
            check_width(total_amount, ACCUMULATOR_MAX, "total amount")

            schedule = VestingSchedule.create(start, cliff_delay, duration, total_amount, cliff_allowance)
            self._put(self._schedules, beneficiary, schedule)
            self._set("committed_total", self.committed_total + total_amount)

            logger.info(
                "Vesting schedule created for %s: %s over %ss (cliff %ss, allowance %s)",
                beneficiary, total_amount, duration, cliff_delay, cliff_allowance,
            )
            self.audit.emit(
                "create_schedule", beneficiary, total_amount, now,
                {"committed_total": self.committed_total, "cliff_time": schedule.cliff_time},
            )
            return schedule

    def release(self, caller: str, amount: int) -> VestingSchedule:
        """
        Release ``amount`` of the caller's vested balance to the caller.

        Raises:
            NoSchedule: caller has no schedule
            InvalidAmount: amount <= 0
            InsufficientVested: amount exceeds the releasable amount
        """
        with self._operation("release") as now:
            schedule = self.schedule_of(caller)
            if amount <= 0:
                raise InvalidAmount(f"Release amount must be positive, got {amount}", details={"amount": amount})

            releasable = releasable_amount(schedule, now)
            if amount > releasable:
                if releasable == 0:
                    logger.warning("Nothing releasable for %s at t=%s", caller, now)
                raise InsufficientVested(
                    f"Requested {amount} but only {releasable} is releasable",
                    details={"beneficiary": caller, "amount": amount, "releasable": releasable, "now": now},
                )
            return self._pay_release(caller, schedule, amount, now)

    def release_all(self, caller: str) -> int:
        """Release everything currently releasable; returns the amount paid (0 if none)."""
        with self._operation("release_all") as now:
            schedule = self.schedule_of(caller)
            amount = releasable_amount(schedule, now)
            if amount <= 0:
                return 0
            self._pay_release(caller, schedule, amount, now)
            return amount

    def _pay_release(self, caller: str, schedule: VestingSchedule, amount: int, now: int) -> VestingSchedule:
        updated = replace(schedule, released_amount=schedule.released_amount + amount)
        self._put(self._schedules, caller, updated)
        self._set("committed_total", self.committed_total - amount)
        self.asset.transfer(self.address, caller, amount)

        logger.info("Released %s to %s (%s/%s)", amount, caller, updated.released_amount, updated.total_amount)
        self.audit.emit(
            "release", caller, amount, now,
            {"released_amount": updated.released_amount, "committed_total": self.committed_total},
        )
        return updated

    def withdraw(self, caller: str, to: str, amount: int) -> int:
        """
        Withdraw uncommitted funds.

        Raises:
            Unauthorized: caller is not the controller
            InvalidAmount: amount <= 0
            InsufficientFunds: amount exceeds the withdrawable amount
        """
        with self._operation("withdraw") as now:
            self._require_controller(caller, "withdraw")
            if amount <= 0:
                raise InvalidAmount(f"Withdraw amount must be positive, got {amount}", details={"amount": amount})
            available = self.withdrawable_amount()
            if amount > available:
                raise InsufficientFunds(
                    f"Requested {amount} but only {available} is uncommitted",
                    details={"amount": amount, "available": available},
                )
            self.asset.transfer(self.address, to, amount)

            logger.info("Withdrew %s uncommitted funds to %s", amount, to)
            self.audit.emit("withdraw", caller, amount, now, {"to": to, "committed_total": self.committed_total})
            return amount
