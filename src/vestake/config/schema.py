"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator


class Asset(BaseModel):
    """Asset the ledgers pay in."""
    symbol: str = Field(default="TOKEN", min_length=1, description="Asset ticker")
    decimals: int = Field(default=18, ge=0, le=36, description="Display decimals")


class ScheduleConfig(BaseModel):
    """One vesting schedule to register at startup."""
    beneficiary: str = Field(min_length=1, description="Beneficiary identity")
    start: int = Field(ge=0, description="Vesting start timestamp (seconds)")
    cliff_delay: int = Field(ge=0, description="Seconds from start to cliff")
    duration: int = Field(gt=0, description="Total vesting duration (seconds)")
    total_amount: int = Field(gt=0, description="Total amount vested")
    cliff_allowance: int = Field(ge=0, default=0, description="Amount unlocked at the cliff")

    @model_validator(mode='after')
    def validate_cliff(self):
        """Cliff must fall inside the schedule and the allowance inside the total."""
        if self.cliff_delay > self.duration:
            raise ValueError(
                f"cliff_delay ({self.cliff_delay}) must not exceed duration ({self.duration})"
            )
        if self.cliff_allowance > self.total_amount:
            raise ValueError(
                f"cliff_allowance ({self.cliff_allowance}) must not exceed total_amount ({self.total_amount})"
            )
        return self


class Vesting(BaseModel):
    """Vesting ledger parameters."""
    controller: str = Field(default="treasury", min_length=1, description="Identity allowed to create schedules")
    funding: int = Field(ge=0, description="Amount deposited into the vesting ledger")
    schedules: List[ScheduleConfig] = Field(default_factory=list, description="Schedules to register")

    @field_validator('schedules')
    @classmethod
    def validate_unique_beneficiaries(cls, v):
        """One schedule per beneficiary."""
        seen = set()
        for schedule in v:
            if schedule.beneficiary in seen:
                raise ValueError(f"Duplicate schedule for beneficiary {schedule.beneficiary}")
            seen.add(schedule.beneficiary)
        return v

    @property
    def committed(self) -> int:
        return sum(s.total_amount for s in self.schedules)


class Staking(BaseModel):
    """Staking rewards program parameters."""
    controller: str = Field(default="treasury", min_length=1, description="Identity that funds rewards")
    rewards_start: int = Field(ge=0, description="Program start timestamp (seconds)")
    rewards_end: int = Field(gt=0, description="Program end timestamp (seconds)")
    total_rewards: int = Field(ge=0, description="Rewards paid over the program window")
    minimum_stake: int = Field(ge=0, default=0, description="Stakes must exceed this amount")
    lock_period: int = Field(ge=0, default=0, description="Seconds before a stake can be withdrawn")

    @field_validator('rewards_end')
    @classmethod
    def validate_window(cls, v, info):
        """Ensure start < end."""
        if 'rewards_start' in info.data and v <= info.data['rewards_start']:
            raise ValueError("rewards_end must be after rewards_start")
        return v

    @property
    def rate(self) -> int:
        return self.total_rewards // (self.rewards_end - self.rewards_start)


class Simulation(BaseModel):
    """Simulation parameters."""
    horizon_seconds: int = Field(gt=0, description="Simulated time span")
    step_seconds: int = Field(gt=0, description="Seconds between simulation steps")
    num_stakers: int = Field(gt=0, description="Population of potential stakers")
    random_seed: int = Field(description="Random seed for reproducibility")
    balance_per_staker: int = Field(gt=0, description="Initial asset balance of each staker")
    stake_min: int = Field(gt=0, description="Smallest stake a staker places")
    stake_max: int = Field(gt=0, description="Largest stake a staker places")
    arrival_probability: float = Field(ge=0, le=1, default=0.2, description="Per-step chance an idle staker stakes")
    topup_probability: float = Field(ge=0, le=1, default=0.05, description="Per-step chance a staker adds stake")
    claim_probability: float = Field(ge=0, le=1, default=0.1, description="Per-step chance a staker claims")
    exit_probability: float = Field(ge=0, le=1, default=0.05, description="Per-step chance an unlocked staker exits")

    @model_validator(mode='after')
    def validate_stake_range(self):
        """Stake range must be ordered and affordable."""
        if self.stake_min > self.stake_max:
            raise ValueError(f"stake_min ({self.stake_min}) must not exceed stake_max ({self.stake_max})")
        if self.step_seconds > self.horizon_seconds:
            raise ValueError("step_seconds must not exceed horizon_seconds")
        return self

    @property
    def num_steps(self) -> int:
        return self.horizon_seconds // self.step_seconds


class Config(BaseModel):
    """Complete configuration for the vesting and staking ledgers."""
    asset: Asset = Field(default_factory=Asset)
    vesting: Vesting
    staking: Staking
    simulation: Simulation

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
