"""vestake - vesting schedules and pooled staking rewards on a shared asset ledger."""

__version__ = "1.0.0"
