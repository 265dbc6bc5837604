"""Validation and sanity checks for the vestake ledgers."""

from .sanity_checks import (
    SanityChecker,
    ValidationWarning,
    check_stake_ledger,
    check_vesting_ledger,
    validate_simulation_results,
)

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "check_stake_ledger",
    "check_vesting_ledger",
    "validate_simulation_results"
]
