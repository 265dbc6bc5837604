"""Exception hierarchy for ledger operations.

Every failed operation raises a subclass of :class:`LedgerError`. Each class
carries a stable ``kind`` string so callers can branch on the error family
without importing every subclass, and a ``details`` dict with the values that
caused the rejection.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable reason
        details: Additional context about the error
    """
    kind = "ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for audit output."""
        return {"kind": self.kind, "error": type(self).__name__, "message": self.message, "details": self.details}


# Invalid input


class InvalidInput(LedgerError, ValueError):
    """Zero or malformed amounts, durations or identities."""
    kind = "invalid_input"


class InvalidAddress(InvalidInput):
    """Empty or malformed holder identity."""


class InvalidAmount(InvalidInput):
    """Amount is zero, negative or otherwise out of range."""


class InvalidDuration(InvalidInput):
    """Duration is zero or negative."""


class InvalidCliff(InvalidInput):
    """Cliff delay is negative or longer than the vesting duration."""


class BelowMinimum(InvalidInput):
    """Stake amount does not exceed the minimum stake."""


class ClockError(InvalidInput):
    """Clock returned a non-integer or moved backwards."""


# Funds


class InsufficientFunds(LedgerError):
    """Solvency or balance check failed."""
    kind = "insufficient_funds"


class InsufficientVested(InsufficientFunds):
    """Requested release exceeds the currently releasable amount."""


class InsufficientBalance(InsufficientFunds):
    """Asset holder balance too low for a transfer."""


class InsufficientAllowance(InsufficientFunds):
    """Spender allowance too low for a delegated transfer."""


# Lookup


class NotFound(LedgerError):
    """No record exists for the identity."""
    kind = "not_found"


class NoSchedule(NotFound):
    """Beneficiary has no vesting schedule."""


class NothingStaked(NotFound):
    """User has no active stake."""


class NothingToClaim(NotFound):
    """User has no accrued rewards."""


class AlreadyExists(LedgerError):
    """Record already exists for the identity."""
    kind = "already_exists"


class AlreadyRegistered(AlreadyExists):
    """Beneficiary already has a vesting schedule."""


# Guards


class Unauthorized(LedgerError):
    """Caller is not the ledger controller."""
    kind = "unauthorized"


class LockActive(LedgerError):
    """Stake is still inside its lock period."""
    kind = "lock_active"


class ArithmeticOverflow(LedgerError, OverflowError):
    """Value exceeds the fixed-width representation it is stored in."""
    kind = "arithmetic_overflow"


class ReentrantCall(LedgerError):
    """Ledger was re-entered while an operation was in progress."""
    kind = "reentrant_call"
