"""In-memory fungible asset ledger.

Stands in for the settlement layer the vesting and staking ledgers pay
through. Several ledgers may share one asset ledger from different threads,
so balance and allowance updates run under the asset ledger's own lock and
every check runs before any balance moves.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict, Tuple

from .errors import InsufficientAllowance, InsufficientBalance, InvalidAddress, InvalidAmount

logger = logging.getLogger(__name__)


def _require_holder(holder: str, role: str = "holder") -> None:
    if not isinstance(holder, str) or not holder:
        raise InvalidAddress(f"{role.capitalize()} address cannot be empty.", details={role: holder})


def _require_amount(amount: int, allow_zero: bool = True) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {amount!r}", details={"amount": amount})
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmount(f"Amount must be positive, got {amount}", details={"amount": amount})


class AssetLedger:
    """Balances and allowances of a single fungible asset."""

    def __init__(self, symbol: str = "TOKEN", decimals: int = 18):
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._lock = threading.RLock()
        self.total_supply = 0

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self._allowances.get((owner, spender), 0)

    def mint(self, to: str, amount: int) -> None:
        """Create ``amount`` new units for ``to``."""
        _require_holder(to, "recipient")
        _require_amount(amount)
        with self._lock:
            self._balances[to] += amount
            self.total_supply += amount
        logger.debug("Minted %s %s to %s", amount, self.symbol, to)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Allow ``spender`` to move up to ``amount`` of ``owner``'s balance."""
        _require_holder(owner, "owner")
        _require_holder(spender, "spender")
        _require_amount(amount)
        with self._lock:
            self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``sender`` to ``to``."""
        _require_holder(sender, "sender")
        _require_holder(to, "recipient")
        _require_amount(amount)
        with self._lock:
            balance = self.balance_of(sender)
            if balance < amount:
                raise InsufficientBalance(
                    f"{sender} holds {balance} {self.symbol}, cannot transfer {amount}",
                    details={"holder": sender, "balance": balance, "amount": amount},
                )
            self._balances[sender] -= amount
            self._balances[to] += amount
        logger.debug("Transferred %s %s from %s to %s", amount, self.symbol, sender, to)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``owner`` to ``to`` using ``spender``'s allowance."""
        _require_holder(spender, "spender")
        with self._lock:
            allowed = self.allowance(owner, spender)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{spender} may move {allowed} {self.symbol} of {owner}, requested {amount}",
                    details={"owner": owner, "spender": spender, "allowance": allowed, "amount": amount},
                )
            self.transfer(owner, to, amount)
            self._allowances[(owner, spender)] = allowed - amount
