"""Shared machinery for serialized, all-or-nothing ledger operations."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .asset import AssetLedger
from .audit import AuditTrail
from .clock import MonotonicReader, SystemClock, TimeProvider
from .errors import InvalidAddress, ReentrantCall, Unauthorized

logger = logging.getLogger(__name__)

_MISSING = object()


class SerializedLedger:
    """Base class for ledgers whose operations run one at a time.

    Every mutating operation runs inside :meth:`_operation`, which

    - holds the ledger lock for the whole operation,
    - rejects re-entry from the same thread (e.g. from a transfer hook),
    - reads the clock exactly once,
    - journals every write made through :meth:`_put` / :meth:`_set` and rolls
      them back if the operation raises.

    Records are immutable values, so the journal only has to keep the
    previous reference for each written key.
    """

    def __init__(
        self,
        asset: AssetLedger,
        address: str,
        controller: str,
        time_provider: Optional[TimeProvider] = None,
        audit: Optional[AuditTrail] = None,
    ):
        if not address:
            raise InvalidAddress("Ledger address cannot be empty.")
        if not controller:
            raise InvalidAddress("Controller address cannot be empty.")
        self.asset = asset
        self.address = address
        self.controller = controller
        self.audit = audit if audit is not None else AuditTrail(address)
        self._clock = MonotonicReader(time_provider or SystemClock())
        self._lock = threading.RLock()
        self._active: Optional[str] = None
        self._journal: Optional[List[Tuple[str, Any, Any, Any]]] = None

    @contextmanager
    def _operation(self, name: str) -> Iterator[int]:
        """Run one indivisible operation; yields ``now``."""
        with self._lock:
            if self._active is not None:
                raise ReentrantCall(
                    f"{name} called while {self._active} is in progress on {self.address}",
                    details={"operation": name, "active": self._active},
                )
            self._active = name
            self._journal = []
            try:
                yield self._clock.read()
            except BaseException:
                self._rollback()
                raise
            finally:
                self._active = None
                self._journal = None

    def _now(self) -> int:
        """Read the clock outside of a mutating operation."""
        with self._lock:
            return self._clock.read()

    def _put(self, mapping: Dict[Any, Any], key: Any, value: Any) -> None:
        self._journal.append(("item", mapping, key, mapping.get(key, _MISSING)))
        mapping[key] = value

    def _set(self, attr: str, value: Any, target: Any = None) -> None:
        target = self if target is None else target
        self._journal.append(("attr", target, attr, getattr(target, attr)))
        setattr(target, attr, value)

    def _touch(self, attr: str, target: Any) -> None:
        """Journal ``target.attr`` before ``target`` mutates it itself."""
        self._journal.append(("attr", target, attr, getattr(target, attr)))

    def _rollback(self) -> None:
        for kind, target, key, previous in reversed(self._journal or []):
            if kind == "attr":
                setattr(target, key, previous)
            elif previous is _MISSING:
                target.pop(key, None)
            else:
                target[key] = previous
        if self._journal:
            logger.debug("Rolled back %d writes on %s", len(self._journal), self.address)

    def _require_controller(self, caller: str, operation: str) -> None:
        if caller != self.controller:
            logger.warning("Rejected %s on %s from non-controller %s", operation, self.address, caller)
            raise Unauthorized(
                f"{caller} is not allowed to {operation}",
                details={"caller": caller, "operation": operation},
            )
