"""Structured audit records for state-changing operations."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """One completed operation.

    ``state`` holds the values the operation left behind, e.g. the committed
    total after a release or the accumulator and checkpoint after a stake.
    """
    operation: str
    actor: str
    amount: int
    timestamp: int
    state: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditTrail:
    """Append-only list of audit records, mirrored to the logger."""

    def __init__(self, name: str = "ledger"):
        self.name = name
        self.records: List[AuditRecord] = []

    def emit(
        self,
        operation: str,
        actor: str,
        amount: int,
        timestamp: int,
        state: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        record = AuditRecord(
            operation=operation,
            actor=actor,
            amount=amount,
            timestamp=timestamp,
            state=dict(state or {}),
        )
        self.records.append(record)
        logger.info(
            "[%s] %s by %s amount=%s t=%s %s",
            self.name, operation, actor, amount, timestamp, record.state,
            extra={"audit": record.to_dict()},
        )
        return record

    def by_operation(self, operation: str) -> List[AuditRecord]:
        return [r for r in self.records if r.operation == operation]

    def __len__(self) -> int:
        return len(self.records)
