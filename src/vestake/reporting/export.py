"""Export functionality for CSV and JSON."""

import json
from typing import List

import pandas as pd

from ..engine.audit import AuditRecord
from ..simulation.runner import SimulationResult


def result_to_frame(result: SimulationResult) -> pd.DataFrame:
    """One row per simulation step: snapshot columns plus metrics."""
    rows = []
    for i, snapshot in enumerate(result.snapshots):
        row = snapshot.to_dict()
        row['t_days'] = snapshot.t / 86400
        if i < len(result.metrics_over_time):
            row.update({k: v for k, v in result.metrics_over_time[i].items() if k not in row})
        rows.append(row)
    return pd.DataFrame(rows)


def audit_to_frame(records: List[AuditRecord]) -> pd.DataFrame:
    """Flatten audit records; state values become ``state.<key>`` columns."""
    if not records:
        return pd.DataFrame(columns=['operation', 'actor', 'amount', 'timestamp'])
    return pd.json_normalize([r.to_dict() for r in records], sep='.')


def export_csv(result: SimulationResult, filepath: str):
    """Export simulation results to CSV."""
    result_to_frame(result).to_csv(filepath, index=False)


def export_audit_csv(result: SimulationResult, filepath: str):
    """Export the audit trail of a simulation to CSV."""
    records = result.audit.records if result.audit is not None else []
    audit_to_frame(records).to_csv(filepath, index=False)


def export_json(result: SimulationResult, filepath: str):
    """Export simulation results to JSON.

    Accumulator values exceed the range JSON readers handle as numbers, so
    integers are written as strings when they do not fit in 53 bits.
    """
    def encode(value):
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) >= 2 ** 53:
            return str(value)
        if isinstance(value, dict):
            return {k: encode(v) for k, v in value.items()}
        if isinstance(value, list):
            return [encode(v) for v in value]
        return value

    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'snapshots': [encode(s.to_dict()) for s in result.snapshots],
        'metrics_over_time': encode(result.metrics_over_time),
        'final_metrics': encode(result.final_metrics),
        'invariant_violations': result.invariant_violations,
        'rejected_operations': result.rejected_operations,
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)
