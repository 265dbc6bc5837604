"""Command-line entry point.

Usage:
    vestake simulate [--config PATH] [--seed N] [--csv PATH] [--json PATH] [--runs N]
    vestake releasable BENEFICIARY --at SECONDS [--config PATH]
    vestake check [--config PATH]
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config.loader import load_config
from .engine.vesting import VestingSchedule, releasable_amount
from .reporting.export import export_csv, export_json
from .simulation.monte_carlo import MonteCarloRunner, summarize_results
from .simulation.runner import SimulationRunner
from .validation.sanity_checks import SanityChecker, validate_simulation_results

logger = logging.getLogger(__name__)


def _cmd_simulate(args) -> int:
    config = load_config(args.config)
    if args.runs > 1:
        results = MonteCarloRunner(config).run(num_runs=args.runs, random_seed=args.seed)
        print(json.dumps(summarize_results(results), indent=2))
        return 0 if all(not r.invariant_violations for r in results) else 1

    result = SimulationRunner(config).run(random_seed=args.seed)
    print(json.dumps({k: str(v) if isinstance(v, int) and v >= 2 ** 53 else v
                      for k, v in result.final_metrics.items()}, indent=2))
    for warning in validate_simulation_results(config, result.snapshots, result.metrics_over_time):
        print(f"[{warning.severity}] {warning.category}: {warning.message}", file=sys.stderr)
    if args.csv:
        export_csv(result, args.csv)
        logger.info("Wrote %s", args.csv)
    if args.json:
        export_json(result, args.json)
        logger.info("Wrote %s", args.json)
    return 0 if not result.invariant_violations else 1


def _cmd_releasable(args) -> int:
    config = load_config(args.config)
    for entry in config.vesting.schedules:
        if entry.beneficiary == args.beneficiary:
            schedule = VestingSchedule.create(
                entry.start, entry.cliff_delay, entry.duration, entry.total_amount, entry.cliff_allowance
            )
            print(releasable_amount(schedule, args.at))
            return 0
    print(f"No schedule for {args.beneficiary}", file=sys.stderr)
    return 2


def _cmd_check(args) -> int:
    config = load_config(args.config)
    warnings = SanityChecker(config).check_config_inputs()
    for warning in warnings:
        print(f"[{warning.severity}] {warning.category}: {warning.message}")
        if warning.details:
            print(f"    {warning.details}")
    print(f"config hash {config.compute_hash()}")
    return 1 if any(w.severity == "error" for w in warnings) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vestake", description="Vesting and staking ledger workbench")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    sub = parser.add_subparsers(dest="command", required=True)

    simulate = sub.add_parser("simulate", help="Run a simulation from a config file")
    simulate.add_argument("--config", help="YAML config (defaults to packaged defaults)")
    simulate.add_argument("--seed", type=int, default=None, help="Random seed override")
    simulate.add_argument("--runs", type=int, default=1, help="Monte Carlo runs (1 = single deterministic run)")
    simulate.add_argument("--csv", help="Write per-step results to CSV")
    simulate.add_argument("--json", help="Write full results to JSON")
    simulate.set_defaults(func=_cmd_simulate)

    releasable = sub.add_parser("releasable", help="Releasable amount of a configured schedule")
    releasable.add_argument("beneficiary")
    releasable.add_argument("--at", type=int, required=True, help="Timestamp in seconds")
    releasable.add_argument("--config", help="YAML config (defaults to packaged defaults)")
    releasable.set_defaults(func=_cmd_releasable)

    check = sub.add_parser("check", help="Sanity-check a config file")
    check.add_argument("--config", help="YAML config (defaults to packaged defaults)")
    check.set_defaults(func=_cmd_check)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
