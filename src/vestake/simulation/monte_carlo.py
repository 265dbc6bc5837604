"""Monte Carlo runs over staker behaviour uncertainty."""

from typing import Any, Callable, Dict, List

import numpy as np

from ..config.schema import Config
from .runner import SimulationResult, SimulationRunner


class MonteCarloRunner:
    """Run the simulation repeatedly with sampled staker behaviour."""

    def __init__(
        self,
        config: Config,
        parameter_distributions: Dict[str, Callable[[np.random.Generator], Any]] = None
    ):
        """
        Initialize Monte Carlo runner.

        Args:
            config: Base configuration
            parameter_distributions: Maps ``simulation`` field names to samplers.
                Each sampler takes a numpy Generator and returns a value.
        """
        self.config = config
        self.parameter_distributions = parameter_distributions or self._default_distributions()

    def _default_distributions(self) -> Dict[str, Callable[[np.random.Generator], Any]]:
        base = self.config.simulation

        def probability(mean: float, spread: float) -> Callable[[np.random.Generator], float]:
            return lambda rng: float(np.clip(rng.normal(mean, spread), 0.0, 1.0))

        return {
            'arrival_probability': probability(base.arrival_probability, 0.05),
            'topup_probability': probability(base.topup_probability, 0.02),
            'claim_probability': probability(base.claim_probability, 0.03),
            'exit_probability': probability(base.exit_probability, 0.02),
        }

    def _sample_config(self, seed: int) -> Config:
        rng = np.random.default_rng(seed)
        overrides = {name: sampler(rng) for name, sampler in self.parameter_distributions.items()}
        simulation = self.config.simulation.model_copy(update=overrides)
        return self.config.model_copy(update={'simulation': simulation})

    def run(self, num_runs: int = 20, random_seed: int = None) -> List[SimulationResult]:
        """
        Run Monte Carlo simulation.

        Args:
            num_runs: Number of runs
            random_seed: Base seed (defaults to config value); run i uses seed + i

        Returns:
            List of simulation results
        """
        if random_seed is None:
            random_seed = self.config.simulation.random_seed

        results = []
        for run_idx in range(num_runs):
            sampled_config = self._sample_config(random_seed + run_idx)
            runner = SimulationRunner(sampled_config)
            results.append(runner.run(random_seed=random_seed + run_idx))
        return results


def summarize_results(
    results: List[SimulationResult],
    keys: List[str] = None,
    percentiles: List[float] = (5, 50, 95)
) -> Dict[str, Dict[str, float]]:
    """Percentiles of final metrics across runs."""
    if not results:
        return {}
    if keys is None:
        keys = ['final_total_staked', 'rewards_distributed', 'rounding_dust', 'idle_seconds']

    summary = {}
    for key in keys:
        values = np.array([r.final_metrics[key] for r in results], dtype=float)
        summary[key] = {f"p{int(p)}": float(np.percentile(values, p)) for p in percentiles}
        summary[key]['mean'] = float(values.mean())
    return summary
