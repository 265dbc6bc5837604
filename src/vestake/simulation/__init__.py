"""Deterministic and Monte Carlo simulation of the ledgers."""

from .monte_carlo import MonteCarloRunner, summarize_results
from .runner import SimulationResult, SimulationRunner

__all__ = ["MonteCarloRunner", "SimulationResult", "SimulationRunner", "summarize_results"]
