"""Monte Carlo simulation of the accumulation phase under random returns."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from numba import njit, prange

from core import NUM_SIMULATIONS, PERCENTILES
from projection import future_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonteCarloProjection:
    year: int
    age: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    target: float
    deterministic: float


def box_muller(u1: np.ndarray, u2: np.ndarray) -> np.ndarray:
    """Map two independent uniform samples to standard normal samples.

    ``u1`` must lie in (0, 1] so that the logarithm is finite.
    """
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


class RandomVariate:
    """Source of normally distributed samples built from uniform randomness.

    Wraps a ``numpy.random.Generator`` so callers can inject a seeded
    generator for reproducible runs. Without one a fresh, OS-seeded generator
    is used.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def uniform(self, size) -> np.ndarray:
        # Generator.random is [0, 1); flip it to (0, 1]
        return 1.0 - self.rng.random(size)

    def standard_normal(self, size) -> np.ndarray:
        return box_muller(self.uniform(size), self.uniform(size))

    def normal(self, mean: float, std_dev: float, size) -> np.ndarray:
        return mean + std_dev * self.standard_normal(size)


@njit(cache=True, parallel=True)
def _simulate_paths(contributions: np.ndarray, returns: np.ndarray) -> np.ndarray:
    """
    Compound every path independently.

    ``returns`` has shape (n_sims, n_years); the result has shape
    (n_sims, n_years + 1) with column 0 holding the starting value of zero.
    """
    n_sims, n_years = returns.shape
    paths = np.zeros((n_sims, n_years + 1))
    for sim in prange(n_sims):
        value = 0.0
        for year in range(n_years):
            value = (value + contributions[year]) * (1.0 + returns[sim, year])
            paths[sim, year + 1] = value
    return paths


def yearly_contributions(
    annual_investment: float, years: int, salary_growth_rate: float
) -> np.ndarray:
    """Contribution for each simulated year 1..years."""
    return annual_investment * (1.0 + salary_growth_rate) ** np.arange(years, dtype=np.float64)


def simulate_paths(
    years: int,
    annual_investment: float,
    expected_return: float,
    volatility: float,
    salary_growth_rate: float,
    num_simulations: int = NUM_SIMULATIONS,
    variate: Optional[RandomVariate] = None,
) -> np.ndarray:
    """Return the value trajectory of every path, shape (num_simulations, years + 1).

    ``expected_return`` and ``volatility`` are annual percentages.
    """
    if variate is None:
        variate = RandomVariate()

    # Pre-generate all random returns
    returns = variate.normal(
        expected_return / 100, volatility / 100, (num_simulations, years)
    )
    contributions = yearly_contributions(annual_investment, years, salary_growth_rate)
    return _simulate_paths(contributions, returns)


def percentile_rows(paths: np.ndarray, percentiles: Sequence[float] = PERCENTILES) -> np.ndarray:
    """
    Nearest-rank (floor) percentiles of every year across paths.

    Each year's column is sorted ascending and index ``floor(n * p)`` is read,
    without interpolation. Returns shape (len(percentiles), n_years + 1).
    """
    n_sims = paths.shape[0]
    ordered = np.sort(paths, axis=0)
    indexes = [min(int(math.floor(n_sims * p)), n_sims - 1) for p in percentiles]
    return ordered[indexes, :]


def run_monte_carlo(
    years_until_retirement: int,
    annual_investment: float,
    expected_return: float,
    volatility: float,
    target_corpus: float,
    current_age: int,
    salary_growth_rate: float,
    start_year: int,
    num_simulations: int = NUM_SIMULATIONS,
    variate: Optional[RandomVariate] = None,
    percentiles: Sequence[float] = PERCENTILES,
) -> List[MonteCarloProjection]:
    """Simulate the accumulation phase and reduce it to yearly percentile bands.

    ``percentiles`` holds the five levels reported as p10..p90.
    """

    logger.debug(
        "Running %d Monte Carlo paths over %d years", num_simulations, years_until_retirement
    )
    paths = simulate_paths(
        years_until_retirement,
        annual_investment,
        expected_return,
        volatility,
        salary_growth_rate,
        num_simulations=num_simulations,
        variate=variate,
    )
    p10, p25, p50, p75, p90 = percentile_rows(paths, percentiles)

    rows: List[MonteCarloProjection] = []
    for year in range(years_until_retirement + 1):
        rows.append(
            MonteCarloProjection(
                year=start_year + year,
                age=current_age + year,
                p10=float(p10[year]),
                p25=float(p25[year]),
                p50=float(p50[year]),
                p75=float(p75[year]),
                p90=float(p90[year]),
                target=target_corpus,
                deterministic=future_value(
                    annual_investment, year, salary_growth_rate, expected_return
                ),
            )
        )
    return rows
