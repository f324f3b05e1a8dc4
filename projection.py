"""Deterministic retirement projections: target corpus, contribution solver
and year-by-year accumulation/drawdown tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from core import (
    INFLATION_RATE,
    RETIREMENT_DURATION,
    SOLVER_DAMPING,
    SOLVER_INITIAL_DIVISOR,
    SOLVER_MAX_ITERATIONS,
    SOLVER_TOLERANCE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetCorpus:
    target_corpus: float
    future_retirement_income: float
    corpus_by_swr: float
    corpus_by_annuity: float
    annual_retirement_income: float


@dataclass(frozen=True)
class ContributionSolution:
    annual_investment: float
    iterations: int
    converged: bool


@dataclass(frozen=True)
class YearlyProjection:
    year: int
    age: int
    annual_contribution: float
    cumulative_contribution: float
    investment_returns: float
    total_value: float


@dataclass(frozen=True)
class PostRetirementProjection:
    year: int
    age: int
    withdrawal: float
    portfolio_value: float


def compound(value: float, cashflow: float, rate: float) -> float:
    """Apply one year's cash flow, then grow the balance by ``rate``."""
    return (value + cashflow) * (1 + rate)


def annuity_factor(real_return: float, duration: int) -> float:
    """Present value of 1 per year for ``duration`` years.

    A zero or negative real return falls back to a flat annuity worth
    ``duration``.
    """
    if real_return > 0:
        return (1 - (1 + real_return) ** (-duration)) / real_return
    return float(duration)


def target_corpus(
    current_income: float,
    years_until_retirement: int,
    salary_growth_rate: float,
    replacement_ratio: float,
    safe_withdrawal_rate: float,
    pre_retirement_return_rate: float,
    inflation_rate: float = INFLATION_RATE,
    retirement_duration: int = RETIREMENT_DURATION,
) -> TargetCorpus:
    """
    Size the pot needed at retirement.

    The desired income (final salary times the replacement ratio) is inflated
    to the retirement date and two estimates are made: the safe-withdrawal
    multiple and the present value of an annuity paying that income for
    ``retirement_duration`` years at the real pre-retirement return. The
    larger of the two is the target.

    ``pre_retirement_return_rate`` is an annual percentage; every other rate is
    a fraction.
    """
    future_income = current_income * (1 + salary_growth_rate) ** years_until_retirement
    annual_retirement_income = future_income * replacement_ratio
    future_retirement_income = (
        annual_retirement_income * (1 + inflation_rate) ** years_until_retirement
    )

    corpus_by_swr = future_retirement_income / safe_withdrawal_rate

    real_return = pre_retirement_return_rate / 100 - inflation_rate
    corpus_by_annuity = future_retirement_income * annuity_factor(
        real_return, retirement_duration
    )

    return TargetCorpus(
        target_corpus=max(corpus_by_swr, corpus_by_annuity),
        future_retirement_income=future_retirement_income,
        corpus_by_swr=corpus_by_swr,
        corpus_by_annuity=corpus_by_annuity,
        annual_retirement_income=annual_retirement_income,
    )


def contribution_for_year(
    annual_investment: float, salary_growth_rate: float, year_index: int
) -> float:
    """Contribution paid in year ``year_index`` (1-based); year 0 pays nothing."""
    if year_index < 1:
        return 0.0
    return annual_investment * (1 + salary_growth_rate) ** (year_index - 1)


def future_value(
    annual_investment: float,
    years: int,
    salary_growth_rate: float,
    return_rate: float,
) -> float:
    """Value after ``years`` of growing contributions at ``return_rate`` (%)."""
    rate = return_rate / 100
    value = 0.0
    for i in range(1, years + 1):
        value = compound(
            value, contribution_for_year(annual_investment, salary_growth_rate, i), rate
        )
    return value


def solve_annual_contribution(
    target: float,
    years_until_retirement: int,
    salary_growth_rate: float,
    return_rate: float,
    tolerance: float = SOLVER_TOLERANCE,
    damping: float = SOLVER_DAMPING,
    initial_divisor: float = SOLVER_INITIAL_DIVISOR,
    max_iterations: int = SOLVER_MAX_ITERATIONS,
) -> ContributionSolution:
    """
    Find the base-year contribution whose growing stream reaches ``target``.

    Damped fixed-point iteration: the guess moves by a tenth of the naive
    per-year correction until the simulated total is within ``tolerance`` of
    the target. When ``max_iterations`` is exhausted the last guess is
    returned with ``converged=False``; no error is raised.
    """
    if years_until_retirement <= 0:
        raise ValueError("Years until retirement must be positive")

    guess = target / years_until_retirement / initial_divisor
    iterations = 0
    converged = False

    while iterations < max_iterations:
        total = future_value(guess, years_until_retirement, salary_growth_rate, return_rate)
        difference = target - total
        if abs(difference) < tolerance:
            converged = True
            break
        guess += difference / years_until_retirement / damping
        iterations += 1

    if converged:
        logger.debug("Contribution solver converged after %d iterations", iterations)
    else:
        logger.debug(
            "Contribution solver stopped at the %d-iteration cap; using %.2f",
            max_iterations,
            guess,
        )
    return ContributionSolution(guess, iterations, converged)


def accumulation_projections(
    annual_investment: float,
    years_until_retirement: int,
    salary_growth_rate: float,
    return_rate: float,
    current_age: int,
    start_year: int,
) -> List[YearlyProjection]:
    """Year-by-year growth of the savings pot, including the "now" row."""
    rate = return_rate / 100
    rows: List[YearlyProjection] = []
    cumulative = 0.0
    total = 0.0

    for i in range(years_until_retirement + 1):
        contribution = contribution_for_year(annual_investment, salary_growth_rate, i)
        if i > 0:
            cumulative += contribution
            total = compound(total, contribution, rate)
        rows.append(
            YearlyProjection(
                year=start_year + i,
                age=current_age + i,
                annual_contribution=contribution,
                cumulative_contribution=cumulative,
                investment_returns=total - cumulative,
                total_value=total,
            )
        )
    return rows


def drawdown_projections(
    corpus: float,
    future_retirement_income: float,
    return_rate: float,
    retirement_age: int,
    start_year: int,
    inflation_rate: float = INFLATION_RATE,
    retirement_duration: int = RETIREMENT_DURATION,
) -> List[PostRetirementProjection]:
    """
    Year-by-year drawdown of ``corpus`` with inflation-linked withdrawals.

    ``start_year`` is the calendar year of retirement. The recorded portfolio
    value is floored at zero; the running balance underneath is not.
    """
    rate = return_rate / 100
    rows: List[PostRetirementProjection] = []
    value = corpus

    for i in range(retirement_duration + 1):
        withdrawal = 0.0
        if i > 0:
            withdrawal = future_retirement_income * (1 + inflation_rate) ** (i - 1)
            value = compound(value, -withdrawal, rate)
        rows.append(
            PostRetirementProjection(
                year=start_year + i,
                age=retirement_age + i,
                withdrawal=withdrawal,
                portfolio_value=max(0.0, value),
            )
        )
    return rows
