"""Run a complete retirement savings calculation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from core import (
    DEFAULT_CONFIG,
    INVESTMENT_VEHICLES,
    CalculationInputs,
    InvestmentVehicle,
    PlannerConfig,
    lowest_risk_vehicle,
)
from montecarlo import MonteCarloProjection, RandomVariate, run_monte_carlo
from projection import (
    PostRetirementProjection,
    YearlyProjection,
    accumulation_projections,
    drawdown_projections,
    solve_annual_contribution,
    target_corpus,
)
from sequence_risk import SequenceProjection, SequenceScenario, calculate_sequence_risk

logger = logging.getLogger(__name__)

MILESTONE_STEP = 5


@dataclass(frozen=True)
class CalculationResults:
    years_until_retirement: int
    target_retirement_corpus: float
    monthly_investment_needed: float
    annual_investment_needed: float
    total_contributions: float
    total_returns: float
    yearly_projections: List[YearlyProjection]
    post_retirement_projections: List[PostRetirementProjection]
    replacement_ratio: float
    # Inflated to the retirement date; the first-year drawdown income
    annual_retirement_income: float
    retirement_duration: int
    safe_withdrawal_rate: float
    is_unrealistic: bool
    income_percentage_needed: float
    investment_vehicle: InvestmentVehicle
    post_retirement_vehicle: InvestmentVehicle
    solver_iterations: int
    solver_converged: bool
    milestones: List[Tuple[int, float]]
    returns_percentage: float
    monte_carlo_projections: Optional[List[MonteCarloProjection]] = None
    sequence_scenarios: Optional[List[SequenceScenario]] = None
    sequence_projections: Optional[List[SequenceProjection]] = None


def age_milestones(
    yearly_projections: Sequence[YearlyProjection],
    current_age: int,
    retirement_age: int,
    target: float,
    step: int = MILESTONE_STEP,
) -> List[Tuple[int, float]]:
    """Pot value every ``step`` years before retirement, then the target at retirement."""
    milestones = []
    for age in range(current_age + step, retirement_age, step):
        index = age - current_age
        if index < len(yearly_projections):
            value = yearly_projections[index].total_value
            if math.isfinite(value):
                milestones.append((age, value))
    if math.isfinite(target):
        milestones.append((retirement_age, target))
    return milestones


def returns_share(total_returns: float, total_contributions: float) -> float:
    """Investment returns as a percentage of the final pot (may be non-finite)."""
    total = total_returns + total_contributions
    if total == 0:
        return math.nan
    return total_returns / total * 100


def calculate_retirement(
    inputs: CalculationInputs,
    config: PlannerConfig = DEFAULT_CONFIG,
    catalog: Sequence[InvestmentVehicle] = INVESTMENT_VEHICLES,
    variate: Optional[RandomVariate] = None,
) -> CalculationResults:
    """
    Compute the savings plan for ``inputs``.

    Monte Carlo and sequence-of-returns analysis only run when the
    pre-retirement vehicle has a nonzero volatility; otherwise those fields
    are ``None``.
    """
    vehicle = inputs.investment_vehicle
    post_vehicle = inputs.post_retirement_vehicle or lowest_risk_vehicle(catalog)
    years = inputs.years_until_retirement
    first_year = config.first_year()

    corpus = target_corpus(
        current_income=inputs.current_income,
        years_until_retirement=years,
        salary_growth_rate=inputs.salary_growth_rate,
        replacement_ratio=inputs.replacement_ratio,
        safe_withdrawal_rate=inputs.safe_withdrawal_rate,
        pre_retirement_return_rate=vehicle.return_rate,
        inflation_rate=config.inflation_rate,
        retirement_duration=config.retirement_duration,
    )
    target = corpus.target_corpus

    solution = solve_annual_contribution(
        target,
        years,
        inputs.salary_growth_rate,
        vehicle.return_rate,
        tolerance=config.solver_tolerance,
        damping=config.solver_damping,
        initial_divisor=config.solver_initial_divisor,
        max_iterations=config.solver_max_iterations,
    )
    annual_investment = solution.annual_investment

    yearly = accumulation_projections(
        annual_investment,
        years,
        inputs.salary_growth_rate,
        vehicle.return_rate,
        inputs.current_age,
        first_year,
    )
    post = drawdown_projections(
        target,
        corpus.future_retirement_income,
        post_vehicle.return_rate,
        inputs.retirement_age,
        first_year + years,
        inflation_rate=config.inflation_rate,
        retirement_duration=config.retirement_duration,
    )

    income_percentage_needed = annual_investment / inputs.current_income * 100
    total_contributions = yearly[-1].cumulative_contribution
    total_returns = yearly[-1].total_value - total_contributions

    monte_carlo = None
    scenarios = None
    sequence = None
    if vehicle.is_volatile:
        monte_carlo = run_monte_carlo(
            years,
            annual_investment,
            vehicle.return_rate,
            vehicle.volatility,
            target,
            inputs.current_age,
            inputs.salary_growth_rate,
            first_year,
            num_simulations=config.num_simulations,
            variate=variate,
            percentiles=config.percentiles,
        )
        scenarios, sequence = calculate_sequence_risk(
            years,
            annual_investment,
            vehicle.return_rate,
            vehicle.volatility,
            corpus.future_retirement_income,
            inputs.salary_growth_rate,
            post_vehicle.return_rate,
            inputs.current_age,
            first_year,
            inflation_rate=config.inflation_rate,
            retirement_duration=config.retirement_duration,
            critical_zone_years=config.critical_zone_years,
        )

    logger.info(
        "Plan for %d years with %s: target %.0f, annual contribution %.0f",
        years,
        vehicle.name,
        target,
        annual_investment,
    )

    return CalculationResults(
        years_until_retirement=years,
        target_retirement_corpus=target,
        monthly_investment_needed=annual_investment / 12,
        annual_investment_needed=annual_investment,
        total_contributions=total_contributions,
        total_returns=total_returns,
        yearly_projections=yearly,
        post_retirement_projections=post,
        replacement_ratio=inputs.replacement_ratio,
        annual_retirement_income=corpus.future_retirement_income,
        retirement_duration=config.retirement_duration,
        safe_withdrawal_rate=inputs.safe_withdrawal_rate,
        is_unrealistic=income_percentage_needed > config.unrealistic_income_percent,
        income_percentage_needed=income_percentage_needed,
        investment_vehicle=vehicle,
        post_retirement_vehicle=post_vehicle,
        solver_iterations=solution.iterations,
        solver_converged=solution.converged,
        milestones=age_milestones(yearly, inputs.current_age, inputs.retirement_age, target),
        returns_percentage=returns_share(total_returns, total_contributions),
        monte_carlo_projections=monte_carlo,
        sequence_scenarios=scenarios,
        sequence_projections=sequence,
    )
