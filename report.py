"""Plain-text summaries of a calculation for the presentation layer.

Non-finite figures are shown as zero here; the engine itself passes them
through untouched.
"""

from __future__ import annotations

import math
from typing import List

from core import LABEL_OVERRIDES, CalculationInputs
from planner import CalculationResults
from sequence_risk import retirement_year_comparison


def finite_or_zero(value: float) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return value


def format_currency(value: float) -> str:
    if value is None or not math.isfinite(value):
        return "£0"
    sign = "-" if value < 0 else ""
    return f"{sign}£{abs(value):,.0f}"


def format_axis_value(value: float) -> str:
    """Short chart-axis form, e.g. '£1.2m' or '£350k'."""
    if value is None or not math.isfinite(value):
        return "£0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value >= 1_000_000:
        return f"{sign}£{value / 1_000_000:.1f}m"
    return f"{sign}£{value / 1_000:.0f}k"


def format_percent(value: float) -> str:
    if value is None or not math.isfinite(value):
        return "0%"
    return f"{value:.1f}%"


def build_summary(results: CalculationResults) -> str:
    """Headline figures, warnings and the sequence-risk outcome."""
    lines = [
        f"Monthly investment needed: {format_currency(results.monthly_investment_needed)}",
        f"Annual investment needed: {format_currency(results.annual_investment_needed)}",
        f"Target retirement savings: {format_currency(results.target_retirement_corpus)}",
        f"Time horizon: {results.years_until_retirement} years",
        f"Total contributions: {format_currency(results.total_contributions)}",
        f"Investment returns: {format_currency(results.total_returns)} "
        f"({format_percent(results.returns_percentage)} of final pot)",
        f"First-year retirement income: {format_currency(results.annual_retirement_income)}",
    ]
    if results.is_unrealistic:
        lines.append(
            f"Warning: {format_percent(results.income_percentage_needed)} of income needed. "
            "Consider a later retirement age or a higher-return vehicle."
        )

    final_drawdown = results.post_retirement_projections[-1]
    lines.append(
        f"Portfolio after {results.retirement_duration} years of retirement: "
        f"{format_currency(final_drawdown.portfolio_value)}"
    )

    if results.monte_carlo_projections:
        last = results.monte_carlo_projections[-1]
        lines.append(
            "Monte Carlo range at retirement (10th-90th percentile): "
            f"{format_currency(last.p10)} - {format_currency(last.p90)}, "
            f"median {format_currency(last.p50)}"
        )

    if results.sequence_scenarios:
        for scenario in results.sequence_scenarios:
            if scenario.survived:
                outcome = f"lasts all {scenario.retirement_duration} years"
            else:
                outcome = f"runs out after {scenario.survival_years} years"
            lines.append(f"{scenario.name}: portfolio {outcome}")
    if results.sequence_projections:
        comparison = retirement_year_comparison(results.sequence_projections)
        if comparison:
            lines.append(
                "At retirement, bull vs steady: "
                f"{format_percent(finite_or_zero(comparison['bull_difference']))}, "
                "bear vs steady: "
                f"{format_percent(finite_or_zero(comparison['bear_difference']))}"
            )
    return "\n".join(lines)


def build_explanation(inputs: CalculationInputs, results: CalculationResults) -> str:
    """Return a detailed explanation of inputs and calculations."""
    vehicle = results.investment_vehicle
    post_vehicle = results.post_retirement_vehicle
    explanation: List[str] = [
        "Inputs:",
        f"  {LABEL_OVERRIDES['current_age']}: {inputs.current_age}",
        f"  {LABEL_OVERRIDES['retirement_age']}: {inputs.retirement_age}",
        f"  {LABEL_OVERRIDES['current_income']}: {format_currency(inputs.current_income)}",
        f"  {LABEL_OVERRIDES['investment_vehicle']}: {vehicle.name} "
        f"({vehicle.return_rate:g}% return, {vehicle.volatility:g}% volatility)",
        f"  {LABEL_OVERRIDES['retirement_income_percent']}: "
        f"{format_percent(inputs.replacement_ratio * 100)}",
        f"  {LABEL_OVERRIDES['safe_withdrawal_rate']}: "
        f"{format_percent(inputs.safe_withdrawal_rate * 100)}",
        f"  {LABEL_OVERRIDES['salary_growth']}: "
        f"{format_percent(inputs.salary_growth_rate * 100)}",
        f"  {LABEL_OVERRIDES['post_retirement_vehicle']}: {post_vehicle.name} "
        f"({post_vehicle.return_rate:g}% return)",
        "",
        "Calculations:",
        "  Final salary is projected with salary growth, multiplied by the "
        "replacement ratio and inflated to the retirement date.",
        "  The target is the larger of income / safe withdrawal rate and the "
        f"present value of {results.retirement_duration} years of income at the "
        "real pre-retirement return.",
        "  The annual contribution grows with salary and is solved iteratively "
        f"({results.solver_iterations} iterations"
        f"{'' if results.solver_converged else ', iteration cap reached'}).",
        "  In retirement the withdrawal rises with inflation each year.",
    ]
    if results.monte_carlo_projections is not None:
        explanation.append(
            f"  Monte Carlo: random annual returns with {vehicle.volatility:g}% "
            "volatility; bands show the 10th to 90th percentile."
        )
    else:
        explanation.append(
            "  Monte Carlo and sequence-of-returns analysis are skipped for "
            "zero-volatility vehicles."
        )
    return "\n".join(explanation)
