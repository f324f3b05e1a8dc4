"""
Sequence-of-returns risk analysis.

Four deterministic return sequences share the same nominal return but order
the good and bad years differently. Each one is run through the full
accumulation and drawdown cycle to show how the order of returns, not just
their average, decides the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from core import CRITICAL_ZONE_YEARS, INFLATION_RATE, RETIREMENT_DURATION

logger = logging.getLogger(__name__)

BEST_CASE = "best_case"
WORST_CASE = "worst_case"
EARLY_BEAR = "early_bear"
AVERAGE = "average"

SCENARIO_KINDS = (BEST_CASE, WORST_CASE, EARLY_BEAR, AVERAGE)

# Share of the accumulation years spent in the bear regime
EARLY_BEAR_FRACTION = 0.3
EARLY_BEAR_DROP = 0.8
EARLY_BEAR_RECOVERY = 0.4

# name, description, chart colour
SCENARIO_LABELS: Dict[str, Tuple[str, str, str]] = {
    BEST_CASE: (
        "Bull Market Into Retirement",
        "Strong returns leading up to retirement, steady conservative returns after",
        "#22c55e",
    ),
    WORST_CASE: (
        "Bear Market Into Retirement",
        "Poor returns before retirement, steady conservative returns after",
        "#ef4444",
    ),
    EARLY_BEAR: (
        "Early Bear, Late Bull",
        "Poor returns early in career, strong returns later",
        "#f59e0b",
    ),
    AVERAGE: (
        "Steady Average Returns",
        "Consistent average returns throughout",
        "#3b82f6",
    ),
}


@dataclass(frozen=True)
class SequenceScenario:
    kind: str
    name: str
    description: str
    pre_retirement: Tuple[float, ...]
    post_retirement: Tuple[float, ...]
    final_value: float
    survival_years: int
    color: str
    pre_retirement_return_rate: float
    post_retirement_return_rate: float
    retirement_duration: int = RETIREMENT_DURATION

    @property
    def survived(self) -> bool:
        return self.survival_years >= self.retirement_duration


@dataclass(frozen=True)
class SequenceProjection:
    year: int
    age: int
    is_retirement_year: bool
    is_critical_zone: bool
    best_case: float
    worst_case: float
    early_bear: float
    average: float

    def value(self, kind: str) -> float:
        return getattr(self, kind)


@dataclass(frozen=True)
class CycleResult:
    final_value: float
    survival_years: int
    values: Tuple[float, ...]


def _progress(i: int, years: int) -> float:
    """Position of year ``i`` between the first (0.0) and last (1.0) year.

    Deliberately not ``i / years``: spanning 0.0 to 1.0 keeps the bull and
    bear means at the base return, so their per-year values differ slightly
    from that progression.
    """
    if years <= 1:
        return 0.5
    return i / (years - 1)


def generate_sequence(kind: str, years: int, base_return: float, volatility: float) -> List[float]:
    """
    Build a return sequence for ``years`` years.

    ``base_return`` and ``volatility`` are annual percentages; the returned
    values are fractions. ``best_case`` climbs linearly from
    base - volatility to base + volatility, ``worst_case`` is its mirror,
    ``early_bear`` spends the first 30% of the years (truncated) in a bear
    regime before a steady recovery, and ``average`` is flat.
    """
    if kind not in SCENARIO_KINDS:
        raise ValueError(f"Unknown sequence type: {kind!r}")

    returns: List[float] = []
    if kind == BEST_CASE:
        for i in range(years):
            returns.append((base_return + volatility * (_progress(i, years) - 0.5) * 2) / 100)
    elif kind == WORST_CASE:
        for i in range(years):
            returns.append((base_return - volatility * (_progress(i, years) - 0.5) * 2) / 100)
    elif kind == EARLY_BEAR:
        bear_years = int(years * EARLY_BEAR_FRACTION)
        for i in range(years):
            if i < bear_years:
                returns.append((base_return - volatility * EARLY_BEAR_DROP) / 100)
            else:
                returns.append((base_return + volatility * EARLY_BEAR_RECOVERY) / 100)
    else:
        returns = [base_return / 100] * years
    return returns


def simulate_full_cycle(
    pre_returns: Sequence[float],
    post_returns: Sequence[float],
    annual_investment: float,
    salary_growth_rate: float,
    annual_retirement_income: float,
    inflation_rate: float = INFLATION_RATE,
) -> CycleResult:
    """
    Run one return path through accumulation and then drawdown.

    The recorded values are floored at zero but the balance underneath keeps
    going negative once the pot is exhausted. ``survival_years`` is the first
    0-based drawdown year that ends at or below zero, or the full duration.
    """
    retirement_duration = len(post_returns)
    values = [0.0]
    value = 0.0

    for year, rate in enumerate(pre_returns):
        contribution = annual_investment * (1 + salary_growth_rate) ** year
        value = (value + contribution) * (1 + rate)
        values.append(value)

    survival_years = retirement_duration
    for year, rate in enumerate(post_returns):
        withdrawal = annual_retirement_income * (1 + inflation_rate) ** year
        value = (value - withdrawal) * (1 + rate)
        values.append(max(0.0, value))
        if value <= 0 and survival_years == retirement_duration:
            survival_years = year

    return CycleResult(
        final_value=max(0.0, value),
        survival_years=survival_years,
        values=tuple(values),
    )


def calculate_sequence_risk(
    years_until_retirement: int,
    annual_investment: float,
    pre_retirement_return: float,
    volatility: float,
    annual_retirement_income: float,
    salary_growth_rate: float,
    post_retirement_return: float,
    current_age: int,
    start_year: int,
    inflation_rate: float = INFLATION_RATE,
    retirement_duration: int = RETIREMENT_DURATION,
    critical_zone_years: int = CRITICAL_ZONE_YEARS,
) -> Tuple[List[SequenceScenario], List[SequenceProjection]]:
    """
    Build the four sequence scenarios and the combined yearly projection.

    Only the pre-retirement path differs between scenarios: after retirement
    every scenario earns the flat ``post_retirement_return``.
    """
    # De-risked drawdown shared by all scenarios
    post_returns = generate_sequence(AVERAGE, retirement_duration, post_retirement_return, 0.0)

    scenarios: List[SequenceScenario] = []
    cycles: Dict[str, CycleResult] = {}
    for kind in SCENARIO_KINDS:
        pre_returns = generate_sequence(
            kind, years_until_retirement, pre_retirement_return, volatility
        )
        cycle = simulate_full_cycle(
            pre_returns,
            post_returns,
            annual_investment,
            salary_growth_rate,
            annual_retirement_income,
            inflation_rate,
        )
        cycles[kind] = cycle
        name, description, color = SCENARIO_LABELS[kind]
        scenarios.append(
            SequenceScenario(
                kind=kind,
                name=name,
                description=description,
                pre_retirement=tuple(pre_returns),
                post_retirement=tuple(post_returns),
                final_value=cycle.final_value,
                survival_years=cycle.survival_years,
                color=color,
                pre_retirement_return_rate=pre_retirement_return,
                post_retirement_return_rate=post_retirement_return,
                retirement_duration=retirement_duration,
            )
        )
        logger.debug(
            "Sequence %s: final value %.0f, survived %d of %d years",
            kind,
            cycle.final_value,
            cycle.survival_years,
            retirement_duration,
        )

    projections: List[SequenceProjection] = []
    for i in range(years_until_retirement + retirement_duration + 1):
        projections.append(
            SequenceProjection(
                year=start_year + i,
                age=current_age + i,
                is_retirement_year=i == years_until_retirement,
                is_critical_zone=(
                    years_until_retirement - critical_zone_years <= i < years_until_retirement
                ),
                best_case=cycles[BEST_CASE].values[i],
                worst_case=cycles[WORST_CASE].values[i],
                early_bear=cycles[EARLY_BEAR].values[i],
                average=cycles[AVERAGE].values[i],
            )
        )
    return scenarios, projections


def retirement_year_comparison(projections: Sequence[SequenceProjection]) -> Dict[str, float]:
    """
    Portfolio values at the retirement transition for the bull, bear and
    steady scenarios, with the bull and bear gaps as a percentage of the
    steady value. Empty when no row is flagged as the retirement year.
    """
    row = next((p for p in projections if p.is_retirement_year), None)
    if row is None:
        return {}

    steady = row.average
    bull_difference = (row.best_case - steady) / steady * 100 if steady > 0 else 0.0
    bear_difference = (row.worst_case - steady) / steady * 100 if steady > 0 else 0.0
    return {
        "bull": row.best_case,
        "bear": row.worst_case,
        "average": steady,
        "bull_difference": bull_difference,
        "bear_difference": bear_difference,
    }


def return_sequence_rows(
    scenarios: Sequence[SequenceScenario],
    projections: Sequence[SequenceProjection],
    retirement_duration: int = RETIREMENT_DURATION,
    retirement_years_shown: int = 10,
) -> List[dict]:
    """Per-year return percentages of the bull, bear and steady scenarios.

    Covers the accumulation years and the first few retirement years.
    """
    by_kind = {s.kind: s for s in scenarios}
    retirement_index = next(
        (i for i, p in enumerate(projections) if p.is_retirement_year), None
    )
    if retirement_index is None or not {BEST_CASE, WORST_CASE, AVERAGE} <= set(by_kind):
        return []

    shown = retirement_index + min(retirement_years_shown, retirement_duration)
    rows = []
    for i in range(min(shown, len(projections))):
        proj = projections[i]
        if i < retirement_index:
            phase, attr, idx = "Accumulation", "pre_retirement", i
        else:
            phase, attr, idx = "Retirement", "post_retirement", i - retirement_index
        rows.append(
            {
                "year": proj.year,
                "age": proj.age,
                "phase": phase,
                "is_critical_zone": proj.is_critical_zone,
                "bull_returns": getattr(by_kind[BEST_CASE], attr)[idx] * 100,
                "bear_returns": getattr(by_kind[WORST_CASE], attr)[idx] * 100,
                "avg_returns": getattr(by_kind[AVERAGE], attr)[idx] * 100,
            }
        )
    return rows
