import math

import numpy as np
import pytest

from core import INVESTMENT_VEHICLES, CalculationInputs, PlannerConfig, load_inputs
from montecarlo import RandomVariate
from planner import age_milestones, calculate_retirement, returns_share
from projection import future_value

CONFIG = PlannerConfig(start_year=2025)


def _seeded(seed=42):
    return RandomVariate(np.random.default_rng(seed))


def _inputs(vehicle=2, **overrides):
    values = dict(
        current_age=24,
        retirement_age=40,
        current_income=52_000.0,
        investment_vehicle=INVESTMENT_VEHICLES[vehicle],
        replacement_ratio=0.75,
        safe_withdrawal_rate=0.04,
        salary_growth_rate=0.02,
    )
    values.update(overrides)
    return CalculationInputs(**values)


def test_moderate_risk_plan():
    results = calculate_retirement(_inputs(), CONFIG, variate=_seeded())

    assert results.years_until_retirement == 16
    assert results.investment_vehicle.name == "Moderate Risk"
    assert results.post_retirement_vehicle.name == "Very Low Risk"
    assert results.monthly_investment_needed == pytest.approx(results.annual_investment_needed / 12)
    assert results.income_percentage_needed == pytest.approx(
        results.annual_investment_needed / 52_000.0 * 100
    )
    # about 40.3k a year against a 2.15m target
    assert results.income_percentage_needed == pytest.approx(77.5, abs=0.1)
    assert results.is_unrealistic == (results.income_percentage_needed > 75)
    assert results.is_unrealistic

    assert len(results.yearly_projections) == 17
    assert results.yearly_projections[0].year == 2025
    assert results.total_contributions + results.total_returns == pytest.approx(
        results.yearly_projections[-1].total_value
    )

    assert len(results.monte_carlo_projections) == 17
    for row in results.monte_carlo_projections:
        assert row.p10 <= row.p25 <= row.p50 <= row.p75 <= row.p90
        assert row.target == results.target_retirement_corpus

    assert [s.kind for s in results.sequence_scenarios] == [
        "best_case", "worst_case", "early_bear", "average",
    ]
    assert len(results.sequence_projections) == 16 + 40 + 1


def test_drawdown_starts_from_target_at_retirement():
    results = calculate_retirement(_inputs(), CONFIG, variate=_seeded())
    post = results.post_retirement_projections

    assert len(post) == 41
    assert post[0].year == 2041
    assert post[0].age == 40
    assert post[0].portfolio_value == results.target_retirement_corpus
    assert post[1].withdrawal == pytest.approx(results.annual_retirement_income)
    assert all(row.portfolio_value >= 0 for row in post)


def test_non_volatile_vehicle_skips_risk_analysis():
    results = calculate_retirement(_inputs(vehicle=0), CONFIG)

    assert results.monte_carlo_projections is None
    assert results.sequence_scenarios is None
    assert results.sequence_projections is None
    assert len(results.yearly_projections) == 17


@pytest.mark.parametrize("vehicle", range(len(INVESTMENT_VEHICLES)))
def test_solver_reaches_target_when_converged(vehicle):
    results = calculate_retirement(_inputs(vehicle=vehicle), CONFIG, variate=_seeded())
    final = results.yearly_projections[-1].total_value

    if results.solver_converged:
        assert abs(final - results.target_retirement_corpus) < 1_000
    else:
        assert results.solver_iterations == CONFIG.solver_max_iterations


def test_plan_is_repeatable():
    first = calculate_retirement(_inputs(), CONFIG, variate=_seeded(7))
    second = calculate_retirement(_inputs(), CONFIG, variate=_seeded(7))
    assert first == second


def test_deterministic_figures_ignore_randomness():
    first = calculate_retirement(_inputs(), CONFIG, variate=_seeded(1))
    second = calculate_retirement(_inputs(), CONFIG, variate=_seeded(2))

    assert first.annual_investment_needed == second.annual_investment_needed
    assert first.yearly_projections == second.yearly_projections
    assert first.sequence_scenarios == second.sequence_scenarios
    assert first.monte_carlo_projections[-1].deterministic == pytest.approx(
        future_value(first.annual_investment_needed, 16, 0.02, 12.0)
    )


def test_explicit_post_retirement_vehicle():
    inputs = _inputs(post_retirement_vehicle=INVESTMENT_VEHICLES[3])
    results = calculate_retirement(inputs, CONFIG, variate=_seeded())

    assert results.post_retirement_vehicle.name == "High Risk"
    assert all(s.post_retirement_return_rate == 18.0 for s in results.sequence_scenarios)


def test_default_post_vehicle_comes_from_catalog():
    catalog = INVESTMENT_VEHICLES[1:]
    results = calculate_retirement(_inputs(vehicle=1), CONFIG, catalog=catalog)
    assert results.post_retirement_vehicle.name == "Low Risk"


def test_short_horizon_is_unrealistic():
    inputs = _inputs(
        vehicle=0,
        current_age=60,
        retirement_age=61,
        replacement_ratio=1.0,
        safe_withdrawal_rate=0.01,
    )
    results = calculate_retirement(inputs, CONFIG)

    assert results.is_unrealistic
    assert results.income_percentage_needed > 75


def test_config_changes_horizon_and_simulations():
    config = PlannerConfig(start_year=2030, retirement_duration=25, num_simulations=200)
    results = calculate_retirement(_inputs(), config, variate=_seeded())

    assert results.retirement_duration == 25
    assert len(results.post_retirement_projections) == 26
    assert len(results.sequence_projections) == 16 + 25 + 1
    assert results.yearly_projections[0].year == 2030
    assert all(s.retirement_duration == 25 for s in results.sequence_scenarios)


def test_plan_from_form_values():
    inputs = load_inputs({"investment_vehicle": "2"})
    results = calculate_retirement(inputs, CONFIG, variate=_seeded())
    assert results.target_retirement_corpus > 0


def test_milestones():
    results = calculate_retirement(_inputs(), CONFIG, variate=_seeded())
    yearly = results.yearly_projections

    assert results.milestones == [
        (29, yearly[5].total_value),
        (34, yearly[10].total_value),
        (39, yearly[15].total_value),
        (40, results.target_retirement_corpus),
    ]


def test_milestones_short_horizon():
    assert age_milestones([], 60, 63, 1_000.0) == [(63, 1_000.0)]
    assert age_milestones([], 60, 63, math.inf) == []


def test_returns_share():
    assert returns_share(50.0, 50.0) == pytest.approx(50.0)
    assert math.isnan(returns_share(0.0, 0.0))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"retirement_duration": 0},
        {"num_simulations": 0},
        {"solver_tolerance": 0},
        {"solver_damping": -1},
        {"solver_max_iterations": -1},
        {"critical_zone_years": -1},
        {"percentiles": (0.1, 0.5, 0.9)},
        {"percentiles": (0.1, 0.25, 0.5, 0.75, 1.0)},
    ],
)
def test_planner_config_rejects_invalid(kwargs):
    with pytest.raises(ValueError):
        PlannerConfig(**kwargs)


def test_planner_config_first_year():
    assert PlannerConfig(start_year=1999).first_year() == 1999
    assert PlannerConfig().first_year() >= 2024
