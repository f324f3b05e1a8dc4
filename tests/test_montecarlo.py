import numpy as np
import pytest

from montecarlo import (
    RandomVariate,
    box_muller,
    percentile_rows,
    run_monte_carlo,
    simulate_paths,
    yearly_contributions,
)
from projection import future_value


def test_box_muller_known_values():
    # u1 = exp(-0.5) gives a radius of 1
    u1 = np.array([np.exp(-0.5), np.exp(-0.5), 1.0])
    u2 = np.array([0.0, 0.5, 0.25])
    assert box_muller(u1, u2) == pytest.approx([1.0, -1.0, 0.0], abs=1e-12)


def test_random_variate_uniform_excludes_zero():
    variate = RandomVariate(np.random.default_rng(1))
    samples = variate.uniform(100_000)

    assert samples.min() > 0.0
    assert samples.max() <= 1.0


def test_random_variate_normal_moments():
    variate = RandomVariate(np.random.default_rng(2024))
    samples = variate.normal(0.12, 0.15, 200_000)

    assert samples.mean() == pytest.approx(0.12, abs=0.003)
    assert samples.std() == pytest.approx(0.15, abs=0.003)


def test_random_variate_seeded_is_reproducible():
    a = RandomVariate(np.random.default_rng(7)).normal(0.0, 1.0, (3, 4))
    b = RandomVariate(np.random.default_rng(7)).normal(0.0, 1.0, (3, 4))
    assert np.array_equal(a, b)


def test_yearly_contributions_grow_with_salary():
    contributions = yearly_contributions(1_000.0, 3, 0.10)
    assert contributions == pytest.approx([1_000.0, 1_100.0, 1_210.0])


def test_simulate_paths_shape_and_start():
    paths = simulate_paths(
        10, 5_000.0, 12.0, 15.0, 0.02, num_simulations=50,
        variate=RandomVariate(np.random.default_rng(3)),
    )

    assert paths.shape == (50, 11)
    assert np.all(paths[:, 0] == 0.0)


def test_simulate_paths_without_volatility_is_deterministic():
    paths = simulate_paths(
        8, 2_000.0, 7.5, 0.0, 0.03, num_simulations=20,
        variate=RandomVariate(np.random.default_rng(4)),
    )
    expected = future_value(2_000.0, 8, 0.03, 7.5)

    assert paths[:, -1] == pytest.approx(np.full(20, expected), rel=1e-9)


def test_percentile_rows_nearest_rank_floor():
    values = np.array([7, 3, 9, 0, 5, 1, 8, 2, 6, 4], dtype=float)
    paths = np.column_stack([np.zeros(10), values])

    bands = percentile_rows(paths, (0.10, 0.25, 0.50, 0.75, 0.90))

    # sorted 0..9, indexes floor(10 * p) = 1, 2, 5, 7, 9
    assert bands[:, 1].tolist() == [1.0, 2.0, 5.0, 7.0, 9.0]
    assert bands[:, 0].tolist() == [0.0] * 5


def test_percentile_rows_single_path():
    paths = np.array([[0.0, 10.0, 20.0]])
    bands = percentile_rows(paths)
    assert bands.shape == (5, 3)
    assert np.all(bands[:, 2] == 20.0)


def _run(seed=None, **overrides):
    kwargs = dict(
        years_until_retirement=16,
        annual_investment=36_000.0,
        expected_return=12.0,
        volatility=15.0,
        target_corpus=2_150_000.0,
        current_age=24,
        salary_growth_rate=0.02,
        start_year=2025,
    )
    kwargs.update(overrides)
    variate = RandomVariate(np.random.default_rng(seed)) if seed is not None else None
    return run_monte_carlo(variate=variate, **kwargs)


def test_run_monte_carlo_rows():
    rows = _run(seed=11)

    assert len(rows) == 17
    assert rows[0].year == 2025
    assert rows[0].age == 24
    assert rows[-1].age == 40
    assert rows[0].p10 == rows[0].p90 == 0.0
    assert rows[0].deterministic == 0.0
    assert all(r.target == 2_150_000.0 for r in rows)
    assert rows[-1].deterministic == pytest.approx(future_value(36_000.0, 16, 0.02, 12.0))


def test_percentiles_are_ordered():
    for row in _run():
        assert row.p10 <= row.p25 <= row.p50 <= row.p75 <= row.p90


def test_bands_widen_over_time():
    rows = _run(seed=5)
    spreads = [r.p90 - r.p10 for r in rows]
    assert spreads[-1] > spreads[len(spreads) // 2] > spreads[1] > 0


def test_seeded_runs_match():
    assert _run(seed=99) == _run(seed=99)


def test_mean_outcome_tracks_deterministic_value():
    variate = RandomVariate(np.random.default_rng(2025))
    paths = simulate_paths(16, 36_000.0, 12.0, 15.0, 0.02, num_simulations=5_000, variate=variate)
    expected = future_value(36_000.0, 16, 0.02, 12.0)

    assert paths[:, -1].mean() == pytest.approx(expected, rel=0.05)


def test_unseeded_runs_agree_statistically():
    first = _run()
    second = _run()

    assert first[-1].p50 == pytest.approx(second[-1].p50, rel=0.15)
    assert first[-1].deterministic == second[-1].deterministic
