import math

import pytest

from analytics import (
    StatisticsEngine,
    max_drawdown,
    percentile,
    percentile_summary,
    period_returns,
)
from config import ConfigurationError
from projection import ProjectionEngine
from random_returns import RandomReturnGenerator


def test_cagr_recovers_constant_effective_return(make_config):
    config = make_config(
        expected_annual_return_pct=8.0, years=10, return_compounding="effective"
    )
    trajectory = ProjectionEngine().run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.cagr == pytest.approx(0.08, abs=1e-9)


def test_cagr_under_nominal_compounding(make_config):
    config = make_config(expected_annual_return_pct=12.0, years=5)
    trajectory = ProjectionEngine().run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.cagr == pytest.approx(1.01**12 - 1, abs=1e-9)


def test_cagr_is_undefined_without_initial_capital(make_config):
    config = make_config(initial_capital=0.0, monthly_contribution=100.0, years=2)
    trajectory = ProjectionEngine().run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.cagr is None
    assert summary.final_value > 0


def test_cagr_is_undefined_when_portfolio_is_wiped_out(make_config, records_from_values):
    config = make_config(years=1)
    trajectory = records_from_values([5_000.0] * 11 + [0.0])

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.cagr is None
    assert summary.max_drawdown == 1.0


def test_max_drawdown_tracks_running_peak():
    assert max_drawdown([100, 150, 300, 290, 500]) == pytest.approx(10 / 300)
    assert max_drawdown([100, 80, 120, 60]) == pytest.approx(0.5)


def test_max_drawdown_is_zero_for_non_decreasing_series():
    assert max_drawdown([1, 1, 2, 3, 5, 8]) == 0.0
    assert max_drawdown([]) == 0.0


def test_max_drawdown_ignores_leading_zero_peak():
    assert max_drawdown([0, 0, 10, 5]) == pytest.approx(0.5)
    assert max_drawdown([0, 0, 0]) == 0.0


def test_drawdown_stays_within_unit_interval(make_config):
    config = make_config(
        volatility_pct=60.0, years=15, enable_stochastic_returns=True, monthly_contribution=50.0
    )
    engine = StatisticsEngine()
    for seed in range(5):
        trajectory = ProjectionEngine(RandomReturnGenerator(seed=seed)).run(config)
        summary = engine.summarize(trajectory, config)
        assert 0.0 <= summary.max_drawdown <= 1.0


def test_risk_ratio_is_undefined_for_deterministic_path(make_config):
    config = make_config(
        monthly_contribution=200.0, management_fee_pct=0.3, tax_rate_pct=26.0, years=10
    )
    trajectory = ProjectionEngine().run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.risk_adjusted_ratio is None
    assert summary.realized_volatility == pytest.approx(0.0, abs=1e-12)


def test_risk_ratio_uses_inflation_and_realized_volatility(make_config):
    config = make_config(
        volatility_pct=15.0, inflation_rate_pct=2.0, years=10, enable_stochastic_returns=True
    )
    trajectory = ProjectionEngine(RandomReturnGenerator(seed=5)).run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.realized_volatility > 0
    expected = (summary.average_annual_return - 0.02) / summary.realized_volatility
    assert summary.risk_adjusted_ratio == pytest.approx(expected)


def test_period_returns_are_net_of_contributions(records_from_values):
    trajectory = records_from_values([1_100.0, 1_320.0], contribution=100.0)

    returns = period_returns(trajectory, 900.0)

    assert returns == pytest.approx([0.1, 0.1])


def test_period_returns_skip_empty_base(records_from_values):
    trajectory = records_from_values([0.0, 0.0, 110.0], contribution=0.0)

    assert period_returns(trajectory, 0.0) == []

    funded = records_from_values([0.0, 100.0], contribution=100.0)
    assert period_returns(funded, 0.0) == pytest.approx([-1.0, 0.0])


def test_summary_totals_and_real_value(make_config):
    config = make_config(
        monthly_contribution=100.0, inflation_rate_pct=2.0, management_fee_pct=0.5, years=1
    )
    trajectory = ProjectionEngine().run(config)

    summary = StatisticsEngine().summarize(trajectory, config)

    assert summary.total_contributions == pytest.approx(10_000 + 12 * 100.0)
    assert summary.total_fees_paid == pytest.approx(trajectory[-1].cumulative_fees)
    assert summary.net_profit == pytest.approx(summary.final_value - summary.total_contributions)
    assert summary.final_value_real == pytest.approx(summary.final_value / 1.02)


def test_yearly_returns_and_best_worst_year(make_config):
    config = make_config(years=3)
    trajectory = ProjectionEngine().run(config, crisis_years=[1])

    summary = StatisticsEngine().summarize(trajectory, config)

    assert len(summary.yearly_returns) == 3
    assert summary.yearly_returns[0] == pytest.approx(1.01**12 - 1)
    assert summary.worst_year[0] == 2
    assert summary.worst_year[1] == pytest.approx((1 - 0.2 / 12) ** 12 - 1)
    assert summary.best_year[0] in (1, 3)


def test_summarize_rejects_empty_trajectory(make_config):
    with pytest.raises(ConfigurationError):
        StatisticsEngine().summarize((), make_config())


def test_percentile_uses_linear_interpolation():
    assert percentile([4, 1, 3, 2], 50) == pytest.approx(2.5)
    assert percentile([10, 20, 30, 40, 50], 10) == pytest.approx(14.0)
    with pytest.raises(ValueError):
        percentile([], 50)


def test_percentile_summary_is_ordered():
    values = [math.sin(i) * 1000 for i in range(101)]

    cuts = percentile_summary(values)

    ordered = [cuts[k] for k in ("p5", "p10", "p25", "p50", "p75", "p90", "p95")]
    assert ordered == sorted(ordered)
    assert percentile_summary([]) == {}
