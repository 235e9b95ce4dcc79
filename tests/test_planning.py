import pytest

from config import ConfigurationError
from planning import (
    SENSITIVITY_VARIATIONS,
    required_contribution,
    sensitivity_analysis,
    time_to_goal,
)


def test_time_to_goal_doubling_at_one_percent_per_month(make_config):
    timeline = time_to_goal(make_config(), 20_000.0)

    assert timeline.achievable
    assert timeline.months == 70
    assert timeline.years == 5
    assert timeline.final_value >= 20_000.0


def test_time_to_goal_already_reached(make_config):
    timeline = time_to_goal(make_config(), 5_000.0)

    assert timeline.achievable
    assert timeline.months == 0
    assert timeline.final_value == 10_000.0


def test_time_to_goal_unreachable(make_config):
    config = make_config(expected_annual_return_pct=0.0)

    timeline = time_to_goal(config, 20_000.0, max_years=50)

    assert not timeline.achievable
    assert timeline.months == 600
    assert timeline.final_value == pytest.approx(10_000.0)


def test_time_to_goal_rejects_non_positive_target(make_config):
    with pytest.raises(ConfigurationError):
        time_to_goal(make_config(), 0.0)


def test_required_contribution_without_growth(make_config):
    config = make_config(initial_capital=0.0, expected_annual_return_pct=0.0)

    plan = required_contribution(config, 12_000.0)

    assert plan.achievable
    assert 1_000.0 <= plan.required_contribution < 1_010.0
    assert plan.final_value >= 12_000.0


def test_required_contribution_zero_when_capital_suffices(make_config):
    plan = required_contribution(make_config(), 5_000.0)

    assert plan.required_contribution == 0.0
    assert plan.achievable


def test_required_contribution_unreachable(make_config):
    config = make_config(initial_capital=0.0, expected_annual_return_pct=0.0)

    plan = required_contribution(config, 1_000_000.0, high=100.0)

    assert not plan.achievable
    assert plan.required_contribution == 100.0
    assert plan.final_value == pytest.approx(1_200.0)


def test_sensitivity_analysis_table(make_config):
    config = make_config(volatility_pct=1.0, management_fee_pct=0.05, tax_rate_pct=2.0)

    table = sensitivity_analysis(config)

    assert len(table) == sum(len(v) for v in SENSITIVITY_VARIATIONS.values())
    assert list(table.columns) == ["parameter", "variation", "value", "final_value", "impact_pct"]
    assert (table.loc[table["parameter"] == "volatility_pct", "value"] >= 0).all()

    returns = table[table["parameter"] == "expected_annual_return_pct"]
    assert returns["final_value"].is_monotonic_increasing
    fees = table[table["parameter"] == "management_fee_pct"]
    assert fees["final_value"].iloc[0] >= fees["final_value"].iloc[-1]


def test_sensitivity_shifts_stay_inside_rate_ranges(make_config):
    config = make_config(tax_rate_pct=98.0, expected_annual_return_pct=-99.0)

    table = sensitivity_analysis(config)

    taxes = table[table["parameter"] == "tax_rate_pct"]
    assert taxes["value"].max() == 100.0
    assert taxes["value"].min() == 93.0
    returns = table[table["parameter"] == "expected_annual_return_pct"]
    assert returns["value"].min() == -100.0
    assert (table["final_value"] >= 0).all()
