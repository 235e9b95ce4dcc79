from datetime import date

import pytest

from config import InvestmentConfig
from projection import PeriodRecord


@pytest.fixture
def make_config():
    def _make(**overrides):
        params = dict(
            nickname="TestScenario",
            initial_capital=10_000.0,
            monthly_contribution=0.0,
            years=1,
            expected_annual_return_pct=12.0,
            volatility_pct=0.0,
            management_fee_pct=0.0,
            tax_rate_pct=0.0,
            inflation_rate_pct=0.0,
            contribution_growth_pct=0.0,
            enable_stochastic_returns=False,
            start_date=date(2025, 1, 1),
        )
        params.update(overrides)
        return InvestmentConfig(**params)

    return _make


@pytest.fixture
def records_from_values():
    def _make(values, contribution=0.0):
        return tuple(
            PeriodRecord(
                period=i + 1,
                value=v,
                cumulative_contributions=contribution * (i + 1),
                contribution=contribution,
                gain=0.0,
                fee=0.0,
                tax=0.0,
                cumulative_gains=0.0,
                cumulative_taxes=0.0,
                cumulative_fees=0.0,
            )
            for i, v in enumerate(values)
        )

    return _make
