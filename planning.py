"""Goal-oriented helpers built on the projection engine: time to goal, required contribution, sensitivity."""

from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from config import ConfigurationError, InvestmentConfig, clamp_rate
from constants import MONTHS_PER_YEAR
from milestones import MilestoneFinder
from projection import ProjectionEngine
from random_returns import RandomReturnGenerator

SENSITIVITY_VARIATIONS: Dict[str, List[float]] = {
    "expected_annual_return_pct": [-2.0, -1.0, 0.0, 1.0, 2.0],
    "volatility_pct": [-5.0, -2.5, 0.0, 2.5, 5.0],
    "inflation_rate_pct": [-1.0, -0.5, 0.0, 0.5, 1.0],
    "tax_rate_pct": [-5.0, -2.5, 0.0, 2.5, 5.0],
    "management_fee_pct": [-0.1, -0.05, 0.0, 0.05, 0.1],
}


@dataclass(frozen=True)
class GoalTimeline:
    months: int
    years: int
    achievable: bool
    final_value: float
    total_contributions: float


@dataclass(frozen=True)
class ContributionPlan:
    required_contribution: float
    achievable: bool
    final_value: float


def _deterministic(config: InvestmentConfig, **update) -> InvestmentConfig:
    return config.model_copy(update={"enable_stochastic_returns": False, **update})


def time_to_goal(
    config: InvestmentConfig, target_amount: float, max_years: int = 50
) -> GoalTimeline:
    """Months until the deterministic projection first reaches ``target_amount``."""
    if target_amount <= 0:
        raise ConfigurationError("Target amount must be positive.")
    if config.initial_capital >= target_amount:
        return GoalTimeline(0, 0, True, config.initial_capital, config.initial_capital)

    trajectory = ProjectionEngine().run(_deterministic(config, years=max_years))
    milestone = MilestoneFinder(config.start_date).find(trajectory, target_amount, "goal")

    if milestone is None:
        last = trajectory[-1]
        logger.info(
            f"Target {target_amount:,.2f} not reached within {max_years} years for '{config.nickname}'."
        )
        return GoalTimeline(
            months=last.period,
            years=last.period // MONTHS_PER_YEAR,
            achievable=False,
            final_value=last.value,
            total_contributions=last.cumulative_contributions,
        )

    rec = trajectory[milestone.period_index - 1]
    return GoalTimeline(
        months=rec.period,
        years=rec.period // MONTHS_PER_YEAR,
        achievable=True,
        final_value=rec.value,
        total_contributions=rec.cumulative_contributions,
    )


def _final_value(config: InvestmentConfig, monthly_contribution: float) -> float:
    trajectory = ProjectionEngine().run(
        _deterministic(config, monthly_contribution=monthly_contribution)
    )
    return trajectory[-1].value


def required_contribution(
    config: InvestmentConfig,
    target_amount: float,
    low: float = 0.0,
    high: float = 10_000.0,
    iterations: int = 50,
    tolerance: float = 0.01,
) -> ContributionPlan:
    """
    Bisects the monthly contribution needed for the deterministic final value to reach
    ``target_amount``; stops early once within ``tolerance`` (relative) of the target.
    """
    if target_amount <= 0:
        raise ConfigurationError("Target amount must be positive.")
    if low < 0 or high <= low:
        raise ConfigurationError("Search bounds must satisfy 0 <= low < high.")

    if _final_value(config, low) >= target_amount:
        return ContributionPlan(low, True, _final_value(config, low))

    final_at_high = _final_value(config, high)
    if final_at_high < target_amount:
        logger.info(
            f"Target {target_amount:,.2f} unreachable with contributions up to {high:,.2f}/month."
        )
        return ContributionPlan(high, False, final_at_high)

    best = high
    best_value = final_at_high
    for _ in range(iterations):
        test_contribution = (low + high) / 2.0
        final_value = _final_value(config, test_contribution)
        if final_value >= target_amount:
            high = test_contribution
            best, best_value = test_contribution, final_value
        else:
            low = test_contribution
        if abs(final_value - target_amount) < target_amount * tolerance and final_value >= target_amount:
            break

    return ContributionPlan(best, True, best_value)


def sensitivity_analysis(
    config: InvestmentConfig, seed: Optional[int] = 0
) -> pd.DataFrame:
    """
    Final value under one-at-a-time shifts of the main rates (in percentage points).
    Shifted rates are clamped to the ranges InvestmentConfig accepts.

    Stochastic configs draw every variation from the same seed.
    """
    rows = []
    for field_name, variations in SENSITIVITY_VARIATIONS.items():
        base_value = getattr(config, field_name)
        for variation in variations:
            shifted = clamp_rate(field_name, base_value + variation)
            varied = config.model_copy(update={field_name: shifted})
            generator = RandomReturnGenerator(seed=seed)
            final_value = ProjectionEngine(generator).run(varied)[-1].value
            impact = (
                (final_value - config.initial_capital) / config.initial_capital * 100.0
                if config.initial_capital > 0
                else None
            )
            rows.append(
                {
                    "parameter": field_name,
                    "variation": variation,
                    "value": shifted,
                    "final_value": final_value,
                    "impact_pct": impact,
                }
            )
    return pd.DataFrame(rows)
