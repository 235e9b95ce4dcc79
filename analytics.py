import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from config import ConfigurationError, InvestmentConfig
from constants import (
    MONTHS_PER_YEAR,
    PERCENTILE_LEVELS,
    SMALL_EPSILON,
    VOLATILITY_EPSILON,
)
from projection import Trajectory


@dataclass(frozen=True)
class AggregateResult:
    """
    Metrics derived from one trajectory. Rates are fractions.

    ``None`` marks a metric that is not computable for the inputs (for example CAGR
    with no initial capital, or the risk ratio of a zero-volatility path).
    """

    final_value: float
    total_contributions: float
    total_taxes_paid: float
    total_fees_paid: float
    net_profit: float
    final_value_real: float
    cagr: Optional[float]
    average_annual_return: Optional[float]
    realized_volatility: Optional[float]
    max_drawdown: float
    risk_adjusted_ratio: Optional[float]
    yearly_returns: Tuple[float, ...] = ()
    best_year: Optional[Tuple[int, float]] = None
    worst_year: Optional[Tuple[int, float]] = None


def percentile(values: Sequence[float], level: float) -> float:
    """Percentile by linear interpolation between the two closest ranks."""
    if len(values) == 0:
        raise ValueError("Cannot compute a percentile of an empty sequence.")
    return float(np.percentile(np.asarray(values, dtype=float), level))


def percentile_summary(
    values: Sequence[float], levels: Iterable[int] = PERCENTILE_LEVELS
) -> Dict[str, float]:
    """Maps ``p<level>`` keys to percentile cut points of ``values``."""
    if len(values) == 0:
        return {}
    arr = np.sort(np.asarray(values, dtype=float))
    return {f"p{lvl}": float(np.percentile(arr, lvl)) for lvl in levels}


def max_drawdown(values: Iterable[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the peak, in [0, 1]."""
    peak = 0.0
    worst = 0.0
    for v in values:
        if v > peak:
            peak = v
        if peak > 0:
            drawdown = (peak - v) / peak
            if drawdown > worst:
                worst = drawdown
    return min(worst, 1.0)


def period_returns(trajectory: Trajectory, initial_capital: float) -> List[float]:
    """
    Investment return of each period, net of that period's contribution.

    The base of period t is the previous value plus the contribution of period t;
    periods with an empty base are skipped.
    """
    returns = []
    previous_value = initial_capital
    for rec in trajectory:
        base = previous_value + rec.contribution
        if base > SMALL_EPSILON:
            returns.append((rec.value - base) / base)
        previous_value = rec.value
    return returns


def _yearly_returns(trajectory: Trajectory, initial_capital: float) -> List[float]:
    yearly = []
    growth = 1.0
    has_data = False
    previous_value = initial_capital
    for rec in trajectory:
        base = previous_value + rec.contribution
        if base > SMALL_EPSILON:
            growth *= rec.value / base
            has_data = True
        previous_value = rec.value
        if rec.period % MONTHS_PER_YEAR == 0:
            yearly.append(growth - 1.0 if has_data else 0.0)
            growth = 1.0
            has_data = False
    return yearly


class StatisticsEngine:
    """Derives AggregateResult metrics from a trajectory and its configuration."""

    def summarize(self, trajectory: Trajectory, config: InvestmentConfig) -> AggregateResult:
        if not trajectory:
            raise ConfigurationError(
                f"Cannot summarize an empty trajectory for '{config.nickname}'."
            )

        last = trajectory[-1]
        final_value = last.value
        years = config.years

        cagr: Optional[float] = None
        if config.initial_capital > 0 and final_value > 0:
            cagr = (final_value / config.initial_capital) ** (1.0 / years) - 1.0

        returns = period_returns(trajectory, config.initial_capital)
        average_annual_return: Optional[float] = None
        realized_volatility: Optional[float] = None
        if returns:
            arr = np.asarray(returns, dtype=float)
            average_annual_return = float(arr.mean()) * MONTHS_PER_YEAR
            realized_volatility = float(arr.std()) * math.sqrt(MONTHS_PER_YEAR)

        risk_adjusted_ratio: Optional[float] = None
        if (
            average_annual_return is not None
            and realized_volatility is not None
            and realized_volatility > VOLATILITY_EPSILON
        ):
            risk_adjusted_ratio = (
                average_annual_return - config.inflation_rate
            ) / realized_volatility

        yearly = _yearly_returns(trajectory, config.initial_capital)
        best_year = worst_year = None
        if yearly:
            best_idx = int(np.argmax(yearly))
            worst_idx = int(np.argmin(yearly))
            best_year = (best_idx + 1, yearly[best_idx])
            worst_year = (worst_idx + 1, yearly[worst_idx])

        deflator = (1.0 + config.inflation_rate) ** years
        final_value_real = final_value / deflator if deflator > 0 else final_value

        drawdown = max_drawdown(
            [config.initial_capital] + [rec.value for rec in trajectory]
        )

        result = AggregateResult(
            final_value=final_value,
            total_contributions=last.cumulative_contributions,
            total_taxes_paid=last.cumulative_taxes,
            total_fees_paid=last.cumulative_fees,
            net_profit=final_value - last.cumulative_contributions,
            final_value_real=final_value_real,
            cagr=cagr,
            average_annual_return=average_annual_return,
            realized_volatility=realized_volatility,
            max_drawdown=drawdown,
            risk_adjusted_ratio=risk_adjusted_ratio,
            yearly_returns=tuple(yearly),
            best_year=best_year,
            worst_year=worst_year,
        )
        logger.debug(
            f"Summary for '{config.nickname}': final={final_value:,.2f}, "
            f"cagr={'n/a' if cagr is None else f'{cagr:.4%}'}, max_dd={drawdown:.2%}"
        )
        return result
