from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from loguru import logger

from config import ConfigurationError, InvestmentConfig
from constants import CRISIS_ANNUAL_RETURN, MONTHS_PER_YEAR
from random_returns import RandomReturnGenerator


@dataclass(frozen=True)
class PeriodRecord:
    """Snapshot of the portfolio at the end of one monthly period (periods are 1-based)."""

    period: int
    value: float
    cumulative_contributions: float
    contribution: float
    gain: float
    fee: float
    tax: float
    cumulative_gains: float
    cumulative_taxes: float
    cumulative_fees: float

    @property
    def year(self) -> int:
        """1-based calendar year of the projection this period falls in."""
        return (self.period - 1) // MONTHS_PER_YEAR + 1


Trajectory = Tuple[PeriodRecord, ...]


class ProjectionEngine:
    """
    Runs a single month-by-month projection of an investment policy.

    Per period, in order: add the contribution, draw or compute the return, apply the
    gain, deduct the management fee, tax a positive net gain, floor the value at zero,
    record the snapshot and, every 12th period, grow the contribution.
    Period 0 is the initial capital alone; contributions start with period 1.
    """

    def __init__(self, generator: Optional[RandomReturnGenerator] = None):
        self.generator = generator

    def _period_return(
        self, config: InvestmentConfig, period: int, crisis_years: frozenset
    ) -> float:
        if crisis_years and (period - 1) // MONTHS_PER_YEAR in crisis_years:
            return config.to_periodic_return(CRISIS_ANNUAL_RETURN)
        if not config.enable_stochastic_returns:
            return config.periodic_return
        if self.generator is None:
            self.generator = RandomReturnGenerator()
        return self.generator.sample(config.periodic_return, config.periodic_volatility)

    def run(
        self, config: InvestmentConfig, crisis_years: Iterable[int] = ()
    ) -> Trajectory:
        """
        Projects the portfolio over ``config.total_periods`` months.

        Args:
            config: Validated investment policy.
            crisis_years: Zero-based year indices whose returns are replaced by a
                fixed -20%/yr decline.

        Returns:
            A tuple of PeriodRecord, one per month.
        """
        total_periods = config.total_periods
        if total_periods <= 0:
            raise ConfigurationError(
                f"Projection for '{config.nickname}' needs at least one period."
            )
        crisis = frozenset(crisis_years)

        fee_rate = config.periodic_fee_rate
        tax_rate = config.tax_rate

        value = config.initial_capital
        cumulative_contributions = config.initial_capital
        cumulative_gains = 0.0
        cumulative_taxes = 0.0
        cumulative_fees = 0.0
        current_contribution = config.monthly_contribution

        logger.debug(
            f"Projecting '{config.nickname}' over {total_periods} periods "
            f"({'stochastic' if config.enable_stochastic_returns else 'deterministic'})."
        )

        records = []
        for period in range(1, total_periods + 1):
            contribution = current_contribution
            value += contribution
            cumulative_contributions += contribution

            period_return = self._period_return(config, period, crisis)
            gain = value * period_return
            value += gain

            fee = max(value, 0.0) * fee_rate
            value -= fee

            tax = 0.0
            net_gain = gain - fee
            if net_gain > 0 and tax_rate > 0:
                tax = net_gain * tax_rate
                value -= tax

            value = max(0.0, value)

            cumulative_gains += gain
            cumulative_fees += fee
            cumulative_taxes += tax

            records.append(
                PeriodRecord(
                    period=period,
                    value=value,
                    cumulative_contributions=cumulative_contributions,
                    contribution=contribution,
                    gain=gain,
                    fee=fee,
                    tax=tax,
                    cumulative_gains=cumulative_gains,
                    cumulative_taxes=cumulative_taxes,
                    cumulative_fees=cumulative_fees,
                )
            )

            if period % MONTHS_PER_YEAR == 0:
                current_contribution *= 1 + config.contribution_growth_rate

        logger.debug(
            f"Projection for '{config.nickname}' finished with value {value:,.2f}."
        )
        return tuple(records)


def year_end_values(trajectory: Trajectory, initial_capital: float) -> list:
    """Annual view of a trajectory: value at year 0 (initial capital) and at each year end."""
    values = [initial_capital]
    values.extend(
        rec.value for rec in trajectory if rec.period % MONTHS_PER_YEAR == 0
    )
    if trajectory and trajectory[-1].period % MONTHS_PER_YEAR != 0:
        values.append(trajectory[-1].value)
    return values
