from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

import pandas as pd
from loguru import logger

from config import InvestmentConfig
from constants import CAPITAL_MULTIPLES, DEFAULT_MILESTONE_TARGETS, MONTHS_PER_YEAR
from projection import Trajectory


@dataclass(frozen=True)
class Milestone:
    name: str
    period_index: int
    year: int
    date: date
    crossing_value: float
    percentage_of_final_value: Optional[float]
    target_value: float


def period_date(start_date: date, period: int) -> date:
    """Calendar date reached ``period`` months after ``start_date``."""
    return (pd.Timestamp(start_date) + pd.DateOffset(months=period)).date()


class MilestoneFinder:
    """Finds the first period at which a trajectory reaches value thresholds."""

    def __init__(self, start_date: Optional[date] = None):
        self.start_date = start_date or date.today()

    def find(
        self, trajectory: Trajectory, target_value: float, label: str
    ) -> Optional[Milestone]:
        """First record with value >= target_value, or None if never reached."""
        if not trajectory:
            return None
        final_value = trajectory[-1].value
        for rec in trajectory:
            if rec.value >= target_value:
                pct = (
                    round(rec.value / final_value * 100.0, 1)
                    if final_value > 0
                    else None
                )
                return Milestone(
                    name=label,
                    period_index=rec.period,
                    year=(rec.period + MONTHS_PER_YEAR - 1) // MONTHS_PER_YEAR,
                    date=period_date(self.start_date, rec.period),
                    crossing_value=rec.value,
                    percentage_of_final_value=pct,
                    target_value=target_value,
                )
        return None

    def build_targets(
        self,
        config: InvestmentConfig,
        trajectory: Trajectory,
        absolute_targets: Iterable[float] = DEFAULT_MILESTONE_TARGETS,
    ) -> List[Tuple[str, float]]:
        """Capital multiples, round absolute values and half of the final value."""
        targets: List[Tuple[str, float]] = []
        if config.initial_capital > 0:
            for multiple in CAPITAL_MULTIPLES:
                targets.append(
                    (f"{multiple}x initial capital", config.initial_capital * multiple)
                )
        for amount in absolute_targets:
            targets.append((f"{amount:,.0f}", float(amount)))
        if trajectory and trajectory[-1].value > 0:
            targets.append(("Half of final value", trajectory[-1].value / 2.0))
        return targets

    def find_all(
        self,
        config: InvestmentConfig,
        trajectory: Trajectory,
        absolute_targets: Iterable[float] = DEFAULT_MILESTONE_TARGETS,
    ) -> List[Milestone]:
        """Milestones for every built target that is reached, deduplicated and sorted by period."""
        seen = set()
        found: List[Milestone] = []
        for label, target in self.build_targets(config, trajectory, absolute_targets):
            if target in seen:
                continue
            seen.add(target)
            milestone = self.find(trajectory, target, label)
            if milestone is not None:
                found.append(milestone)
        found.sort(key=lambda m: (m.period_index, m.target_value))
        logger.debug(f"{len(found)} milestones reached for '{config.nickname}'.")
        return found
