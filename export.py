"""Tabular views of engine results and CSV output."""

import os
from dataclasses import asdict
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from analytics import AggregateResult
from config import InvestmentConfig
from constants import MONTHS_PER_YEAR
from milestones import Milestone, period_date
from monte_carlo import MonteCarloEnsemble
from projection import Trajectory


def trajectory_frame(trajectory: Trajectory, config: InvestmentConfig) -> pd.DataFrame:
    """One row per month, with the calendar date of each period end."""
    df = pd.DataFrame([asdict(rec) for rec in trajectory])
    if df.empty:
        return df
    df.insert(1, "date", [period_date(config.start_date, p) for p in df["period"]])
    df.insert(2, "year", (df["period"] - 1) // MONTHS_PER_YEAR + 1)
    return df


def annual_frame(trajectory: Trajectory, config: InvestmentConfig) -> pd.DataFrame:
    """Year-end snapshot view: flows summed per year, stocks taken at the last month."""
    df = trajectory_frame(trajectory, config)
    if df.empty:
        return df
    grouped = df.groupby("year")
    annual = grouped.agg(
        date=("date", "last"),
        value=("value", "last"),
        contributions=("contribution", "sum"),
        gains=("gain", "sum"),
        fees=("fee", "sum"),
        taxes=("tax", "sum"),
        cumulative_contributions=("cumulative_contributions", "last"),
        cumulative_taxes=("cumulative_taxes", "last"),
        cumulative_fees=("cumulative_fees", "last"),
    ).reset_index()
    deflator = (1.0 + config.inflation_rate) ** annual["year"]
    annual["real_value"] = annual["value"] / deflator
    return annual


def summary_frame(summary: AggregateResult) -> pd.DataFrame:
    """Metric/value table of an AggregateResult; undefined metrics are left empty."""
    row = asdict(summary)
    row["yearly_returns"] = ";".join(f"{r:.6f}" for r in summary.yearly_returns)
    for key in ("best_year", "worst_year"):
        pair = row.pop(key)
        row[f"{key}_index"] = None if pair is None else pair[0]
        row[f"{key}_return"] = None if pair is None else pair[1]
    return pd.DataFrame({"metric": list(row.keys()), "value": list(row.values())})


def milestones_frame(milestones: List[Milestone]) -> pd.DataFrame:
    return pd.DataFrame([asdict(m) for m in milestones])


def ensemble_frame(ensemble: MonteCarloEnsemble) -> pd.DataFrame:
    """One row per run, sorted by final value, with the run's max drawdown and real final value."""
    return pd.DataFrame(
        {
            "rank": range(1, ensemble.completed_runs + 1),
            "final_value": list(ensemble.final_values),
            "max_drawdown": list(ensemble.max_drawdowns),
            "final_value_real": list(ensemble.final_values_real),
        }
    )


def bands_frame(ensemble: MonteCarloEnsemble) -> pd.DataFrame:
    """Year-by-year percentile bands; year 0 is the initial capital."""
    df = pd.DataFrame(ensemble.yearly_bands)
    df.index.name = "year"
    return df.reset_index()


def write_csv_report(
    output_dir: str,
    file_base: str,
    trajectory: Trajectory,
    config: InvestmentConfig,
    summary: AggregateResult,
    milestones: List[Milestone],
    ensemble: Optional[MonteCarloEnsemble] = None,
) -> Dict[str, str]:
    """Writes every available table as CSV and returns the written paths by table name."""
    os.makedirs(output_dir, exist_ok=True)
    frames = {
        "monthly": trajectory_frame(trajectory, config),
        "annual": annual_frame(trajectory, config),
        "summary": summary_frame(summary),
        "milestones": milestones_frame(milestones),
    }
    if ensemble is not None and ensemble.completed_runs > 0:
        frames["ensemble"] = ensemble_frame(ensemble)
        frames["bands"] = bands_frame(ensemble)

    written = {}
    for name, frame in frames.items():
        path = os.path.join(output_dir, f"{file_base}_{name}.csv")
        frame.to_csv(path, index=False)
        written[name] = path
        logger.info(f"Wrote {name} table ({len(frame)} rows) to {path}")
    return written
