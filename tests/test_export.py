import os

import pandas as pd
import pytest

from analytics import StatisticsEngine
from export import annual_frame, summary_frame, trajectory_frame, write_csv_report
from milestones import MilestoneFinder
from monte_carlo import MonteCarloRunner
from projection import ProjectionEngine


@pytest.fixture
def scenario(make_config):
    config = make_config(years=2, monthly_contribution=100.0, inflation_rate_pct=2.0)
    trajectory = ProjectionEngine().run(config)
    summary = StatisticsEngine().summarize(trajectory, config)
    milestones = MilestoneFinder(config.start_date).find_all(config, trajectory, [12_000.0])
    return config, trajectory, summary, milestones


def test_trajectory_frame_has_dates_and_years(scenario):
    config, trajectory, _, _ = scenario

    df = trajectory_frame(trajectory, config)

    assert len(df) == 24
    assert df["year"].tolist() == [1] * 12 + [2] * 12
    assert str(df["date"].iloc[0]) == "2025-02-01"


def test_annual_frame_takes_year_end_values(scenario):
    config, trajectory, _, _ = scenario

    df = annual_frame(trajectory, config)

    assert df["year"].tolist() == [1, 2]
    assert df["value"].iloc[-1] == pytest.approx(trajectory[-1].value)
    assert df["contributions"].tolist() == pytest.approx([1_200.0, 1_200.0])
    assert df["real_value"].iloc[1] == pytest.approx(trajectory[-1].value / 1.02 ** 2)


def test_summary_frame_lists_metrics(scenario):
    _, _, summary, _ = scenario

    df = summary_frame(summary)

    metrics = dict(zip(df["metric"], df["value"]))
    assert metrics["final_value"] == summary.final_value
    assert metrics["best_year_index"] == summary.best_year[0]
    assert "yearly_returns" in metrics


def test_write_csv_report(tmp_path, scenario):
    config, trajectory, summary, milestones = scenario
    ensemble = MonteCarloRunner(seed=3).run_ensemble(config, 10)

    written = write_csv_report(
        str(tmp_path / "out"), "case", trajectory, config, summary, milestones, ensemble
    )

    assert set(written) == {"monthly", "annual", "summary", "milestones", "ensemble", "bands"}
    for path in written.values():
        assert os.path.exists(path)
    ensemble_table = pd.read_csv(written["ensemble"])
    assert len(ensemble_table) == 10
    assert "final_value_real" in ensemble_table.columns
    assert len(pd.read_csv(written["bands"])) == config.years + 1


def test_write_csv_report_without_ensemble(tmp_path, scenario):
    config, trajectory, summary, milestones = scenario

    written = write_csv_report(str(tmp_path), "case", trajectory, config, summary, milestones)

    assert "ensemble" not in written
    assert len(pd.read_csv(written["monthly"])) == 24
