import json
import os

from config import build_config, build_run_settings
from main import main, run_scenario


SCENARIO = {
    "scenario": "CLI Case",
    "initialCapital": 5000,
    "monthlyContribution": 200,
    "investmentYears": 2,
    "expectedReturn": 6,
    "volatility": 10,
    "startDate": "2025-01-01",
    "run": {"num_simulations": 15, "seed": 11},
}


def test_run_scenario_writes_tables_and_plots(tmp_path):
    config = build_config(SCENARIO)
    settings = build_run_settings(SCENARIO)

    artifacts = run_scenario(config, settings, str(tmp_path), "case")

    assert artifacts["ensemble"].completed_runs == 15
    assert len(artifacts["trajectory"]) == 24
    for key in ("monthly", "annual", "summary", "projection_plot", "histogram_plot"):
        assert os.path.exists(artifacts["files"][key])


def test_main_runs_from_scenario_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "scenario.json"
    config_path.write_text(json.dumps(SCENARIO), encoding="utf-8")

    assert main([str(config_path), "results"]) == 0

    outputs = os.listdir(tmp_path / "results")
    assert any(name.startswith("etf_proj_CLI_Case_") for name in outputs)
    assert any(name.startswith("etf_proj_log_") for name in os.listdir(tmp_path))


def test_main_reports_configuration_errors(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main([str(tmp_path / "missing.json")]) == 1
