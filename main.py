import os
import sys
import datetime as _dt
import multiprocessing
from typing import Any, Dict, Optional

from loguru import logger

from analytics import StatisticsEngine
from config import (
    ConfigurationError,
    InvestmentConfig,
    RunSettings,
    build_config,
    build_run_settings,
    load_config_from_json,
)
from constants import DEFAULT_OUTPUT_DIR
from export import write_csv_report
from milestones import MilestoneFinder
from monte_carlo import MonteCarloRunner
from plotting import plot_ensemble_histogram, plot_projection
from projection import ProjectionEngine
from utils import configure_logging, log_input_parameters, log_simulation_results


def run_scenario(
    config: InvestmentConfig,
    settings: RunSettings,
    output_dir: str,
    file_base: str,
    make_plots: bool = True,
) -> Dict[str, Any]:
    """
    Runs the base case, the Monte Carlo ensemble and milestone search for one scenario,
    logs the results and writes CSV tables and charts to ``output_dir``.
    """
    trajectory = ProjectionEngine().run(config, crisis_years=settings.crisis_years)
    summary = StatisticsEngine().summarize(trajectory, config)
    milestones = MilestoneFinder(config.start_date).find_all(
        config, trajectory, settings.milestone_targets
    )

    logger.info(
        f"--- Running Monte Carlo for '{config.nickname}' ({settings.num_simulations} sims) ---"
    )
    runner = MonteCarloRunner(
        seed=settings.seed,
        num_processes=settings.num_processes,
        jitter_parameters=settings.jitter_parameters,
    )
    ensemble = runner.run_ensemble(
        config, settings.num_simulations, crisis_years=settings.crisis_years
    )

    log_simulation_results(config, summary, milestones, ensemble)

    artifacts: Dict[str, Any] = {
        "trajectory": trajectory,
        "summary": summary,
        "milestones": milestones,
        "ensemble": ensemble,
        "files": write_csv_report(
            output_dir, file_base, trajectory, config, summary, milestones, ensemble
        ),
    }

    if make_plots:
        artifacts["files"]["projection_plot"] = plot_projection(
            trajectory,
            config,
            os.path.join(output_dir, f"{file_base}_TRAJ.png"),
            ensemble=ensemble,
            milestones=milestones,
        )
        artifacts["files"]["histogram_plot"] = plot_ensemble_histogram(
            ensemble, config, summary, os.path.join(output_dir, f"{file_base}_HIST.png")
        )
    return artifacts


def main(argv: Optional[list] = None):
    """
    Main execution entry point.

    Loads the scenario file (first argument, default ``config.json``), runs the
    projection, the Monte Carlo ensemble and milestone search, logs results, and
    writes CSV tables and charts to the output directory (second argument).
    """
    args = sys.argv[1:] if argv is None else argv
    current_timestamp_str = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = f"etf_proj_log_{current_timestamp_str}.log"
    configure_logging(log_filename)
    logger.info(f"Logging initialized. Log file: {log_filename}")

    # --- LOAD CONFIGURATION FROM JSON ---
    if args:
        json_filename = args[0]
    else:
        json_filename = "config.json"
        logger.info(
            f"No config file specified via argument. Defaulting to '{json_filename}'"
        )
    output_dir = args[1] if len(args) > 1 else DEFAULT_OUTPUT_DIR

    logger.info(f"Loading configuration from: {json_filename}")
    try:
        config_dict = load_config_from_json(json_filename)
        config = build_config(config_dict)
        settings = build_run_settings(config_dict)
        logger.info(
            f"Configuration for scenario '{config.nickname}' loaded and validated successfully."
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    log_input_parameters(config)

    safe_nickname = "".join(
        c if c.isalnum() or c in ["_", "-"] else "_" for c in config.nickname
    )
    file_base = f"etf_proj_{safe_nickname}_{current_timestamp_str}"
    run_scenario(config, settings, output_dir, file_base)

    logger.info(
        f"--- Main execution finished for scenario '{config.nickname}'. "
        f"Outputs in '{output_dir}'. Log: {log_filename} ---"
    )
    return 0


if __name__ == "__main__":
    multiprocessing.freeze_support()
    sys.exit(main())
