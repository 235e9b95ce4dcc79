import os
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger
from matplotlib.ticker import FuncFormatter
from typing import List, Optional

from analytics import AggregateResult
from config import InvestmentConfig
from constants import (
    MONTHS_PER_YEAR,
    TEXT_INPUT_COLOR,
    TEXT_OUTPUT_COLOR,
)
from milestones import Milestone
from monte_carlo import MonteCarloEnsemble
from projection import Trajectory
from utils import format_optional_pct


def _thousands_formatter(x_val, pos):
    if abs(x_val) >= 1e6:
        return f"{x_val / 1e6:.1f}M"
    if abs(x_val) >= 1e3:
        return f"{x_val / 1e3:.0f}k"
    return f"{x_val:.0f}"


def _draw_text_block(ax, lines: List[str], y_start: float, color: str, bold: bool = False):
    line_spacing_val = 0.035
    for i, line_text in enumerate(lines):
        ax.text(
            0.98,
            y_start - i * line_spacing_val,
            line_text,
            transform=ax.transAxes,
            ha="right",
            va="top",
            fontsize=6.5,
            color=color,
            fontweight="bold" if bold else "normal",
            bbox=dict(
                facecolor="white",
                alpha=0.80,
                pad=2,
                edgecolor="lightgrey",
                boxstyle="round,pad=0.3",
            ),
        )
    return y_start - len(lines) * line_spacing_val


def _save(filename: str, dpi_setting: int, kind: str) -> Optional[str]:
    try:
        file_directory = os.path.dirname(filename)
        if file_directory:
            os.makedirs(file_directory, exist_ok=True)
        plt.savefig(filename, dpi=dpi_setting)
        logger.info(f"{kind} plot saved to {filename} (DPI: {dpi_setting})")
        return filename
    except (OSError, ValueError) as e:
        logger.error(f"Error saving {kind.lower()} plot '{filename}': {e}")
        return None
    finally:
        plt.close()


def plot_ensemble_histogram(
    ensemble: MonteCarloEnsemble,
    input_config: InvestmentConfig,
    summary: AggregateResult,
    filename: str,
    dpi_setting: int = 150,
) -> Optional[str]:
    """Histogram of ensemble final values with the base-case inputs and results annotated."""
    plt.figure(figsize=(12, 7.5))
    ax = plt.gca()

    if ensemble.final_values:
        values = np.asarray(ensemble.final_values)
        plt.hist(values, bins=50, edgecolor="black", alpha=0.7, label="Final values")
        if "p50" in ensemble.percentiles:
            plt.axvline(
                ensemble.percentiles["p50"],
                color="blue",
                linestyle="dashed",
                linewidth=1.2,
                label=f"Median: {ensemble.percentiles['p50']:,.0f}",
            )
        for key, color in (("p10", "orangered"), ("p90", "green")):
            if key in ensemble.percentiles:
                plt.axvline(
                    ensemble.percentiles[key],
                    color=color,
                    linestyle=":",
                    linewidth=1.0,
                    label=f"{key[1:]}th pct: {ensemble.percentiles[key]:,.0f}",
                )
    else:
        logger.info(f"No ensemble outcomes to plot in histogram for {filename}.")
        ax.text(0.5, 0.5, "No outcomes to display.", transform=ax.transAxes, ha="center", va="center")

    p = input_config
    input_lines = [
        f"Scenario: {p.nickname}",
        f"Runs: {ensemble.completed_runs:,}/{ensemble.requested_runs:,}, Seed: {ensemble.seed}",
        f"Init Cap: {p.initial_capital:,.0f}, Contr: {p.monthly_contribution:,.0f}/mo (Grows @ {p.contribution_growth_pct:.1f}%)",
        f"Return: {p.expected_annual_return_pct:.1f}%, Vol: {p.volatility_pct:.1f}%, Years: {p.years}",
        f"Fees: {p.management_fee_pct:.2f}%, Tax: {p.tax_rate_pct:.0f}%, Inflation: {p.inflation_rate_pct:.1f}%",
    ]
    output_lines = [
        "--- Base Case ---",
        f"Final: {summary.final_value:,.0f} (real {summary.final_value_real:,.0f})",
        f"CAGR: {format_optional_pct(summary.cagr)}, Max DD: {summary.max_drawdown * 100:.1f}%",
    ]
    y_next = _draw_text_block(ax, input_lines, 0.98, TEXT_INPUT_COLOR)
    _draw_text_block(ax, output_lines, y_next - 0.02, TEXT_OUTPUT_COLOR, bold=True)

    plt.title(f"Final Value Distribution: {p.nickname}", fontsize=14)
    plt.xlabel("Final Value", fontsize=10)
    plt.ylabel("Frequency", fontsize=10)
    ax.xaxis.set_major_formatter(FuncFormatter(_thousands_formatter))
    plt.xticks(fontsize=8)
    plt.yticks(fontsize=8)

    handles, labels = ax.get_legend_handles_labels()
    if handles:
        ax.legend(handles, labels, fontsize=7, loc="upper left", bbox_to_anchor=(0.01, 0.98))

    plt.grid(True, linestyle=":", alpha=0.6)
    plt.tight_layout()
    return _save(filename, dpi_setting, "Histogram")


def plot_projection(
    trajectory: Trajectory,
    input_config: InvestmentConfig,
    filename: str,
    ensemble: Optional[MonteCarloEnsemble] = None,
    milestones: Optional[List[Milestone]] = None,
    dpi_setting: int = 300,
) -> Optional[str]:
    """
    Plots the base-case value against cumulative contributions, with ensemble percentile
    bands, sample paths and milestone markers when provided.
    """
    if not trajectory:
        logger.warning(f"No trajectory data to plot for '{filename}'. Skipping.")
        return None

    plt.figure(figsize=(12, 7))
    ax = plt.gca()

    months_x = np.array([rec.period for rec in trajectory]) / MONTHS_PER_YEAR
    ax.plot(
        months_x,
        [rec.value for rec in trajectory],
        color="blue",
        linewidth=1.8,
        label="Base case value",
    )
    ax.plot(
        months_x,
        [rec.cumulative_contributions for rec in trajectory],
        color="black",
        linestyle="--",
        linewidth=1.0,
        label="Cumulative contributions",
    )

    if ensemble is not None and ensemble.yearly_bands:
        years_x = np.arange(len(ensemble.yearly_bands["p50"]))
        for sample in ensemble.sample_paths:
            ax.plot(years_x, sample, color="grey", alpha=0.20, linewidth=0.6, label="_nolegend_")
        for low, high, color, alpha in (("p5", "p95", "salmon", 0.15), ("p25", "p75", "skyblue", 0.25)):
            if low in ensemble.yearly_bands and high in ensemble.yearly_bands:
                ax.fill_between(
                    years_x,
                    ensemble.yearly_bands[low],
                    ensemble.yearly_bands[high],
                    color=color,
                    alpha=alpha,
                    label=f"{low[1:]}th-{high[1:]}th Percentile Range",
                    interpolate=True,
                )
        ax.plot(
            years_x,
            ensemble.yearly_bands["p50"],
            color="darkorange",
            linewidth=1.4,
            label="Monte Carlo median",
        )

    for m in milestones or []:
        ax.scatter(m.period_index / MONTHS_PER_YEAR, m.crossing_value, color="green", s=14, zorder=3)
        ax.annotate(
            m.name,
            (m.period_index / MONTHS_PER_YEAR, m.crossing_value),
            textcoords="offset points",
            xytext=(4, 4),
            fontsize=6,
            color="green",
        )

    ax.set_xlabel("Years from Start", fontsize=9)
    ax.set_ylabel("Portfolio Value", fontsize=9)
    ax.set_title(f"Portfolio Projection - Scenario: {input_config.nickname}", fontsize=11)
    ax.tick_params(axis="both", which="major", labelsize=7)
    ax.grid(True, linestyle=":", alpha=0.6)
    ax.yaxis.set_major_formatter(FuncFormatter(_thousands_formatter))
    ax.set_xlim(left=0, right=input_config.years)
    ax.set_ylim(bottom=0)
    ax.legend(fontsize=7.5, loc="upper left")
    plt.tight_layout()
    return _save(filename, dpi_setting, "Projection")
