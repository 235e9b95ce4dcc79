import sys
import datetime as _dt
import hashlib
from typing import Optional

from loguru import logger

from config import InvestmentConfig


def _generate_seed_from_timestamp() -> int:
    ts = _dt.datetime.now(_dt.timezone.utc).isoformat()
    return int.from_bytes(hashlib.sha256(ts.encode()).digest()[:8], "big") % (2**32 - 1)


def configure_logging(log_filename: Optional[str] = None, level: str = "INFO") -> None:
    """Replaces the default loguru sink with a colorized stderr sink and an optional rotating file."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
    )
    if log_filename:
        logger.add(
            log_filename,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
            level=level,
            rotation="10 MB",
        )


def format_optional_pct(value: Optional[float], digits: int = 2) -> str:
    return "n/a" if value is None else f"{value * 100:.{digits}f}%"


def log_input_parameters(config: InvestmentConfig) -> None:
    """Logs the input parameters for the projection."""
    logger.info(f"--- Input Parameters For Scenario: {config.nickname} ---")
    for key, value in config.model_dump(by_alias=False).items():
        if key == "nickname":
            continue
        label = key.replace("_pct", "").replace("_", " ").title()
        if key.endswith("_pct"):
            logger.info(f"{label}: {value:.2f}%")
        elif key in ("initial_capital", "monthly_contribution"):
            logger.info(f"{label}: {value:,.2f}")
        else:
            logger.info(f"{label}: {value}")
    logger.info(f"Total Periods (Calculated): {config.total_periods}")
    logger.info("--- End of Input Parameters ---")


def log_simulation_results(config: InvestmentConfig, summary, milestones, ensemble=None) -> None:
    """Logs the base-case summary, milestones and, when present, the ensemble percentiles."""
    logger.info(f"--- Projection Results for Scenario: '{config.nickname}' ---")
    logger.info(f"Final Value: {summary.final_value:,.2f}")
    logger.info(f"Final Value (Inflation Adjusted): {summary.final_value_real:,.2f}")
    logger.info(f"Total Contributions: {summary.total_contributions:,.2f}")
    logger.info(f"Net Profit: {summary.net_profit:,.2f}")
    logger.info(f"Total Taxes Paid: {summary.total_taxes_paid:,.2f}")
    logger.info(f"Total Fees Paid: {summary.total_fees_paid:,.2f}")
    logger.info(f"CAGR: {format_optional_pct(summary.cagr)}")
    logger.info(f"Average Annual Return: {format_optional_pct(summary.average_annual_return)}")
    logger.info(f"Realized Volatility: {format_optional_pct(summary.realized_volatility)}")
    logger.info(f"Max Drawdown: {summary.max_drawdown * 100:.2f}%")
    ratio = summary.risk_adjusted_ratio
    logger.info(f"Risk Adjusted Ratio: {'n/a' if ratio is None else f'{ratio:.3f}'}")

    if milestones:
        logger.info("Milestones:")
        for m in milestones:
            pct = "n/a" if m.percentage_of_final_value is None else f"{m.percentage_of_final_value:.1f}%"
            logger.info(
                f"  {m.name}: month {m.period_index} (year {m.year}, {m.date.isoformat()}), "
                f"value {m.crossing_value:,.2f}, {pct} of final"
            )
    else:
        logger.info("Milestones: none reached")

    if ensemble is not None:
        logger.info(
            f"Monte Carlo: {ensemble.completed_runs}/{ensemble.requested_runs} runs"
            f"{' (cancelled)' if ensemble.cancelled else ''}, seed {ensemble.seed}"
        )
        logger.info("Final Value Percentiles:")
        for key, value in ensemble.percentiles.items():
            logger.info(f"  {key[1:]}th: {value:,.2f}")
        if "p50" in ensemble.real_percentiles:
            logger.info(
                f"Median Final Value (Inflation Adjusted): {ensemble.real_percentiles['p50']:,.2f}"
            )
