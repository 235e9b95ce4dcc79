import asyncio
import json
import math
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from analytics import StatisticsEngine
from config import ConfigurationError, InvestmentConfig, RunSettings, build_config, build_run_settings
from export import annual_frame
from milestones import MilestoneFinder
from monte_carlo import MonteCarloRunner
from projection import ProjectionEngine
from utils import configure_logging


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ProjectionSummary(BaseModel):
    final_value: float
    final_value_real: float
    total_contributions: float
    total_taxes_paid: float
    total_fees_paid: float
    net_profit: float
    cagr: Optional[float] = None
    average_annual_return: Optional[float] = None
    realized_volatility: Optional[float] = None
    max_drawdown: float
    risk_adjusted_ratio: Optional[float] = None


class AnnualPoint(BaseModel):
    year: int
    date: str
    value: float
    real_value: float
    cumulative_contributions: float
    cumulative_taxes: float
    cumulative_fees: float


class MilestoneData(BaseModel):
    name: str
    period_index: int
    year: int
    date: str
    crossing_value: float
    percentage_of_final_value: Optional[float] = None


class EnsembleData(BaseModel):
    requested_runs: int
    completed_runs: int
    seed: int
    percentiles: Dict[str, float]
    real_percentiles: Dict[str, float]
    yearly_bands: Dict[str, List[float]]
    final_values: List[float]
    max_drawdowns: List[float]


class SimulationResponse(BaseModel):
    scenario: str
    summary: ProjectionSummary
    annual: List[AnnualPoint]
    milestones: List[MilestoneData]
    ensemble: Optional[EnsembleData] = None


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class SimulationRequest(BaseModel):
    config: Dict[str, Any] = Field(
        ...,
        description="Scenario configuration (same schema as config.json, optional 'run' section).",
    )
    include_ensemble: bool = Field(
        True, description="Run the Monte Carlo ensemble in addition to the base case."
    )


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging("server.log")
    logger.info("ETF Projection API starting up")
    yield
    logger.info("ETF Projection API shutting down")


app = FastAPI(
    title="ETF Projection API",
    description="Deterministic and Monte Carlo projections of a recurring ETF investment plan.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_float(value: Optional[float]) -> Optional[float]:
    """Convert None / NaN / Inf to None so JSON serialisation stays valid."""
    if value is None or math.isnan(value) or math.isinf(value):
        return None
    return round(value, 6)


def _run_projection(
    config: InvestmentConfig, settings: RunSettings, include_ensemble: bool
) -> dict:
    """Heavy, synchronous work -- called via ``asyncio.to_thread``."""
    trajectory = ProjectionEngine().run(config, crisis_years=settings.crisis_years)
    summary = StatisticsEngine().summarize(trajectory, config)
    milestones = MilestoneFinder(config.start_date).find_all(
        config, trajectory, settings.milestone_targets
    )

    annual = [
        {
            "year": int(row.year),
            "date": row.date.isoformat(),
            "value": round(float(row.value), 2),
            "real_value": round(float(row.real_value), 2),
            "cumulative_contributions": round(float(row.cumulative_contributions), 2),
            "cumulative_taxes": round(float(row.cumulative_taxes), 2),
            "cumulative_fees": round(float(row.cumulative_fees), 2),
        }
        for row in annual_frame(trajectory, config).itertuples(index=False)
    ]

    ensemble_data = None
    if include_ensemble:
        logger.info(
            f"Running ensemble for '{config.nickname}' ({settings.num_simulations} sims)"
        )
        ensemble = MonteCarloRunner(
            seed=settings.seed,
            num_processes=settings.num_processes,
            jitter_parameters=settings.jitter_parameters,
        ).run_ensemble(
            config, settings.num_simulations, crisis_years=settings.crisis_years
        )
        ensemble_data = {
            "requested_runs": ensemble.requested_runs,
            "completed_runs": ensemble.completed_runs,
            "seed": ensemble.seed,
            "percentiles": {k: round(v, 2) for k, v in ensemble.percentiles.items()},
            "real_percentiles": {
                k: round(v, 2) for k, v in ensemble.real_percentiles.items()
            },
            "yearly_bands": {
                k: [round(v, 2) for v in band] for k, band in ensemble.yearly_bands.items()
            },
            "final_values": [round(v, 2) for v in ensemble.final_values],
            "max_drawdowns": [round(v, 6) for v in ensemble.max_drawdowns],
        }

    return {
        "scenario": config.nickname,
        "summary": {
            "final_value": round(summary.final_value, 2),
            "final_value_real": round(summary.final_value_real, 2),
            "total_contributions": round(summary.total_contributions, 2),
            "total_taxes_paid": round(summary.total_taxes_paid, 2),
            "total_fees_paid": round(summary.total_fees_paid, 2),
            "net_profit": round(summary.net_profit, 2),
            "cagr": _safe_float(summary.cagr),
            "average_annual_return": _safe_float(summary.average_annual_return),
            "realized_volatility": _safe_float(summary.realized_volatility),
            "max_drawdown": round(summary.max_drawdown, 6),
            "risk_adjusted_ratio": _safe_float(summary.risk_adjusted_ratio),
        },
        "annual": annual,
        "milestones": [
            {
                "name": m.name,
                "period_index": m.period_index,
                "year": m.year,
                "date": m.date.isoformat(),
                "crossing_value": round(m.crossing_value, 2),
                "percentage_of_final_value": m.percentage_of_final_value,
            }
            for m in milestones
        ],
        "ensemble": ensemble_data,
    }


def _parse_request(body: SimulationRequest):
    try:
        return build_config(body.config), build_run_settings(body.config)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/config/default")
async def get_default_config():
    """Return the bundled ``config.json`` as a ready-to-use template."""
    config_path = os.path.join(os.path.dirname(__file__), "config.json")
    if not os.path.exists(config_path):
        raise HTTPException(status_code=404, detail="Default config.json not found.")
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


@app.post("/api/validate")
async def validate_config(body: SimulationRequest):
    """Validate a configuration without running any projection."""
    config, _ = _parse_request(body)
    return {"valid": True, "scenario": config.nickname, "total_periods": config.total_periods}


@app.post("/api/simulate", response_model=SimulationResponse)
async def simulate(body: SimulationRequest):
    """Run the base-case projection (and optionally the ensemble) and return plot-ready data."""
    config, settings = _parse_request(body)
    logger.info(f"Received simulation request for scenario '{config.nickname}'")

    try:
        result = await asyncio.to_thread(
            _run_projection, config, settings, body.include_ensemble,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Simulation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Simulation error: {e}")

    logger.info(f"Simulation complete for '{config.nickname}'")
    return result


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    configure_logging()
    uvicorn.run("server:app", host="0.0.0.0", port=8080, reload=True)
