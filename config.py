import os
import json
import math
from datetime import date
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator, ValidationInfo
from loguru import logger

from constants import (
    DEFAULT_MILESTONE_TARGETS,
    DEFAULT_NUM_SIMULATIONS,
    ETF_PRESETS,
    MONTHS_PER_YEAR,
    RATE_BOUNDS,
)


class ConfigurationError(Exception):
    """Raised when a configuration is invalid or the scenario file cannot be loaded or parsed."""


class InvestmentConfig(BaseModel):
    """Immutable investment policy for a projection. Rates are expressed in percent."""

    nickname: str = Field(
        "DefaultScenario",
        alias="scenario",
        description="A nickname for this projection scenario.",
    )
    initial_capital: float = Field(..., ge=0, alias="initialCapital")
    monthly_contribution: float = Field(0.0, ge=0, alias="monthlyContribution")
    years: int = Field(..., gt=0, le=100, alias="investmentYears")

    expected_annual_return_pct: float = Field(
        ..., ge=-100.0, le=100.0, alias="expectedReturn"
    )
    volatility_pct: float = Field(0.0, ge=0.0, le=100.0, alias="volatility")
    management_fee_pct: float = Field(0.0, ge=0.0, lt=100.0, alias="managementFees")
    tax_rate_pct: float = Field(0.0, ge=0.0, le=100.0, alias="taxRate")
    inflation_rate_pct: float = Field(0.0, ge=-50.0, le=100.0, alias="inflationRate")
    contribution_growth_pct: float = Field(
        0.0,
        ge=-100.0,
        le=100.0,
        alias="contributionGrowth",
        description="Growth of the monthly contribution, applied once every 12 periods.",
    )
    enable_stochastic_returns: bool = Field(False, alias="enableVolatility")
    return_compounding: Literal["nominal", "effective"] = Field(
        "nominal",
        alias="returnCompounding",
        description=(
            "'nominal' divides the annual rate by 12; 'effective' uses the monthly rate "
            "that compounds to the annual rate."
        ),
    )
    start_date: date = Field(
        default_factory=date.today,
        alias="startDate",
        description="Advisory start date, used for labeling only.",
    )

    model_config = {"validate_by_name": True, "frozen": True, "allow_inf_nan": False}

    @field_validator("volatility_pct")
    @classmethod
    def check_volatility(cls, v: float, info: ValidationInfo) -> float:
        if v > 40.0:
            scen_name = info.data.get("nickname", "N/A")
            logger.warning(
                f"Volatility ({v:.1f}%) is unusually high for scenario '{scen_name}'."
            )
        return v

    @field_validator("management_fee_pct")
    @classmethod
    def check_management_fee(cls, v: float, info: ValidationInfo) -> float:
        if v > 5.0:
            scen_name = info.data.get("nickname", "N/A")
            logger.warning(
                f"Management fee ({v:.2f}%/yr) is unusually high for scenario '{scen_name}'."
            )
        return v

    @property
    def total_periods(self) -> int:
        return self.years * MONTHS_PER_YEAR

    def to_periodic_return(self, annual: float) -> float:
        """Monthly rate for an annual rate (as a fraction) under this config's compounding."""
        if self.return_compounding == "effective":
            return (1.0 + max(annual, -1.0)) ** (1.0 / MONTHS_PER_YEAR) - 1.0
        return annual / MONTHS_PER_YEAR

    @property
    def periodic_return(self) -> float:
        return self.to_periodic_return(self.expected_annual_return_pct / 100.0)

    @property
    def periodic_volatility(self) -> float:
        return self.volatility_pct / 100.0 / math.sqrt(MONTHS_PER_YEAR)

    @property
    def periodic_fee_rate(self) -> float:
        return self.management_fee_pct / 100.0 / MONTHS_PER_YEAR

    @property
    def tax_rate(self) -> float:
        return self.tax_rate_pct / 100.0

    @property
    def inflation_rate(self) -> float:
        return self.inflation_rate_pct / 100.0

    @property
    def contribution_growth_rate(self) -> float:
        return self.contribution_growth_pct / 100.0


class RunSettings(BaseModel):
    """Settings for the outer consumers (CLI, HTTP service): ensemble size, seeding, targets."""

    num_simulations: int = Field(DEFAULT_NUM_SIMULATIONS, gt=0)
    seed: Optional[int] = Field(None)
    num_processes: int = Field(1, ge=1)
    jitter_parameters: bool = Field(True)
    milestone_targets: List[float] = Field(list(DEFAULT_MILESTONE_TARGETS))
    crisis_years: List[int] = Field([])

    model_config = {"allow_inf_nan": False}

    @field_validator("milestone_targets")
    @classmethod
    def check_targets_positive(cls, v: List[float]) -> List[float]:
        if any(t <= 0 for t in v):
            raise ValueError("Milestone targets must be positive.")
        return sorted(set(v))

    @field_validator("crisis_years")
    @classmethod
    def check_crisis_years(cls, v: List[int]) -> List[int]:
        if any(y < 0 for y in v):
            raise ValueError("Crisis years are zero-based and cannot be negative.")
        return sorted(set(v))


def clamp_rate(field_name: str, value: float) -> float:
    """Clamps a percent-valued policy rate into the range its field accepts."""
    low, high = RATE_BOUNDS[field_name]
    return min(max(value, low), high)


def build_config(data: Dict[str, Any]) -> InvestmentConfig:
    """Validates a key-value mapping into an InvestmentConfig, raising ConfigurationError on failure."""
    payload = {k: v for k, v in data.items() if k != "run"}
    try:
        return InvestmentConfig(**payload)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid investment configuration: {e}") from e


def build_run_settings(data: Dict[str, Any]) -> RunSettings:
    """Validates the optional 'run' section of a scenario mapping."""
    try:
        return RunSettings(**(data.get("run") or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid run settings: {e}") from e


def apply_preset(config: InvestmentConfig, preset_name: str) -> InvestmentConfig:
    """Returns a copy of the config with the return, volatility and fee of an ETF preset."""
    if preset_name not in ETF_PRESETS:
        raise ConfigurationError(
            f"Unknown ETF preset '{preset_name}'. Available: {', '.join(sorted(ETF_PRESETS))}"
        )
    return build_config(
        {**config.model_dump(by_alias=False), **ETF_PRESETS[preset_name]}
    )


def load_config_from_json(file_path: str) -> Dict[str, Any]:
    """Loads and returns the configuration dictionary from a JSON file."""
    if not os.path.exists(file_path):
        raise ConfigurationError(f"Configuration file not found at: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Error parsing JSON file '{file_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Unexpected error reading config file '{file_path}': {e}"
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file '{file_path}' must contain a JSON object."
        )
    return data
