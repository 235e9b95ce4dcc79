# constants.py

MONTHS_PER_YEAR: int = 12
SMALL_EPSILON: float = 1e-6
VOLATILITY_EPSILON: float = 1e-12

DEFAULT_NUM_SIMULATIONS: int = 1000
DEFAULT_OUTPUT_DIR: str = "output"

# Return sampling
CATASTROPHIC_PERIOD_RETURN_FLOOR: float = -0.5
MAX_RESAMPLE_ATTEMPTS: int = 100
CRISIS_ANNUAL_RETURN: float = -0.20

# Monte Carlo macro jitter (relative, symmetric)
RETURN_JITTER_FACTOR: float = 0.3
VOLATILITY_JITTER_FACTOR: float = 0.2
INFLATION_JITTER_FACTOR: float = 0.2

# Domains of the percent-valued policy rates (management fee must stay below 100)
RATE_BOUNDS = {
    "expected_annual_return_pct": (-100.0, 100.0),
    "volatility_pct": (0.0, 100.0),
    "management_fee_pct": (0.0, 99.99),
    "tax_rate_pct": (0.0, 100.0),
    "inflation_rate_pct": (-50.0, 100.0),
    "contribution_growth_pct": (-100.0, 100.0),
}

PERCENTILE_LEVELS = (5, 10, 25, 50, 75, 90, 95)

# Milestones
CAPITAL_MULTIPLES = tuple(range(2, 11))
DEFAULT_MILESTONE_TARGETS = (
    10_000.0,
    25_000.0,
    50_000.0,
    100_000.0,
    250_000.0,
    500_000.0,
    1_000_000.0,
)

ETF_PRESETS = {
    "world": {"expected_annual_return_pct": 7.0, "volatility_pct": 15.0, "management_fee_pct": 0.25},
    "sp500": {"expected_annual_return_pct": 8.5, "volatility_pct": 18.0, "management_fee_pct": 0.15},
    "europe": {"expected_annual_return_pct": 6.5, "volatility_pct": 16.0, "management_fee_pct": 0.30},
    "emerging": {"expected_annual_return_pct": 8.0, "volatility_pct": 22.0, "management_fee_pct": 0.45},
    "bonds": {"expected_annual_return_pct": 3.5, "volatility_pct": 8.0, "management_fee_pct": 0.20},
    "mixed": {"expected_annual_return_pct": 5.5, "volatility_pct": 12.0, "management_fee_pct": 0.35},
}

# Plotting constants
TEXT_INPUT_COLOR = '#1f77b4'
TEXT_OUTPUT_COLOR = '#ff7f0e'
