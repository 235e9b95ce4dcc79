import math
from typing import Optional

import numpy as np
from loguru import logger

from constants import CATASTROPHIC_PERIOD_RETURN_FLOOR, MAX_RESAMPLE_ATTEMPTS


class ResampleExhausted(Exception):
    """Raised by a strict generator when every redraw stayed below the return floor."""


class RandomReturnGenerator:
    """
    Normally distributed period returns via the Box-Muller transform.

    Draws below ``floor`` are rejected and redrawn at most ``max_attempts`` times.
    When every attempt fails the floor itself is returned (or ResampleExhausted is
    raised when ``strict`` is set), so a single degenerate period never aborts a run.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        floor: float = CATASTROPHIC_PERIOD_RETURN_FLOOR,
        max_attempts: int = MAX_RESAMPLE_ATTEMPTS,
        strict: bool = False,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.floor = floor
        self.max_attempts = max_attempts
        self.strict = strict
        self.exhausted_count = 0

    def _standard_normal(self) -> float:
        u1 = self.rng.random()
        while u1 <= 0.0:  # log(0) is undefined
            u1 = self.rng.random()
        u2 = self.rng.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample(self, mean_period_return: float, period_volatility: float) -> float:
        """Returns one draw from N(mean_period_return, period_volatility**2), floored by rejection."""
        if period_volatility <= 0.0:
            return mean_period_return

        draw = mean_period_return
        for _ in range(self.max_attempts):
            draw = mean_period_return + self._standard_normal() * period_volatility
            if draw >= self.floor:
                return draw

        self.exhausted_count += 1
        if self.strict:
            raise ResampleExhausted(
                f"No draw above {self.floor:.2%} after {self.max_attempts} attempts "
                f"(mean={mean_period_return:.4%}, vol={period_volatility:.4%})."
            )
        logger.warning(
            f"Return resampling exhausted after {self.max_attempts} attempts "
            f"(last draw {draw:.2%}); clamping to {self.floor:.2%}."
        )
        return self.floor
