import multiprocessing
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from analytics import max_drawdown, percentile_summary
from config import ConfigurationError, InvestmentConfig, clamp_rate
from constants import (
    INFLATION_JITTER_FACTOR,
    PERCENTILE_LEVELS,
    RETURN_JITTER_FACTOR,
    VOLATILITY_JITTER_FACTOR,
)
from projection import ProjectionEngine, year_end_values
from random_returns import RandomReturnGenerator
from utils import _generate_seed_from_timestamp


@dataclass(frozen=True)
class MonteCarloEnsemble:
    """Outcome distribution of an ensemble, sorted ascending by final value."""

    final_values: Tuple[float, ...]
    max_drawdowns: Tuple[float, ...]
    final_values_real: Tuple[float, ...]
    percentiles: Dict[str, float]
    real_percentiles: Dict[str, float]
    yearly_bands: Dict[str, List[float]]
    requested_runs: int
    completed_runs: int
    seed: int
    cancelled: bool = False
    resample_exhaustions: int = 0
    sample_paths: List[List[float]] = field(default_factory=list)

    def probability_at_least(self, threshold: float) -> Optional[float]:
        """Fraction of completed runs whose final value reached ``threshold``."""
        if not self.final_values:
            return None
        hits = sum(1 for v in self.final_values if v >= threshold)
        return hits / len(self.final_values)


def _jitter(
    config: InvestmentConfig, field_name: str, factor: float, rng: np.random.Generator
) -> float:
    value = getattr(config, field_name) * (1.0 + rng.uniform(-factor, factor))
    return clamp_rate(field_name, value)


def jitter_config(
    config: InvestmentConfig, rng: np.random.Generator
) -> InvestmentConfig:
    """
    Perturbs expected return, volatility and inflation by bounded relative noise.

    Jittered rates are clamped to the ranges InvestmentConfig accepts.
    """
    return config.model_copy(
        update={
            "expected_annual_return_pct": _jitter(
                config, "expected_annual_return_pct", RETURN_JITTER_FACTOR, rng
            ),
            "volatility_pct": _jitter(config, "volatility_pct", VOLATILITY_JITTER_FACTOR, rng),
            "inflation_rate_pct": _jitter(
                config, "inflation_rate_pct", INFLATION_JITTER_FACTOR, rng
            ),
        }
    )


def _run_single_path(
    config: InvestmentConfig,
    path_seed: int,
    jitter_parameters: bool,
    crisis_years: Tuple[int, ...] = (),
) -> Dict[str, object]:
    """
    Runs one stochastic path with its own random stream.

    Module-level so it can be shipped to a process pool.
    """
    rng = np.random.default_rng(path_seed)
    path_config = jitter_config(config, rng) if jitter_parameters else config
    path_config = path_config.model_copy(update={"enable_stochastic_returns": True})

    generator = RandomReturnGenerator(rng=rng)
    trajectory = ProjectionEngine(generator).run(path_config, crisis_years=crisis_years)
    values = [rec.value for rec in trajectory]
    deflator = (1.0 + path_config.inflation_rate) ** path_config.years

    return {
        "final_value": values[-1],
        "final_value_real": values[-1] / deflator,
        "max_drawdown": max_drawdown([config.initial_capital] + values),
        "yearly_values": year_end_values(trajectory, config.initial_capital),
        "resample_exhaustions": generator.exhausted_count,
    }


class MonteCarloRunner:
    """
    Builds outcome distributions by repeatedly projecting a config with stochastic returns.

    Run ``i`` draws from a generator seeded with ``seed + i``, so results do not depend
    on execution order or on the number of worker processes.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        num_processes: int = 1,
        jitter_parameters: bool = True,
        num_sample_paths: int = 5,
    ):
        self.seed = seed if seed is not None else _generate_seed_from_timestamp()
        self.num_processes = max(1, num_processes)
        self.jitter_parameters = jitter_parameters
        self.num_sample_paths = num_sample_paths
        logger.info(f"Monte Carlo runner initialized with main seed: {self.seed}")

    def _run_sequential(
        self,
        config: InvestmentConfig,
        path_seeds: List[int],
        crisis_years: Tuple[int, ...],
        cancel_event,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> Tuple[List[Dict[str, object]], bool]:
        results: List[Dict[str, object]] = []
        total = len(path_seeds)
        for path_seed in path_seeds:
            if cancel_event is not None and cancel_event.is_set():
                return results, True
            results.append(
                _run_single_path(config, path_seed, self.jitter_parameters, crisis_years)
            )
            if progress_callback is not None:
                progress_callback(len(results), total)
        return results, False

    def _run_parallel(
        self,
        config: InvestmentConfig,
        path_seeds: List[int],
        crisis_years: Tuple[int, ...],
        cancel_event,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> Tuple[List[Dict[str, object]], bool]:
        results: List[Dict[str, object]] = []
        total = len(path_seeds)
        args = [(config, s, self.jitter_parameters, crisis_years) for s in path_seeds]
        with multiprocessing.Pool(processes=self.num_processes) as pool:
            for result in pool.imap(_star_run_single_path, args):
                if cancel_event is not None and cancel_event.is_set():
                    pool.terminate()
                    return results, True
                results.append(result)
                if progress_callback is not None:
                    progress_callback(len(results), total)
        return results, False

    def run_ensemble(
        self,
        config: InvestmentConfig,
        simulation_count: int,
        cancel_event=None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        crisis_years: Iterable[int] = (),
    ) -> MonteCarloEnsemble:
        """
        Runs ``simulation_count`` independent stochastic projections.

        Args:
            config: Base investment policy; stochastic mode is forced on per run.
            simulation_count: Number of runs.
            cancel_event: Optional object with ``is_set()`` (e.g. threading.Event),
                checked between runs. A cancelled ensemble keeps the completed runs.
            progress_callback: Optional ``callback(completed, total)``.
            crisis_years: Zero-based year indices forced to the crisis return in every run.
        """
        if simulation_count <= 0:
            raise ConfigurationError(
                f"Simulation count must be positive, got {simulation_count}."
            )

        path_seeds = [self.seed + i for i in range(simulation_count)]
        crisis = tuple(sorted(set(crisis_years)))
        results: List[Dict[str, object]]
        cancelled: bool

        if self.num_processes <= 1:
            logger.debug(
                f"Running {simulation_count} simulations sequentially for '{config.nickname}'."
            )
            results, cancelled = self._run_sequential(
                config, path_seeds, crisis, cancel_event, progress_callback
            )
        else:
            logger.debug(
                f"Running {simulation_count} simulations in parallel using "
                f"{self.num_processes} processes for '{config.nickname}'."
            )
            try:
                results, cancelled = self._run_parallel(
                    config, path_seeds, crisis, cancel_event, progress_callback
                )
            except (OSError, RuntimeError) as e:
                logger.error(
                    f"Multiprocessing pool error: {e}. Falling back to sequential execution."
                )
                results, cancelled = self._run_sequential(
                    config, path_seeds, crisis, cancel_event, progress_callback
                )

        if cancelled:
            logger.warning(
                f"Ensemble for '{config.nickname}' cancelled after "
                f"{len(results)}/{simulation_count} runs."
            )

        return self._build_ensemble(results, simulation_count, cancelled)

    def _build_ensemble(
        self,
        results: List[Dict[str, object]],
        requested_runs: int,
        cancelled: bool,
    ) -> MonteCarloEnsemble:
        order = sorted(range(len(results)), key=lambda i: results[i]["final_value"])
        final_values = tuple(float(results[i]["final_value"]) for i in order)
        drawdowns = tuple(float(results[i]["max_drawdown"]) for i in order)
        real_values = tuple(float(results[i]["final_value_real"]) for i in order)
        exhaustions = sum(int(r["resample_exhaustions"]) for r in results)
        if exhaustions:
            logger.info(
                f"{exhaustions} period draws were clamped to the return floor across the ensemble."
            )

        yearly_bands: Dict[str, List[float]] = {}
        sample_paths: List[List[float]] = []
        if results:
            yearly_matrix = np.array([r["yearly_values"] for r in results], dtype=float)
            for lvl in PERCENTILE_LEVELS:
                yearly_bands[f"p{lvl}"] = np.percentile(yearly_matrix, lvl, axis=0).tolist()
            n_samples = min(self.num_sample_paths, len(results))
            picker = np.random.default_rng(self.seed)
            picked = picker.choice(len(results), size=n_samples, replace=False)
            sample_paths = [list(results[int(i)]["yearly_values"]) for i in picked]

        return MonteCarloEnsemble(
            final_values=final_values,
            max_drawdowns=drawdowns,
            final_values_real=real_values,
            percentiles=percentile_summary(final_values),
            real_percentiles=percentile_summary(real_values),
            yearly_bands=yearly_bands,
            requested_runs=requested_runs,
            completed_runs=len(results),
            seed=self.seed,
            cancelled=cancelled,
            resample_exhaustions=exhaustions,
            sample_paths=sample_paths,
        )


def _star_run_single_path(args: Tuple[InvestmentConfig, int, bool, Tuple[int, ...]]) -> Dict[str, object]:
    return _run_single_path(*args)
