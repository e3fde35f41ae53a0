"""
Two-State Iterative Estimator

Fits entry and exit (dissolution) probabilities of a two-state synthetic
cohort so that the simulated in-union share reproduces the observed
prevalence curve.

Algorithm:
1. Warm start: entry from the first-difference estimate, exit at zero
2. Forward pass through the two-state chain with the current estimates
3. Stop when the mean absolute error drops below tolerance
4. Sensitivity update per age step i, using the error one age ahead:
       entry[i] += lr × error[i+1] × not[i] / (not[i] + in[i])
       exit[i]  -= lr × error[i+1] × in[i]  / (not[i] + in[i])
   then entry is clamped to [0, 0.99] and exit to [0, 0.5]
5. Every ``decay_every`` iterations the learning rate is multiplied by
   ``lr_decay``

The update is a heuristic sensitivity rule rather than the gradient of a
closed-form loss; clamps and learning-rate schedule belong to it.
The procedure is deterministic.
"""

import time
import numpy as np
from dataclasses import dataclass
from typing import Optional

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.estimation.first_difference import FirstDifferenceEstimator
from union_cohort.estimation.numerics import (
    ENTRY_CEILING,
    EXIT_CEILING,
    SIMULATION_CEILING,
    clamp,
    forward_simulate,
    mean_absolute_error,
)
from union_cohort.estimation.results import (
    METHOD_TWO_STATE,
    FitResult,
    StateDistribution,
    TransitionEstimate,
)
from union_cohort.utils.config_manager import ConfigManager
from union_cohort.utils.exceptions import ConfigurationError
from union_cohort.utils.logger import get_logger


@dataclass
class IterativeFitSettings:
    """Parameters of the iterative refinement loop."""
    max_iter: int = 200
    tolerance: float = 1e-4
    learning_rate: float = 0.05
    lr_decay: float = 0.9
    decay_every: int = 50

    # False keeps exit at zero (entry-only baseline)
    estimate_exit: bool = True

    # Optional wall-clock cutoff in seconds
    max_wall_time: Optional[float] = None

    def __post_init__(self):
        """Validate settings."""
        if self.max_iter < 1:
            raise ConfigurationError('max_iter', f"must be >= 1, got {self.max_iter}")
        if self.tolerance < 0:
            raise ConfigurationError('tolerance', f"must be >= 0, got {self.tolerance}")
        if self.learning_rate <= 0:
            raise ConfigurationError(
                'learning_rate', f"must be > 0, got {self.learning_rate}"
            )
        if not 0 < self.lr_decay <= 1:
            raise ConfigurationError('lr_decay', f"must be in (0, 1], got {self.lr_decay}")
        if self.decay_every < 1:
            raise ConfigurationError(
                'decay_every', f"must be >= 1, got {self.decay_every}"
            )
        if self.max_wall_time is not None and self.max_wall_time < 0:
            raise ConfigurationError(
                'max_wall_time', f"must be >= 0, got {self.max_wall_time}"
            )

    @classmethod
    def from_config(
        cls,
        config: ConfigManager,
        prefix: str = 'estimation.two_state'
    ) -> 'IterativeFitSettings':
        """
        Build settings from the ``estimation.two_state`` config section.

        Missing keys fall back to the dataclass defaults.
        """
        section = config.get(prefix, {}) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(prefix, "must be a mapping")

        defaults = cls()
        try:
            max_wall_time = section.get('max_wall_time', defaults.max_wall_time)
            return cls(
                max_iter=int(section.get('max_iter', defaults.max_iter)),
                tolerance=float(section.get('tolerance', defaults.tolerance)),
                learning_rate=float(section.get('learning_rate', defaults.learning_rate)),
                lr_decay=float(section.get('lr_decay', defaults.lr_decay)),
                decay_every=int(section.get('decay_every', defaults.decay_every)),
                estimate_exit=bool(section.get('estimate_exit', defaults.estimate_exit)),
                max_wall_time=None if max_wall_time is None else float(max_wall_time),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(prefix, str(e))


class TwoStateEstimator:
    """
    Iteratively fits entry and exit probabilities of a two-state cohort.
    """

    method = METHOD_TWO_STATE

    def __init__(self, settings: Optional[IterativeFitSettings] = None):
        """
        Initialize the estimator.

        Args:
            settings: Loop parameters (uses defaults if None)
        """
        self.settings = settings or IterativeFitSettings()
        self.logger = get_logger(__name__)
        self._warm_start = FirstDifferenceEstimator()

    def __getstate__(self):
        """Exclude loggers from pickling (for ProcessPoolExecutor compatibility)."""
        state = self.__dict__.copy()
        state.pop('logger', None)
        return state

    def __setstate__(self, state):
        """Restore logger after unpickling."""
        self.__dict__.update(state)
        self.logger = get_logger(__name__)

    def fit(self, series: AgeSeries) -> FitResult:
        """
        Fit transition probabilities to an observed prevalence series.

        Never raises on non-convergence: the returned result carries
        ``converged=False`` and the final mean absolute error.

        Args:
            series: Observed prevalence by age

        Returns:
            FitResult with entry and exit probabilities
        """
        settings = self.settings
        prevalence = series.prevalence

        entry = self._warm_start.estimate_entry(series)
        exit_ = np.zeros(len(series) - 1)

        lr = settings.learning_rate
        started = time.monotonic()
        converged = False
        cut_off = False
        iteration = 0

        for iteration in range(1, settings.max_iter + 1):
            not_in_union, in_union = forward_simulate(
                prevalence[0], entry, exit_, ceiling=SIMULATION_CEILING
            )

            error = prevalence - in_union
            mae = mean_absolute_error(error)

            if mae < settings.tolerance:
                converged = True
                break

            if (settings.max_wall_time is not None
                    and time.monotonic() - started >= settings.max_wall_time):
                cut_off = True
                break

            entry, exit_ = self._update(
                entry, exit_, not_in_union, in_union, error, lr
            )

            if iteration % settings.decay_every == 0:
                lr *= settings.lr_decay
                self.logger.debug(
                    f"Iteration {iteration}: MAE={mae:.6f}, learning rate -> {lr:.5f}"
                )

        if converged:
            self.logger.info(
                f"Converged in {iteration} iterations (MAE = {mae * 100:.4f}%)"
            )
        else:
            if not cut_off:
                # The last update has not been simulated yet
                not_in_union, in_union = forward_simulate(
                    prevalence[0], entry, exit_, ceiling=SIMULATION_CEILING
                )
                error = prevalence - in_union
                mae = mean_absolute_error(error)
                converged = mae < settings.tolerance

            reason = "wall-clock limit" if cut_off else f"{settings.max_iter} iterations"
            if not converged:
                self.logger.warning(
                    f"Did not converge within {reason} (MAE = {mae * 100:.4f}%)"
                )

        return FitResult(
            method=self.method,
            series=series,
            transitions=TransitionEstimate(entry_prob=entry, exit_prob=exit_),
            states=StateDistribution(not_in_union=not_in_union, in_union=in_union),
            error=error,
            mae=mae,
            converged=converged,
            n_iterations=iteration,
        )

    def _update(
        self,
        entry: np.ndarray,
        exit_: np.ndarray,
        not_in_union: np.ndarray,
        in_union: np.ndarray,
        error: np.ndarray,
        lr: float
    ):
        """Apply one sensitivity step to every age with a positive state total."""
        total = not_in_union[:-1] + in_union[:-1]
        active = total > 0
        ahead = error[1:]

        entry = entry.copy()
        exit_ = exit_.copy()

        grad_entry = np.zeros_like(total)
        grad_exit = np.zeros_like(total)
        grad_entry[active] = not_in_union[:-1][active] / total[active]
        grad_exit[active] = -in_union[:-1][active] / total[active]

        entry[active] += lr * ahead[active] * grad_entry[active]
        entry[active] = clamp(entry[active], 0.0, ENTRY_CEILING)

        if self.settings.estimate_exit:
            exit_[active] += lr * ahead[active] * grad_exit[active]
            exit_[active] = clamp(exit_[active], 0.0, EXIT_CEILING)

        return entry, exit_
