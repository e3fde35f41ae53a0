"""
First-Difference Estimator

Closed-form synthetic cohort assuming unions never dissolve:

    P[x+1] ≈ P[x] + (1 - P[x]) × entry[x]
    =>  entry[x] = (P[x+1] - P[x]) / (1 - P[x])

Falling prevalence cannot be expressed by this model and yields a zero
entry probability for that step.
"""

import numpy as np

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.estimation.numerics import (
    FIRST_DIFFERENCE_CEILING,
    SATURATION_THRESHOLD,
    clamp,
    mean_absolute_error,
)
from union_cohort.estimation.results import (
    METHOD_FIRST_DIFFERENCE,
    FitResult,
    StateDistribution,
    TransitionEstimate,
)
from union_cohort.utils.logger import get_logger


class FirstDifferenceEstimator:
    """Single-pass entry probabilities from first differences of prevalence."""

    method = METHOD_FIRST_DIFFERENCE

    def __init__(self):
        self.logger = get_logger(__name__)

    def estimate_entry(self, series: AgeSeries) -> np.ndarray:
        """
        Estimate entry probabilities for each age step.

        Args:
            series: Observed prevalence by age

        Returns:
            Array of length n-1 with values in [0, 0.5]
        """
        prevalence = series.prevalence
        n = len(prevalence)
        entry = np.zeros(n - 1)

        for i in range(n - 1):
            d_prev = prevalence[i + 1] - prevalence[i]
            denominator = 1.0 - prevalence[i]

            if denominator > SATURATION_THRESHOLD and d_prev > 0:
                entry[i] = d_prev / denominator

        return clamp(entry, 0.0, FIRST_DIFFERENCE_CEILING)

    def fit(self, series: AgeSeries) -> FitResult:
        """
        Estimate entry probabilities and rebuild the prevalence curve.

        Args:
            series: Observed prevalence by age

        Returns:
            FitResult with ``exit_prob`` absent
        """
        entry = self.estimate_entry(series)
        n = len(series)

        not_in_union = np.zeros(n)
        not_in_union[0] = 1.0 - series.prevalence[0]
        for i in range(n - 1):
            not_in_union[i + 1] = not_in_union[i] * (1.0 - entry[i])

        in_union = 1.0 - not_in_union
        # Boundary condition is the observed value itself
        in_union[0] = series.prevalence[0]

        error = series.prevalence - in_union
        mae = mean_absolute_error(error)

        self.logger.debug(
            f"First-difference fit over ages {series.start_age}-{series.end_age}: "
            f"MAE={mae * 100:.3f}%"
        )

        return FitResult(
            method=self.method,
            series=series,
            transitions=TransitionEstimate(entry_prob=entry),
            states=StateDistribution(not_in_union=not_in_union, in_union=in_union),
            error=error,
            mae=mae,
        )
