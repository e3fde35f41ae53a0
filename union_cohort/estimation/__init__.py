"""Synthetic cohort estimators converting prevalence into transition probabilities."""

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.estimation.results import (
    METHOD_FIRST_DIFFERENCE,
    METHOD_TWO_STATE,
    FitResult,
    StateDistribution,
    TransitionEstimate,
)
from union_cohort.estimation.first_difference import FirstDifferenceEstimator
from union_cohort.estimation.two_state import IterativeFitSettings, TwoStateEstimator

__all__ = [
    "AgeSeries",
    "METHOD_FIRST_DIFFERENCE",
    "METHOD_TWO_STATE",
    "FitResult",
    "StateDistribution",
    "TransitionEstimate",
    "FirstDifferenceEstimator",
    "IterativeFitSettings",
    "TwoStateEstimator",
]
