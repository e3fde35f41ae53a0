"""
Numeric Utilities for Synthetic Cohort Estimation

Probability bounds, renormalisation, the fit statistic, and the
two-state forward simulation shared by the estimators.

Two-state recurrence, for each age step i:
    not[i+1] = not[i] × (1 - entry[i]) + in[i] × exit[i]
    in[i+1]  = not[i] × entry[i]       + in[i] × (1 - exit[i])
"""

import numpy as np
from typing import Optional, Tuple


# Probability bounds
ENTRY_CEILING = 0.99            # entry clamp inside the iterative fit
EXIT_CEILING = 0.5              # exit clamp after each iterative update
SIMULATION_CEILING = 0.99       # working clamp for both during propagation
FIRST_DIFFERENCE_CEILING = 0.5  # entry clamp of the closed-form estimate

SATURATION_THRESHOLD = 0.01     # 1 - P below this leaves nobody to enter


def clamp(values: np.ndarray, lower: float, upper: float) -> np.ndarray:
    """Clip probabilities into ``[lower, upper]`` (returns a new array)."""
    return np.clip(values, lower, upper)


def normalize_pair(not_in_union: float, in_union: float) -> Tuple[float, float]:
    """
    Rescale a two-state pair so it sums to one.

    A non-positive total is returned unchanged.
    """
    total = not_in_union + in_union
    if total > 0:
        return not_in_union / total, in_union / total
    return not_in_union, in_union


def mean_absolute_error(error: np.ndarray) -> float:
    """Mean of ``|observed - reconstructed|`` over all ages."""
    return float(np.mean(np.abs(error)))


def forward_simulate(
    initial_prevalence: float,
    entry_prob: np.ndarray,
    exit_prob: Optional[np.ndarray] = None,
    ceiling: float = SIMULATION_CEILING
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Age a synthetic cohort through the two-state chain.

    Probabilities are clamped to ``[0, ceiling]`` for the propagation only;
    the inputs are not modified. The pair is renormalised after each step.

    Args:
        initial_prevalence: In-union share at the first age
        entry_prob: Entry probability per age step (length n-1)
        exit_prob: Exit probability per age step (zeros if None)
        ceiling: Upper bound applied to both probabilities

    Returns:
        Tuple of (not_in_union, in_union), each of length n
    """
    entry = clamp(np.asarray(entry_prob, dtype=float), 0.0, ceiling)
    if exit_prob is None:
        exit_ = np.zeros_like(entry)
    else:
        exit_ = clamp(np.asarray(exit_prob, dtype=float), 0.0, ceiling)

    n = len(entry) + 1
    not_in_union = np.zeros(n)
    in_union = np.zeros(n)

    not_in_union[0] = 1.0 - initial_prevalence
    in_union[0] = initial_prevalence

    for i in range(n - 1):
        stay_out = not_in_union[i] * (1.0 - entry[i]) + in_union[i] * exit_[i]
        stay_in = not_in_union[i] * entry[i] + in_union[i] * (1.0 - exit_[i])
        not_in_union[i + 1], in_union[i + 1] = normalize_pair(stay_out, stay_in)

    return not_in_union, in_union
