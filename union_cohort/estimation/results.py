"""
Fit Result Containers

Immutable outputs of the synthetic cohort estimators:
transition probabilities, the simulated state distribution by age, and
the fit against the observed prevalence.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Any, Dict, Optional

from union_cohort.estimation.age_series import AgeSeries, ReadOnlyArrays


METHOD_FIRST_DIFFERENCE = "first_difference"
METHOD_TWO_STATE = "two_state"


def _read_only(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TransitionEstimate(ReadOnlyArrays):
    """
    One-step transition probabilities between consecutive ages.

    ``entry_prob[i]`` is the probability of moving from not-in-union to
    in-union between age ``x0 + i`` and ``x0 + i + 1``; ``exit_prob[i]`` is
    the reverse move. ``exit_prob`` is None for models that do not
    estimate dissolution.
    """
    entry_prob: np.ndarray
    exit_prob: Optional[np.ndarray] = None

    _array_fields = ('entry_prob', 'exit_prob')

    def __post_init__(self):
        object.__setattr__(self, 'entry_prob', _read_only(self.entry_prob))
        if self.exit_prob is not None:
            object.__setattr__(self, 'exit_prob', _read_only(self.exit_prob))

    def __len__(self) -> int:
        return len(self.entry_prob)


@dataclass(frozen=True, eq=False)
class StateDistribution(ReadOnlyArrays):
    """Share of the synthetic cohort in each state at every age."""
    not_in_union: np.ndarray
    in_union: np.ndarray

    _array_fields = ('not_in_union', 'in_union')

    def __post_init__(self):
        object.__setattr__(self, 'not_in_union', _read_only(self.not_in_union))
        object.__setattr__(self, 'in_union', _read_only(self.in_union))

    def totals(self) -> np.ndarray:
        return self.not_in_union + self.in_union

    def __len__(self) -> int:
        return len(self.in_union)


@dataclass(frozen=True, eq=False)
class FitResult(ReadOnlyArrays):
    """Result of fitting a synthetic cohort to one prevalence series."""
    method: str
    series: AgeSeries
    transitions: TransitionEstimate
    states: StateDistribution
    error: np.ndarray             # observed - reconstructed, by age
    mae: float

    # Convergence info (closed-form fits are always converged)
    converged: bool = True
    n_iterations: int = 0

    _array_fields = ('error',)

    def __post_init__(self):
        object.__setattr__(self, 'error', _read_only(self.error))

    @property
    def ages(self) -> np.ndarray:
        return self.series.ages

    @property
    def observed(self) -> np.ndarray:
        return self.series.prevalence

    @property
    def reconstructed(self) -> np.ndarray:
        """Modelled prevalence, i.e. the in-union share at each age."""
        return self.states.in_union

    def to_frame(self, **labels: Any) -> pd.DataFrame:
        """
        Per-age table of the fit.

        Transition columns are aligned to the starting age, so the last age
        has no transition and holds NaN. ``exit_prob`` is NaN throughout
        when the method does not estimate it.

        Args:
            **labels: Constant columns to prepend (e.g. sex='F', group='general')

        Returns:
            DataFrame with one row per age
        """
        n = len(self.series)
        entry = np.append(self.transitions.entry_prob, np.nan)
        if self.transitions.exit_prob is not None:
            exit_ = np.append(self.transitions.exit_prob, np.nan)
        else:
            exit_ = np.full(n, np.nan)

        columns: Dict[str, Any] = {'age': self.ages}
        for key, value in labels.items():
            columns[key] = [value] * n
        columns.update({
            'not_in_union': self.states.not_in_union,
            'in_union': self.states.in_union,
            'entry_prob': entry,
            'exit_prob': exit_,
            'observed': self.observed,
            'reconstructed': self.reconstructed,
            'error': self.error,
            'method': [self.method] * n,
        })
        return pd.DataFrame(columns)
