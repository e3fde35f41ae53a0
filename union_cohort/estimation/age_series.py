"""
Age Series Module

Observed prevalence of being in a union, indexed by consecutive single
years of age. Index ``i`` of every estimator array refers to age
``start_age + i``, so the ages must be contiguous.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from union_cohort.utils.exceptions import DataValidationError, InsufficientDataError


MIN_SERIES_LENGTH = 2


class ReadOnlyArrays:
    """
    Re-applies the read-only flag to array fields after unpickling, which
    restores ``__dict__`` without running ``__post_init__``.
    """
    _array_fields: Tuple[str, ...] = ()

    def __setstate__(self, state):
        self.__dict__.update(state)
        for name in self._array_fields:
            value = self.__dict__.get(name)
            if isinstance(value, np.ndarray):
                value.setflags(write=False)


@dataclass(frozen=True, eq=False)
class AgeSeries(ReadOnlyArrays):
    """Read-only prevalence observations by single year of age."""
    ages: np.ndarray
    prevalence: np.ndarray

    _array_fields = ('ages', 'prevalence')

    def __post_init__(self):
        ages = np.asarray(self.ages)
        try:
            prevalence = np.asarray(self.prevalence, dtype=float)
        except (TypeError, ValueError):
            raise DataValidationError(["prevalence must be numeric"])

        issues = validate_series(ages, prevalence)
        if issues:
            raise DataValidationError(issues)

        ages = ages.astype(int)
        prevalence = prevalence.copy()
        ages.setflags(write=False)
        prevalence.setflags(write=False)

        # frozen dataclass: bypass __setattr__ for the normalised arrays
        object.__setattr__(self, 'ages', ages)
        object.__setattr__(self, 'prevalence', prevalence)

    @classmethod
    def from_percentages(
        cls,
        ages: Sequence[int],
        percentages: Sequence[float]
    ) -> 'AgeSeries':
        """Build a series from prevalence given in percent (0-100)."""
        try:
            proportions = np.asarray(percentages, dtype=float) / 100.0
        except (TypeError, ValueError):
            raise DataValidationError(["prevalence must be numeric"])
        return cls(np.asarray(ages), proportions)

    @property
    def start_age(self) -> int:
        return int(self.ages[0])

    @property
    def end_age(self) -> int:
        return int(self.ages[-1])

    def index_of(self, age: int) -> int:
        """
        Position of ``age`` in the series.

        Raises:
            DataValidationError: If the age is outside the series.
        """
        if not self.start_age <= age <= self.end_age:
            raise DataValidationError([
                f"age {age} outside series range {self.start_age}-{self.end_age}"
            ])
        return int(age) - self.start_age

    def __len__(self) -> int:
        return len(self.prevalence)


def validate_series(ages: np.ndarray, prevalence: np.ndarray) -> List[str]:
    """
    Check an (ages, prevalence) pair against the estimator preconditions.

    Args:
        ages: Age of each observation
        prevalence: Proportion in union at each age

    Returns:
        List of issue descriptions (empty when the series is valid)

    Raises:
        InsufficientDataError: If fewer than two observations are given
    """
    if ages.ndim != 1 or prevalence.ndim != 1:
        return ["ages and prevalence must be one-dimensional"]

    if len(ages) != len(prevalence):
        return [
            f"length mismatch: {len(ages)} ages vs {len(prevalence)} prevalence values"
        ]

    if len(ages) < MIN_SERIES_LENGTH:
        raise InsufficientDataError(MIN_SERIES_LENGTH, len(ages))

    issues = []

    try:
        ages_float = ages.astype(float)
    except (TypeError, ValueError):
        return ["ages must be numeric"]

    if not np.all(np.isfinite(ages_float)):
        issues.append("ages contain missing or infinite values")
    elif not np.all(ages_float == np.round(ages_float)):
        issues.append("ages must be whole years")
    else:
        steps = np.diff(ages_float)
        gaps = np.flatnonzero(steps != 1)
        if len(gaps) > 0:
            first = gaps[0]
            issues.append(
                f"ages must be contiguous and increasing by 1 "
                f"(found {ages_float[first]:g} -> {ages_float[first + 1]:g})"
            )

    if not np.all(np.isfinite(prevalence)):
        issues.append("prevalence contains missing or infinite values")
    else:
        out_of_range = np.flatnonzero((prevalence < 0.0) | (prevalence > 1.0))
        if len(out_of_range) > 0:
            issues.append(
                f"prevalence outside [0, 1] at {len(out_of_range)} ages "
                f"(first value {prevalence[out_of_range[0]]:g})"
            )

    return issues
