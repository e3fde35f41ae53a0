"""
Method Comparison and Cohort Summaries

Compares the fit quality of the first-difference and two-state estimators
across (sex, group) series, summarises the estimated transition
probabilities, and reads cohort quantities off a fitted table.
"""

import numpy as np
import pandas as pd
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from union_cohort.estimation.results import (
    METHOD_FIRST_DIFFERENCE,
    METHOD_TWO_STATE,
    FitResult,
)
from union_cohort.utils.logger import get_logger


GroupKey = Tuple[str, str]  # (sex, group)

logger = get_logger(__name__)


def compare_methods(
    fits: Mapping[GroupKey, Mapping[str, FitResult]]
) -> pd.DataFrame:
    """
    Tabulate mean absolute error per method for every (sex, group).

    Args:
        fits: ``{(sex, group): {method: FitResult, ...}, ...}``

    Returns:
        DataFrame with columns sex, group, one ``mae_<method>`` column per
        method, and (when both methods are present) ``mae_improvement``
        and ``two_state_converged``.
    """
    rows: List[Dict] = []
    for (sex, group), by_method in fits.items():
        row: Dict = {'sex': sex, 'group': group}
        for method, fit in by_method.items():
            row[f'mae_{method}'] = fit.mae

        if METHOD_FIRST_DIFFERENCE in by_method and METHOD_TWO_STATE in by_method:
            row['mae_improvement'] = (
                by_method[METHOD_FIRST_DIFFERENCE].mae - by_method[METHOD_TWO_STATE].mae
            )
        if METHOD_TWO_STATE in by_method:
            row['two_state_converged'] = by_method[METHOD_TWO_STATE].converged
            row['two_state_iterations'] = by_method[METHOD_TWO_STATE].n_iterations

        rows.append(row)

    return pd.DataFrame(rows)


def summarize_transitions(fit: FitResult) -> Dict[str, float]:
    """
    Summary statistics of the estimated transition probabilities.

    Args:
        fit: A fitted synthetic cohort

    Returns:
        Dict with mean/max/min entry probability, the starting age of the
        maximum, and mean/max exit probability (NaN when not estimated).
    """
    entry = np.asarray(fit.transitions.entry_prob)
    peak = int(np.argmax(entry))

    summary = {
        'entry_mean': float(np.mean(entry)),
        'entry_max': float(entry[peak]),
        'entry_max_age': int(fit.ages[peak]),
        'entry_min': float(np.min(entry)),
        'exit_mean': float('nan'),
        'exit_max': float('nan'),
    }

    if fit.transitions.exit_prob is not None:
        exit_ = np.asarray(fit.transitions.exit_prob)
        summary['exit_mean'] = float(np.mean(exit_))
        summary['exit_max'] = float(np.max(exit_))

    return summary


def cohort_union_probability(fit: FitResult, from_age: int, to_age: int) -> float:
    """
    Share of the cohort not in union at ``from_age`` that has entered a
    union by ``to_age``: ``1 - not_in_union[to] / not_in_union[from]``.

    Returns NaN when nobody is out of union at ``from_age``.

    Raises:
        DataValidationError: If either age is outside the fitted series
    """
    start = fit.series.index_of(from_age)
    end = fit.series.index_of(to_age)

    base = fit.states.not_in_union[start]
    if base <= 0:
        return float('nan')
    return float(1.0 - fit.states.not_in_union[end] / base)


def build_report(
    fits: Mapping[GroupKey, Mapping[str, FitResult]],
    age_pairs: Optional[Iterable[Tuple[int, int]]] = None
) -> str:
    """
    Plain-text comparison report.

    Args:
        fits: ``{(sex, group): {method: FitResult, ...}, ...}``
        age_pairs: (from_age, to_age) pairs for cohort union probabilities

    Returns:
        Multi-line report string
    """
    lines = ["=" * 70, "SYNTHETIC COHORT REPORT", "=" * 70, ""]

    comparison = compare_methods(fits)
    lines.append("Mean absolute error by method (%):")
    if comparison.empty:
        lines.append("  (no fits)")
    else:
        table = comparison.copy()
        for col in table.columns:
            if col.startswith('mae_'):
                table[col] = (table[col] * 100).round(3)
        lines.append(table.to_string(index=False))

    lines.extend(["", "=" * 70, "TRANSITION PROBABILITIES (two-state method)", "=" * 70])
    age_pairs = list(age_pairs or [])

    for (sex, group), by_method in fits.items():
        fit = by_method.get(METHOD_TWO_STATE)
        if fit is None:
            continue

        summary = summarize_transitions(fit)
        lines.append(f"\n{sex} - {group}:")
        lines.append(
            f"  entry: mean {summary['entry_mean'] * 100:.2f}%, "
            f"max {summary['entry_max'] * 100:.2f}% (age {summary['entry_max_age']}), "
            f"min {summary['entry_min'] * 100:.2f}%"
        )
        lines.append(
            f"  exit:  mean {summary['exit_mean'] * 100:.2f}%, "
            f"max {summary['exit_max'] * 100:.2f}%"
        )
        status = "converged" if fit.converged else "NOT converged"
        lines.append(
            f"  fit:   {status} after {fit.n_iterations} iterations, "
            f"MAE {fit.mae * 100:.4f}%"
        )

        for from_age, to_age in age_pairs:
            if not (fit.series.start_age <= from_age <= to_age <= fit.series.end_age):
                logger.debug(
                    f"Skipping cohort pair {from_age}-{to_age} outside "
                    f"{fit.series.start_age}-{fit.series.end_age}"
                )
                continue
            prob = cohort_union_probability(fit, from_age, to_age)
            lines.append(
                f"  P(in union by {to_age} | not in union at {from_age}) = {prob * 100:.1f}%"
            )

    return "\n".join(lines)
