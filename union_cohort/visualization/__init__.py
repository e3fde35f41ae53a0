"""Visualization modules for synthetic cohort figures."""

from union_cohort.visualization.plots import (
    CohortVisualizer,
    SEX_COLORS,
)

__all__ = [
    "CohortVisualizer",
    "SEX_COLORS",
]
