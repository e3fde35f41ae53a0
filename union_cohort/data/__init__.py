"""Loading of tabulated prevalence by age, sex and group."""

from union_cohort.data.prevalence_table import (
    PrevalenceTableLayout,
    available_sexes,
    extract_series,
    load_prevalence_table,
)

__all__ = [
    "PrevalenceTableLayout",
    "available_sexes",
    "extract_series",
    "load_prevalence_table",
]
