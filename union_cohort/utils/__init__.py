"""Utility modules for logging, configuration, and error handling."""

from union_cohort.utils.exceptions import (
    UnionCohortError,
    DataLoadError,
    DataValidationError,
    InsufficientDataError,
    ConfigurationError,
)

__all__ = [
    'UnionCohortError',
    'DataLoadError',
    'DataValidationError',
    'InsufficientDataError',
    'ConfigurationError',
]
