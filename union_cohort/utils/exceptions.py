"""
Custom Exceptions for Union Cohort

Provides specific exception types for input and configuration problems.
Non-convergence of the iterative estimator is reported on the fit result,
never raised.
"""


class UnionCohortError(Exception):
    """Base exception for all Union Cohort errors."""
    pass


class DataLoadError(UnionCohortError):
    """Error loading or parsing a prevalence table."""
    def __init__(self, filepath: str, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"Failed to load {filepath}: {reason}")


class DataValidationError(UnionCohortError):
    """Malformed age series or prevalence values."""
    def __init__(self, issues: list):
        self.issues = issues
        super().__init__(f"Data validation failed: {', '.join(issues[:3])}")


class InsufficientDataError(UnionCohortError):
    """Not enough ages to estimate a transition."""
    def __init__(self, required: int, available: int, data_type: str = "ages"):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient data: need {required} {data_type}, have {available}"
        )


class ConfigurationError(UnionCohortError):
    """Error in configuration or estimator settings."""
    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Configuration error for '{key}': {reason}")
