"""
Pytest Configuration and Fixtures

Shared fixtures and configuration for all tests.
"""

import pytest
import numpy as np
import pandas as pd

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.utils.config_manager import ConfigManager


@pytest.fixture(autouse=True)
def reset_config():
    """Start every test from an empty configuration."""
    ConfigManager().clear()
    yield
    ConfigManager().clear()


@pytest.fixture
def rising_then_flat_series():
    """Prevalence rising steadily and then levelling off."""
    return AgeSeries(
        np.arange(20, 27),
        np.array([0.1, 0.3, 0.5, 0.7, 0.8, 0.8, 0.8])
    )


@pytest.fixture
def declining_series():
    """Prevalence that falls at older ages (dissolution dominates)."""
    return AgeSeries(
        np.arange(40, 45),
        np.array([0.5, 0.6, 0.7, 0.6, 0.5])
    )


def _union_curve(ages: np.ndarray, midpoint: float, peak: float) -> np.ndarray:
    """Logistic rise in percent with a gentle decline after 55."""
    rise = peak / (1.0 + np.exp(-(ages - midpoint) / 3.0))
    decline = np.where(ages > 55, 0.4 * (ages - 55), 0.0)
    return np.clip(rise - decline, 0.0, 100.0)


@pytest.fixture
def sample_prevalence_table():
    """Prevalence table in percent, laid out like the upstream tabulation."""
    ages = np.arange(15, 71)
    rows = []
    for sex, shift in [('Masculino', 2.0), ('Feminino', 0.0)]:
        general = _union_curve(ages, 27.0 + shift, 75.0)
        servants = _union_curve(ages, 29.0 + shift, 82.0)
        for age, g, s in zip(ages, general, servants):
            rows.append({
                'idade': int(age),
                'sexo': sex,
                'prop_geral': float(g),
                'prop_servidores': float(s),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def prevalence_csv(tmp_path, sample_prevalence_table):
    """Prevalence table written to a CSV file."""
    path = tmp_path / "tabua_conjugalidade.csv"
    sample_prevalence_table.to_csv(path, index=False)
    return path


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
