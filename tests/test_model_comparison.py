"""
Unit Tests for Method Comparison and Cohort Summaries
"""

import pytest
import numpy as np
import pandas as pd

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.estimation.first_difference import FirstDifferenceEstimator
from union_cohort.estimation.model_comparison import (
    build_report,
    cohort_union_probability,
    compare_methods,
    summarize_transitions,
)
from union_cohort.estimation.results import METHOD_FIRST_DIFFERENCE, METHOD_TWO_STATE
from union_cohort.estimation.two_state import TwoStateEstimator
from union_cohort.utils.exceptions import DataValidationError


@pytest.fixture
def fits(rising_then_flat_series, declining_series):
    """Both methods fitted to two series."""
    result = {}
    for key, series in [(('Feminino', 'general'), rising_then_flat_series),
                        (('Masculino', 'general'), declining_series)]:
        result[key] = {
            METHOD_FIRST_DIFFERENCE: FirstDifferenceEstimator().fit(series),
            METHOD_TWO_STATE: TwoStateEstimator().fit(series),
        }
    return result


class TestCompareMethods:
    """Tests for the MAE comparison table."""

    def test_one_row_per_group(self, fits):
        table = compare_methods(fits)

        assert isinstance(table, pd.DataFrame)
        assert len(table) == 2
        for col in ['sex', 'group', 'mae_first_difference', 'mae_two_state',
                    'mae_improvement', 'two_state_converged']:
            assert col in table.columns

    def test_improvement_on_decline(self, fits):
        table = compare_methods(fits).set_index('sex')

        assert table.loc['Masculino', 'mae_improvement'] > 0
        assert table.loc['Masculino', 'mae_first_difference'] == pytest.approx(0.06)

    def test_empty(self):
        assert compare_methods({}).empty


class TestSummaries:
    """Tests for transition summaries and cohort probabilities."""

    def test_summarize_transitions(self, rising_then_flat_series):
        fit = TwoStateEstimator().fit(rising_then_flat_series)
        summary = summarize_transitions(fit)

        assert summary['entry_max'] == pytest.approx(0.4)
        assert summary['entry_max_age'] == 22
        assert summary['entry_min'] == pytest.approx(0.0)
        assert summary['exit_max'] == pytest.approx(0.0, abs=1e-3)

    def test_summary_without_exit(self, rising_then_flat_series):
        fit = FirstDifferenceEstimator().fit(rising_then_flat_series)
        summary = summarize_transitions(fit)

        assert np.isnan(summary['exit_mean'])
        assert np.isnan(summary['exit_max'])

    def test_cohort_union_probability(self, rising_then_flat_series):
        """Test 1 - not_in_union[to] / not_in_union[from]."""
        fit = FirstDifferenceEstimator().fit(rising_then_flat_series)

        # not in union: 0.9 at 20, 0.2 at 24
        assert cohort_union_probability(fit, 20, 24) == pytest.approx(1 - 0.2 / 0.9)
        assert cohort_union_probability(fit, 22, 22) == pytest.approx(0.0)

    def test_cohort_probability_nobody_left(self):
        fit = FirstDifferenceEstimator().fit(AgeSeries([30, 31], [1.0, 1.0]))

        assert np.isnan(cohort_union_probability(fit, 30, 31))

    def test_cohort_probability_out_of_range(self, rising_then_flat_series):
        fit = FirstDifferenceEstimator().fit(rising_then_flat_series)

        with pytest.raises(DataValidationError):
            cohort_union_probability(fit, 18, 24)


class TestReport:
    """Tests for the plain-text report."""

    def test_report_sections(self, fits):
        report = build_report(fits, age_pairs=[(20, 24)])

        assert "Mean absolute error" in report
        assert "Feminino - general" in report
        assert "Masculino - general" in report
        assert "P(in union by 24 | not in union at 20)" in report

    def test_out_of_range_pairs_skipped(self, fits):
        report = build_report(fits, age_pairs=[(60, 70)])

        assert "P(in union by 70" not in report

    def test_non_convergence_flagged(self, declining_series):
        fit = TwoStateEstimator().fit(declining_series)
        report = build_report({('Masculino', 'general'): {METHOD_TWO_STATE: fit}})

        expected = "converged" if fit.converged else "NOT converged"
        assert expected in report
