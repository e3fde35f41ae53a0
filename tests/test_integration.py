"""
Integration Tests for the Synthetic Cohort Pipeline

Runs the full pipeline on a small prevalence table and checks the
written tables, report, and figures.
"""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

from union_cohort.estimation.results import METHOD_FIRST_DIFFERENCE, METHOD_TWO_STATE
import union_cohort.main as main_module
from union_cohort.main import SyntheticCohortPipeline, fit_series, main
from union_cohort.utils.exceptions import DataLoadError


@pytest.fixture
def pipeline(prevalence_csv, tmp_path):
    return SyntheticCohortPipeline(
        output_dir=str(tmp_path / "out"),
        input_path=str(prevalence_csv),
    )


@pytest.mark.integration
class TestPipeline:
    """End-to-end pipeline tests."""

    def test_estimate_covers_every_group(self, pipeline):
        fits = pipeline.run_estimate()

        assert set(fits) == {
            ('Masculino', 'general'),
            ('Masculino', 'public_servants'),
            ('Feminino', 'general'),
            ('Feminino', 'public_servants'),
        }
        for by_method in fits.values():
            assert set(by_method) == {METHOD_FIRST_DIFFERENCE, METHOD_TWO_STATE}
        assert pipeline.failed_groups == {}

    def test_two_state_improves_on_declining_curve(self, pipeline):
        """Test that modelling dissolution helps where prevalence declines."""
        fits = pipeline.run_estimate()

        first_difference = np.mean([f[METHOD_FIRST_DIFFERENCE].mae for f in fits.values()])
        two_state = np.mean([f[METHOD_TWO_STATE].mae for f in fits.values()])
        assert two_state < first_difference

    @pytest.mark.slow
    def test_run_all_writes_outputs(self, pipeline):
        pipeline.run_all()
        out = pipeline.output_dir

        for method in (METHOD_FIRST_DIFFERENCE, METHOD_TWO_STATE):
            table = pd.read_csv(out / 'data' / f'synthetic_table_{method}.csv')
            assert {'age', 'sex', 'group', 'entry_prob', 'in_union'} <= set(table.columns)
            assert len(table) == 4 * 56

        comparison = pd.read_csv(out / 'data' / 'method_comparison.csv')
        assert len(comparison) == 4

        report = (out / 'reports' / 'synthetic_cohort_report.txt').read_text()
        assert "Masculino - general:" in report

        for name in [
            'entry_probability_by_age.png',
            'not_in_union_by_age.png',
            'fit_validation.png',
            'fit_errors.png',
        ]:
            assert (out / 'figures' / name).exists()

    def test_report_runs_estimation_lazily(self, pipeline):
        comparison = pipeline.run_report()

        assert len(comparison) == 4
        assert (pipeline.output_dir / 'data' / 'method_comparison.csv').exists()

    @pytest.mark.slow
    def test_parallel_matches_sequential(self, prevalence_csv, tmp_path):
        sequential = SyntheticCohortPipeline(
            output_dir=str(tmp_path / "seq"), input_path=str(prevalence_csv)
        ).run_estimate()
        parallel = SyntheticCohortPipeline(
            output_dir=str(tmp_path / "par"), input_path=str(prevalence_csv), n_workers=2
        ).run_estimate()

        assert list(sequential) == list(parallel)
        for key in sequential:
            np.testing.assert_allclose(
                sequential[key][METHOD_TWO_STATE].transitions.entry_prob,
                parallel[key][METHOD_TWO_STATE].transitions.entry_prob,
            )

    def test_missing_input(self, tmp_path):
        pipeline = SyntheticCohortPipeline(
            output_dir=str(tmp_path / "out"),
            input_path=str(tmp_path / "absent.csv"),
        )

        with pytest.raises(DataLoadError):
            pipeline.run_estimate()

    def test_malformed_group_is_skipped(self, sample_prevalence_table, tmp_path):
        table = sample_prevalence_table.copy()
        mask = (table['sexo'] == 'Feminino') & (table['idade'] == 30)
        table.loc[mask, 'prop_servidores'] = np.nan
        path = tmp_path / "gaps.csv"
        table.to_csv(path, index=False)

        pipeline = SyntheticCohortPipeline(
            output_dir=str(tmp_path / "out"), input_path=str(path)
        )
        fits = pipeline.run_estimate()

        assert ('Feminino', 'public_servants') not in fits
        assert ('Feminino', 'public_servants') in pipeline.failed_groups
        assert len(fits) == 3


    def test_non_numeric_cell_is_skipped(self, sample_prevalence_table, tmp_path):
        table = sample_prevalence_table.astype({'prop_servidores': object})
        mask = (table['sexo'] == 'Feminino') & (table['idade'] == 30)
        table.loc[mask, 'prop_servidores'] = 'n/d'
        path = tmp_path / "text_cell.csv"
        table.to_csv(path, index=False)

        pipeline = SyntheticCohortPipeline(
            output_dir=str(tmp_path / "out"), input_path=str(path)
        )
        fits = pipeline.run_estimate()

        assert ('Feminino', 'public_servants') in pipeline.failed_groups
        assert ('Masculino', 'public_servants') in fits
        assert len(fits) == 3

    def test_failed_fit_does_not_stop_sequential_run(self, pipeline, monkeypatch):
        real_fit = main_module.fit_series
        calls = []

        def fit_or_fail(series, settings=None):
            calls.append(series)
            if len(calls) == 1:
                raise RuntimeError("estimator blew up")
            return real_fit(series, settings)

        monkeypatch.setattr(main_module, 'fit_series', fit_or_fail)
        fits = pipeline.run_estimate()

        assert list(pipeline.failed_groups.values()) == ["estimator blew up"]
        assert len(fits) == 3
        assert ('Masculino', 'general') not in fits


class TestFitSeries:
    """Tests for the per-series worker function."""

    def test_both_methods(self, declining_series):
        result = fit_series(declining_series)

        assert result[METHOD_FIRST_DIFFERENCE].transitions.exit_prob is None
        assert result[METHOD_TWO_STATE].transitions.exit_prob is not None


@pytest.mark.integration
class TestMain:
    """Tests for the command-line entry point."""

    def test_dry_run(self, tmp_path):
        out = tmp_path / "out"
        main([
            '--config', str(tmp_path / "none.yaml"),
            '--output-dir', str(out),
            '--dry-run',
        ])

        assert not out.exists()

    def test_report_phase(self, prevalence_csv, tmp_path):
        out = tmp_path / "out"
        main([
            '--config', str(tmp_path / "none.yaml"),
            '--input', str(prevalence_csv),
            '--output-dir', str(out),
            '--phase', 'report',
        ])

        assert (out / 'reports' / 'synthetic_cohort_report.txt').exists()
        assert not (out / 'figures' / 'fit_validation.png').exists()
