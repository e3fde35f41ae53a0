#!/usr/bin/env python
"""
Union Cohort Main Pipeline

Command-line interface converting tabulated union prevalence by age into
synthetic cohort transition tables, for every (sex, group) series.

Usage:
    python -m union_cohort.main --config configs/config.yaml --phase all
    python -m union_cohort.main --input resultados/tabua_conjugalidade.csv
    python -m union_cohort.main --phase estimate --workers 4
    python -m union_cohort.main --phase visualize --output-dir results
"""

import argparse
from concurrent.futures import ProcessPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from union_cohort.data.prevalence_table import (
    PrevalenceTableLayout,
    available_sexes,
    extract_series,
    load_prevalence_table,
)
from union_cohort.estimation.age_series import AgeSeries
from union_cohort.estimation.first_difference import FirstDifferenceEstimator
from union_cohort.estimation.model_comparison import build_report, compare_methods
from union_cohort.estimation.results import (
    METHOD_FIRST_DIFFERENCE,
    METHOD_TWO_STATE,
    FitResult,
)
from union_cohort.estimation.two_state import IterativeFitSettings, TwoStateEstimator
from union_cohort.utils.config_manager import ConfigManager
from union_cohort.utils.exceptions import UnionCohortError
from union_cohort.utils.logger import (
    configure_logging,
    current_level,
    get_logger,
    init_worker_logging,
)
from union_cohort.visualization.plots import CohortVisualizer


GroupKey = Tuple[str, str]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Union Cohort: synthetic cohort tables of union formation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run complete pipeline
    python -m union_cohort.main --phase all

    # Estimate on four worker processes
    python -m union_cohort.main --phase estimate --workers 4

    # Use a different prevalence table
    python -m union_cohort.main --input data/prevalence.csv --output-dir out
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='configs/config.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--input', '-i',
        type=str,
        default=None,
        help='Prevalence table (overrides input.path from the config)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['all', 'estimate', 'report', 'visualize'],
        default='all',
        help='Pipeline phase to run'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help='Output directory for results (overrides pipeline.output_dir)'
    )

    parser.add_argument(
        '--workers', '-w',
        type=int,
        default=None,
        help='Worker processes for the (sex, group) fits (overrides pipeline.n_workers)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be done without executing'
    )

    return parser.parse_args(argv)


def fit_series(
    series: AgeSeries,
    settings: Optional[IterativeFitSettings] = None
) -> Dict[str, FitResult]:
    """
    Run both estimators on one prevalence series.

    Module-level so it can be shipped to worker processes.
    """
    return {
        METHOD_FIRST_DIFFERENCE: FirstDifferenceEstimator().fit(series),
        METHOD_TWO_STATE: TwoStateEstimator(settings).fit(series),
    }


class SyntheticCohortPipeline:
    """Pipeline orchestrator for synthetic cohort union tables."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        output_dir: Optional[str] = None,
        n_workers: Optional[int] = None,
        input_path: Optional[str] = None
    ):
        """
        Initialize the pipeline.

        Args:
            config_path: Path to configuration file (None = defaults only)
            output_dir: Output directory (overrides config)
            n_workers: Worker processes (overrides config)
            input_path: Prevalence table (overrides config)
        """
        self.config = ConfigManager()
        if config_path:
            self.config.load(config_path)
        else:
            self.config.clear()
        if input_path:
            self.config.set('input.path', input_path)

        self.logger = get_logger(__name__)

        self.output_dir = Path(
            output_dir or self.config.get('pipeline.output_dir', 'results')
        )
        self.n_workers = int(
            n_workers if n_workers is not None else self.config.get('pipeline.n_workers', 1)
        )
        self.table_layout = PrevalenceTableLayout.from_config(self.config)
        self.settings = IterativeFitSettings.from_config(self.config)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / 'data').mkdir(exist_ok=True)
        (self.output_dir / 'figures').mkdir(exist_ok=True)
        (self.output_dir / 'reports').mkdir(exist_ok=True)

        self._table: Optional[pd.DataFrame] = None
        self._fits: Optional[Dict[GroupKey, Dict[str, FitResult]]] = None
        self.failed_groups: Dict[GroupKey, str] = {}

    @property
    def fits(self) -> Dict[GroupKey, Dict[str, FitResult]]:
        if self._fits is None:
            self.run_estimate()
        assert self._fits is not None
        return self._fits

    def load_table(self) -> pd.DataFrame:
        """Load the prevalence table named by ``input.path``."""
        if self._table is None:
            path = self.config.get('input.path', 'resultados/tabua_conjugalidade.csv')
            self._table = load_prevalence_table(path, self.table_layout)
        return self._table

    def collect_series(self) -> Dict[GroupKey, AgeSeries]:
        """
        Build the AgeSeries of every (sex, group) pair.

        Malformed slices are logged and recorded in ``failed_groups``.
        """
        table = self.load_table()
        series: Dict[GroupKey, AgeSeries] = {}

        for sex in available_sexes(table, self.table_layout):
            for group in self.table_layout.groups:
                try:
                    series[(sex, group)] = extract_series(table, sex, group, self.table_layout)
                except UnionCohortError as e:
                    self.logger.warning(f"Skipping {sex} - {group}: {e}")
                    self.failed_groups[(sex, group)] = str(e)

        return series

    def run_estimate(self) -> Dict[GroupKey, Dict[str, FitResult]]:
        """Phase 1: Fit both estimators to every (sex, group) series."""
        self.logger.info("=" * 60)
        self.logger.info("PHASE 1: SYNTHETIC COHORT ESTIMATION")
        self.logger.info("=" * 60)

        series = self.collect_series()
        fits: Dict[GroupKey, Dict[str, FitResult]] = {}

        if self.n_workers > 1 and len(series) > 1:
            self.logger.info(
                f"Fitting {len(series)} series with {self.n_workers} workers..."
            )
            with ProcessPoolExecutor(
                max_workers=self.n_workers,
                initializer=init_worker_logging,
                initargs=(current_level(),)
            ) as executor:
                futures = {
                    executor.submit(fit_series, s, self.settings): key
                    for key, s in series.items()
                }
                for future in as_completed(futures):
                    key = futures[future]
                    try:
                        fits[key] = future.result()
                    except Exception as e:
                        self._record_failure(key, e)
        else:
            for key, s in tqdm(series.items(), desc="Fitting series"):
                try:
                    fits[key] = fit_series(s, self.settings)
                except Exception as e:
                    self._record_failure(key, e)

        if not fits:
            raise UnionCohortError("All synthetic cohort fits failed")

        # Keep table order regardless of completion order
        self._fits = {key: fits[key] for key in series if key in fits}

        for (sex, group), by_method in self._fits.items():
            self.logger.info(
                f"{sex} - {group}: "
                f"MAE first difference = {by_method[METHOD_FIRST_DIFFERENCE].mae * 100:.3f}%, "
                f"two-state = {by_method[METHOD_TWO_STATE].mae * 100:.3f}%"
            )

        return self._fits

    def _record_failure(self, key: GroupKey, error: Exception) -> None:
        self.logger.warning(f"Fit for {key[0]} - {key[1]} failed: {error}")
        self.failed_groups[key] = str(error)

    def run_report(self) -> pd.DataFrame:
        """Phase 2: Write synthetic tables, the method comparison, and the report."""
        self.logger.info("=" * 60)
        self.logger.info("PHASE 2: REPORTING")
        self.logger.info("=" * 60)

        fits = self.fits

        for method in (METHOD_FIRST_DIFFERENCE, METHOD_TWO_STATE):
            frames = [
                by_method[method].to_frame(sex=sex, group=group)
                for (sex, group), by_method in fits.items()
            ]
            if not frames:
                continue
            output_file = self.output_dir / 'data' / f'synthetic_table_{method}.csv'
            pd.concat(frames, ignore_index=True).to_csv(output_file, index=False)
            self.logger.info(f"Saved {method} table to {output_file}")

        comparison = compare_methods(fits)
        comparison_file = self.output_dir / 'data' / 'method_comparison.csv'
        comparison.to_csv(comparison_file, index=False)

        age_pairs = [tuple(pair) for pair in self.config.get('report.cohort_age_pairs', []) or []]
        report = build_report(fits, age_pairs=age_pairs)
        self.logger.info("\n" + report)

        report_file = self.output_dir / 'reports' / 'synthetic_cohort_report.txt'
        with open(report_file, 'w') as f:
            f.write(report)
        self.logger.info(f"Saved report to {report_file}")

        return comparison

    def run_visualize(self) -> None:
        """Phase 3: Generate figures from the two-state fits."""
        self.logger.info("=" * 60)
        self.logger.info("PHASE 3: VISUALIZATION")
        self.logger.info("=" * 60)

        import matplotlib.pyplot as plt

        figures_dir = self.output_dir / 'figures'
        viz = CohortVisualizer(output_dir=str(figures_dir))
        two_state = {key: by_method[METHOD_TWO_STATE] for key, by_method in self.fits.items()}

        plots = [
            (viz.plot_entry_probabilities, 'entry_probability_by_age.png'),
            (viz.plot_not_in_union, 'not_in_union_by_age.png'),
            (viz.plot_fit_validation, 'fit_validation.png'),
            (viz.plot_errors, 'fit_errors.png'),
        ]
        for plot, filename in plots:
            fig = plot(two_state, save_path=str(figures_dir / filename))
            plt.close(fig)

        self.logger.info(f"All visualizations saved to {figures_dir}")

    def run_all(self) -> None:
        """Run the complete pipeline."""
        self.logger.info("=" * 60)
        self.logger.info("UNION COHORT: COMPLETE PIPELINE")
        self.logger.info("=" * 60)

        start_time = datetime.now()

        self.run_estimate()
        self.run_report()
        self.run_visualize()

        elapsed = datetime.now() - start_time
        self.logger.info("=" * 60)
        self.logger.info(f"PIPELINE COMPLETE in {elapsed}")
        self.logger.info(f"Results saved to: {self.output_dir}")
        self.logger.info("=" * 60)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    config = ConfigManager()
    if Path(args.config).exists():
        config.load(args.config)
    config_path = args.config if Path(args.config).exists() else None

    configure_logging(config, verbose=args.verbose)

    logger = get_logger(__name__)
    logger.info("Union Cohort Pipeline Starting...")
    logger.info(f"Configuration: {config_path or 'defaults'}")
    logger.info(f"Phase: {args.phase}")

    if args.dry_run:
        logger.info("DRY RUN - No actions will be performed")
        return

    pipeline = SyntheticCohortPipeline(
        config_path=config_path,
        output_dir=args.output_dir,
        n_workers=args.workers,
        input_path=args.input
    )

    if args.phase == 'all':
        pipeline.run_all()
    elif args.phase == 'estimate':
        pipeline.run_estimate()
    elif args.phase == 'report':
        pipeline.run_report()
    elif args.phase == 'visualize':
        pipeline.run_visualize()

    logger.info("Pipeline complete.")


if __name__ == "__main__":
    main()
