"""
Visualization Module

Creates figures for synthetic cohort union tables:
1. Entry probability by age
2. Synthetic cohort share not in union by age
3. Observed vs reconstructed prevalence per (sex, group)
4. Fit error by age
"""

import os
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from typing import Dict, List, Mapping, Optional, Tuple

from union_cohort.estimation.results import FitResult
from union_cohort.utils.logger import get_logger


# Publication-quality settings
plt.rcParams.update({
    'font.size': 12,
    'axes.labelsize': 14,
    'axes.titlesize': 16,
    'legend.fontsize': 11,
    'xtick.labelsize': 11,
    'ytick.labelsize': 11,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'lines.linewidth': 2,
})

# Colors cycle over sex labels in order of appearance
SEX_COLORS = ['#2E86AB', '#E94F37', '#7FB069', '#F6AE2D']

# Line styles cycle over groups
GROUP_STYLES = ['-', '--', ':', '-.']

GroupKey = Tuple[str, str]


class CohortVisualizer:
    """Visualization tools for synthetic cohort fits."""

    def __init__(self, output_dir: str = "figures"):
        """
        Initialize visualizer.

        Args:
            output_dir: Directory to save figures
        """
        self.output_dir = output_dir
        self.logger = get_logger(__name__)

        os.makedirs(output_dir, exist_ok=True)

    def _styles(
        self,
        fits: Mapping[GroupKey, FitResult]
    ) -> Dict[GroupKey, Dict[str, str]]:
        """Assign a color per sex and a line style per group."""
        sexes: List[str] = []
        groups: List[str] = []
        for sex, group in fits:
            if sex not in sexes:
                sexes.append(sex)
            if group not in groups:
                groups.append(group)

        return {
            (sex, group): {
                'color': SEX_COLORS[sexes.index(sex) % len(SEX_COLORS)],
                'linestyle': GROUP_STYLES[groups.index(group) % len(GROUP_STYLES)],
            }
            for sex, group in fits
        }

    def _save(self, fig: Figure, save_path: Optional[str]) -> None:
        if save_path:
            fig.savefig(save_path)
            self.logger.info(f"Saved figure to {save_path}")

    def plot_entry_probabilities(
        self,
        fits: Mapping[GroupKey, FitResult],
        title: str = "Probability of Entering a Union by Age",
        save_path: Optional[str] = None
    ) -> Figure:
        """
        Plot entry probability against the starting age of each step.

        Args:
            fits: ``{(sex, group): FitResult}``
            title: Plot title
            save_path: Path to save figure

        Returns:
            matplotlib Figure
        """
        fig, ax = plt.subplots(figsize=(10, 6))
        styles = self._styles(fits)

        for key, fit in fits.items():
            sex, group = key
            ax.plot(
                fit.ages[:-1],
                np.asarray(fit.transitions.entry_prob) * 100,
                label=f"{sex} - {group}",
                **styles[key]
            )

        ax.set_xlabel('Age')
        ax.set_ylabel('Probability (%)')
        ax.set_title(title)
        if fits:
            ax.legend(loc='upper right')
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        self._save(fig, save_path)

        return fig

    def plot_not_in_union(
        self,
        fits: Mapping[GroupKey, FitResult],
        title: str = "Synthetic Cohort Share Not in Union",
        save_path: Optional[str] = None
    ) -> Figure:
        """
        Plot the not-in-union share of the synthetic cohort by age.

        Args:
            fits: ``{(sex, group): FitResult}``
            title: Plot title
            save_path: Path to save figure

        Returns:
            matplotlib Figure
        """
        fig, ax = plt.subplots(figsize=(10, 6))
        styles = self._styles(fits)

        for key, fit in fits.items():
            sex, group = key
            ax.plot(
                fit.ages,
                np.asarray(fit.states.not_in_union) * 100,
                label=f"{sex} - {group}",
                **styles[key]
            )

        ax.set_xlabel('Age')
        ax.set_ylabel('Share (%)')
        ax.set_ylim(0, 100)
        ax.set_title(title)
        if fits:
            ax.legend(loc='upper right')
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        self._save(fig, save_path)

        return fig

    def plot_fit_validation(
        self,
        fits: Mapping[GroupKey, FitResult],
        title: str = "Observed vs Modelled Prevalence",
        save_path: Optional[str] = None
    ) -> Figure:
        """
        One panel per (sex, group) comparing observed and reconstructed
        prevalence.

        Args:
            fits: ``{(sex, group): FitResult}``
            title: Figure title
            save_path: Path to save figure

        Returns:
            matplotlib Figure
        """
        n_panels = max(1, len(fits))
        n_cols = 2 if n_panels > 1 else 1
        n_rows = int(np.ceil(n_panels / n_cols))

        fig, axes = plt.subplots(
            n_rows, n_cols, figsize=(6 * n_cols, 4.5 * n_rows), squeeze=False
        )
        styles = self._styles(fits)

        for ax, (key, fit) in zip(axes.flat, fits.items()):
            sex, group = key
            ax.plot(fit.ages, np.asarray(fit.observed) * 100,
                    color='black', label='Observed')
            ax.plot(fit.ages, np.asarray(fit.reconstructed) * 100,
                    color=styles[key]['color'], linestyle='--', label='Model')
            ax.set_title(f"{sex} - {group} (MAE {fit.mae * 100:.2f}%)", fontsize=12)
            ax.set_xlabel('Age')
            ax.set_ylabel('In union (%)')
            ax.legend(loc='lower right')
            ax.grid(True, alpha=0.3)

        # Hide unused panels
        for ax in list(axes.flat)[len(fits):]:
            ax.set_visible(False)

        fig.suptitle(title, fontsize=16, fontweight='bold')
        plt.tight_layout()
        self._save(fig, save_path)

        return fig

    def plot_errors(
        self,
        fits: Mapping[GroupKey, FitResult],
        title: str = "Model Error (Observed - Reconstructed)",
        save_path: Optional[str] = None
    ) -> Figure:
        """
        Plot the per-age fit error in percentage points.

        Args:
            fits: ``{(sex, group): FitResult}``
            title: Plot title
            save_path: Path to save figure

        Returns:
            matplotlib Figure
        """
        fig, ax = plt.subplots(figsize=(10, 6))
        styles = self._styles(fits)

        for key, fit in fits.items():
            sex, group = key
            ax.plot(
                fit.ages,
                np.asarray(fit.error) * 100,
                label=f"{sex} - {group}",
                **styles[key]
            )

        ax.axhline(y=0, color='gray', linestyle=':', alpha=0.7)
        ax.set_xlabel('Age')
        ax.set_ylabel('Error (percentage points)')
        ax.set_title(title)
        if fits:
            ax.legend(loc='upper right')
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        self._save(fig, save_path)

        return fig
