"""
Prevalence Table Loader

Reads the tabulated share of people married or in a stable union by
single year of age and sex, with one prevalence column per population
group (e.g. general population and public servants), and turns each
(sex, group) slice into an AgeSeries.

Expected layout (column names configurable):

    idade,sexo,prop_geral,prop_servidores,...
    15,Masculino,0.8,0.0,...
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from union_cohort.estimation.age_series import AgeSeries
from union_cohort.utils.config_manager import ConfigManager
from union_cohort.utils.exceptions import DataLoadError, DataValidationError
from union_cohort.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class PrevalenceTableLayout:
    """Column layout of a prevalence table."""
    age_column: str = 'idade'
    sex_column: str = 'sexo'
    groups: Dict[str, str] = field(default_factory=lambda: {
        'general': 'prop_geral',
        'public_servants': 'prop_servidores',
    })
    percent: bool = True

    @property
    def required_columns(self) -> List[str]:
        return [self.age_column, self.sex_column, *self.groups.values()]

    @classmethod
    def from_config(cls, config: ConfigManager) -> 'PrevalenceTableLayout':
        """Build the layout from the ``input`` config section."""
        defaults = cls()
        return cls(
            age_column=config.get('input.age_column', defaults.age_column),
            sex_column=config.get('input.sex_column', defaults.sex_column),
            groups=dict(config.get('input.groups', defaults.groups) or defaults.groups),
            percent=bool(config.get('input.percent', defaults.percent)),
        )


def load_prevalence_table(
    filepath: Union[str, Path],
    layout: Optional[PrevalenceTableLayout] = None
) -> pd.DataFrame:
    """
    Load a prevalence table from CSV or Parquet.

    Args:
        filepath: Path to the table
        layout: Column layout (defaults to the upstream tabulation)

    Returns:
        DataFrame with at least the required columns

    Raises:
        DataLoadError: If the file is missing, unreadable, or lacks columns
    """
    layout = layout or PrevalenceTableLayout()
    filepath = Path(filepath)

    if not filepath.exists():
        raise DataLoadError(str(filepath), "File not found")

    try:
        if filepath.suffix == '.parquet':
            df = pd.read_parquet(filepath)
        else:
            df = pd.read_csv(filepath)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise DataLoadError(str(filepath), str(e))

    missing = [col for col in layout.required_columns if col not in df.columns]
    if missing:
        raise DataLoadError(str(filepath), f"missing columns {missing}")

    logger.info(f"Loaded {len(df)} prevalence rows from {filepath}")
    return df


def available_sexes(table: pd.DataFrame, layout: Optional[PrevalenceTableLayout] = None) -> List[str]:
    """Distinct sex labels in order of first appearance."""
    layout = layout or PrevalenceTableLayout()
    return [str(s) for s in pd.unique(table[layout.sex_column].dropna())]


def extract_series(
    table: pd.DataFrame,
    sex: str,
    group: str,
    layout: Optional[PrevalenceTableLayout] = None
) -> AgeSeries:
    """
    Slice one (sex, group) prevalence curve out of the table.

    Rows are sorted by age; percentages are converted to proportions
    when ``layout.percent`` is set.

    Args:
        table: Prevalence table
        sex: Sex label as it appears in the sex column
        group: Group name (key of ``layout.groups``)
        layout: Column layout

    Returns:
        AgeSeries for that slice

    Raises:
        DataValidationError: If the group is unknown, the slice is empty,
            ages repeat, or the series is malformed
    """
    layout = layout or PrevalenceTableLayout()

    if group not in layout.groups:
        raise DataValidationError([
            f"unknown group '{group}' (known: {sorted(layout.groups)})"
        ])
    column = layout.groups[group]

    rows = table[table[layout.sex_column].astype(str) == str(sex)]
    if rows.empty:
        raise DataValidationError([f"no rows for sex '{sex}'"])

    rows = rows.sort_values(layout.age_column)
    ages = np.asarray(rows[layout.age_column].values)
    try:
        values = np.asarray(rows[column].values, dtype=float)
    except (TypeError, ValueError):
        bad = pd.to_numeric(rows[column], errors='coerce').isna() & rows[column].notna()
        raise DataValidationError([
            f"non-numeric {column} for sex '{sex}' at ages "
            f"{rows.loc[bad, layout.age_column].tolist()}"
        ])

    if len(np.unique(ages)) != len(ages):
        raise DataValidationError([f"duplicate ages for sex '{sex}'"])

    if layout.percent:
        return AgeSeries.from_percentages(ages, values)
    return AgeSeries(ages, values)
