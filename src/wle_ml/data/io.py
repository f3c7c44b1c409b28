"""
Data I/O utilities for the WLE-ML pipeline.

Reads the training (labelled) and scoring (unlabelled) exercise files with
schema-aware column filtering. Unparseable tokens are never fatal here; they
are left as strings and coerced to missing values by ``data.cleaning``.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import pandas as pd

from wle_ml.config.schema import DataConfig
from wle_ml.data.schema import get_sensor_columns
from wle_ml.errors import DataShapeMismatch

logger = logging.getLogger(__name__)


def usecols_for_exercise(config: DataConfig, extra: tuple[str, ...] = ()) -> Callable[[str], bool]:
    """
    Create column filter function for pd.read_csv(usecols=...).

    Returns columns needed for modeling:
    - Outcome column and id column (whichever the file has)
    - Sensor predictor columns (names starting with a configured prefix)
    - Any ``extra`` columns

    Args:
        config: Data configuration (column names and sensor prefixes)
        extra: Additional column names to keep

    Returns:
        Function that takes column name and returns True if column should be loaded
    """
    keep = {config.outcome_col, config.id_col, *extra}
    prefixes = list(config.sensor_prefixes)

    def _filter(col: str) -> bool:
        if col in keep:
            return True
        return bool(get_sensor_columns([col], prefixes))

    return _filter


def read_exercise_file(
    filepath: str | Path,
    *,
    usecols: Callable[[str], bool] | None = None,
    na_values: list[str] | None = None,
) -> pd.DataFrame:
    """
    Read an exercise data file (CSV or Parquet) with column filtering.

    Args:
        filepath: Path to CSV or Parquet file
        usecols: Optional column filter function
        na_values: Extra tokens treated as missing (CSV only)

    Returns:
        DataFrame with selected columns

    Raises:
        FileNotFoundError: If filepath does not exist
        ValueError: If file format is unsupported
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    suffix = filepath.suffix.lower()

    if suffix == ".csv":
        logger.info(f"Reading CSV: {filepath}")
        df = pd.read_csv(
            filepath,
            usecols=usecols,
            na_values=na_values,
            keep_default_na=True,
            low_memory=False,
        )
    elif suffix == ".parquet":
        logger.info(f"Reading Parquet: {filepath}")
        df = pd.read_parquet(filepath, engine="pyarrow")
        if usecols is not None:
            df = df[[col for col in df.columns if usecols(col)]]
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. Expected .csv or .parquet. File: {filepath}"
        )

    logger.info(f"Loaded {len(df):,} rows × {len(df.columns):,} columns")
    return df


def validate_required_columns(df: pd.DataFrame, required: list[str], source: str) -> None:
    """
    Validate that required columns are present in DataFrame.

    Raises:
        DataShapeMismatch: If any required column is missing
    """
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise DataShapeMismatch(
            f"{source} is missing required column(s) {missing}",
            missing_columns=missing,
            dataset=source,
            stage="loading",
        )


def read_training_file(filepath: str | Path, config: DataConfig) -> pd.DataFrame:
    """Read the labelled training-source file; requires the outcome column."""
    df = read_exercise_file(
        filepath,
        usecols=usecols_for_exercise(config),
        na_values=list(config.na_tokens),
    )
    validate_required_columns(df, [config.outcome_col], source=f"training file {Path(filepath).name}")
    return df


def read_scoring_file(filepath: str | Path, config: DataConfig) -> pd.DataFrame:
    """Read the unlabelled scoring file; requires the row id column."""
    df = read_exercise_file(
        filepath,
        usecols=usecols_for_exercise(config),
        na_values=list(config.na_tokens),
    )
    validate_required_columns(df, [config.id_col], source=f"scoring file {Path(filepath).name}")
    return df
