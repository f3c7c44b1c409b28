"""
Predictor selection, numeric coercion and missing-value column filtering.

The column-drop decision is an explicit immutable value (``ColumnSchema``)
fitted once on the training split and applied to every other dataset, so that
training, validation, test and scoring data always share one column set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from wle_ml.config.schema import DataConfig
from wle_ml.data.dataset import Dataset
from wle_ml.data.schema import get_sensor_columns
from wle_ml.errors import DataShapeMismatch

logger = logging.getLogger(__name__)


# ============================================================================
# Column selection and coercion
# ============================================================================


def select_predictor_columns(columns: list[str], prefixes: list[str]) -> list[str]:
    """
    Select predictor columns by sensor name prefix.

    Args:
        columns: All column names, in file order
        prefixes: Sensor prefixes (e.g. "roll_", "accel_")

    Returns:
        Predictor columns, in file order

    Raises:
        DataShapeMismatch: If no column matches any prefix
    """
    predictors = get_sensor_columns(list(columns), list(prefixes))
    if not predictors:
        raise DataShapeMismatch(
            f"No predictor columns match prefixes {list(prefixes)}. "
            f"Available columns: {list(columns)[:10]}...",
            stage="cleaning",
        )
    return predictors


def coerce_numeric(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce every column to float; unparseable tokens become NaN.

    Args:
        frame: Predictor frame with arbitrary dtypes

    Returns:
        New float64 frame with the same index and columns
    """
    coerced = frame.apply(pd.to_numeric, errors="coerce").astype(float)

    n_new_missing = int(coerced.isna().sum().sum() - frame.isna().sum().sum())
    if n_new_missing > 0:
        logger.debug(f"Coerced {n_new_missing:,} non-numeric tokens to missing values")
    return coerced


def build_dataset(
    raw: pd.DataFrame,
    config: DataConfig,
    name: str,
    require_labels: bool = False,
) -> Dataset:
    """
    Build a Dataset from a raw frame: select predictors, coerce, attach labels/ids.

    Records with a missing outcome label are dropped (with a warning) when the
    outcome column is present.

    Args:
        raw: Raw frame as returned by ``data.io``
        config: Data configuration
        name: Dataset name
        require_labels: Raise if the outcome column is absent

    Returns:
        Dataset with every sensor-prefixed column as float predictors
    """
    predictors = select_predictor_columns(list(raw.columns), config.sensor_prefixes)
    features = coerce_numeric(raw[predictors])

    labels = None
    if config.outcome_col in raw.columns:
        labels = raw[config.outcome_col]
        unlabeled = labels.isna()
        if unlabeled.any():
            logger.warning(f"{name}: dropping {int(unlabeled.sum())} records without outcome label")
            keep = ~unlabeled
            raw = raw.loc[keep]
            features = features.loc[keep]
            labels = labels.loc[keep]
        labels = labels.astype(str).rename(config.outcome_col)
    elif require_labels:
        raise DataShapeMismatch(
            f"{name} has no outcome column '{config.outcome_col}'",
            missing_columns=[config.outcome_col],
            dataset=name,
        )

    ids = raw[config.id_col].rename(config.id_col) if config.id_col in raw.columns else None

    logger.info(f"{name}: {len(features):,} records, {features.shape[1]} candidate predictors")
    return Dataset(features=features, labels=labels, ids=ids, name=name)


# ============================================================================
# Missing-value filtering
# ============================================================================


def compute_na_fraction(dataset: Dataset) -> pd.Series:
    """Fraction of missing values per predictor column (0.0 for an empty dataset)."""
    if dataset.n_records == 0:
        return pd.Series(0.0, index=dataset.features.columns)
    return dataset.features.isna().mean()


@dataclass(frozen=True)
class ColumnSchema:
    """Retained predictor columns, fitted once on the training population.

    Attributes:
        retained: Predictor columns kept, in training order
        dropped: Columns removed because their missing fraction exceeded the threshold
        na_threshold: Maximum allowed missing fraction
        na_fraction: Missing fraction per candidate column on the fitting data
    """

    retained: tuple[str, ...]
    dropped: tuple[str, ...]
    na_threshold: float
    na_fraction: dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def n_retained(self) -> int:
        return len(self.retained)

    def to_dict(self) -> dict[str, Any]:
        return {
            "na_threshold": self.na_threshold,
            "retained": list(self.retained),
            "dropped": list(self.dropped),
            "na_fraction": dict(self.na_fraction),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ColumnSchema:
        return cls(
            retained=tuple(payload["retained"]),
            dropped=tuple(payload.get("dropped", ())),
            na_threshold=float(payload["na_threshold"]),
            na_fraction=dict(payload.get("na_fraction", {})),
        )


def fit_column_schema(dataset: Dataset, na_threshold: float = 0.5) -> ColumnSchema:
    """
    Decide which columns to keep from the training population.

    A column is dropped when its missing fraction is strictly greater than
    ``na_threshold``.

    Args:
        dataset: Training Dataset (post-split)
        na_threshold: Maximum allowed missing fraction, in [0, 1]

    Returns:
        ColumnSchema to apply to every dataset of the run

    Raises:
        ValueError: If threshold is outside [0, 1]
        DataShapeMismatch: If every column would be dropped
    """
    if not 0.0 <= na_threshold <= 1.0:
        raise ValueError(f"na_threshold must be in [0, 1], got {na_threshold}")

    na_fraction = compute_na_fraction(dataset)
    drop_mask = na_fraction > na_threshold
    retained = tuple(col for col in dataset.feature_names if not drop_mask[col])
    dropped = tuple(col for col in dataset.feature_names if drop_mask[col])

    if not retained:
        raise DataShapeMismatch(
            f"All {len(dropped)} predictor columns of '{dataset.name}' exceed the "
            f"missing-value threshold {na_threshold}",
            dataset=dataset.name,
        )

    logger.info(
        f"Column schema fitted on '{dataset.name}': retained {len(retained)} columns, "
        f"dropped {len(dropped)} with > {na_threshold:.0%} missing"
    )

    return ColumnSchema(
        retained=retained,
        dropped=dropped,
        na_threshold=float(na_threshold),
        na_fraction={col: float(frac) for col, frac in na_fraction.items()},
    )


def apply_column_schema(dataset: Dataset, schema: ColumnSchema) -> Dataset:
    """
    Restrict a dataset to the schema's retained columns, in schema order.

    Args:
        dataset: Any Dataset (training, validation, test or scoring)
        schema: Fitted ColumnSchema

    Returns:
        New Dataset with exactly ``schema.retained`` as columns

    Raises:
        DataShapeMismatch: If the dataset lacks a retained column (never padded)
    """
    available = set(dataset.feature_names)
    missing = [col for col in schema.retained if col not in available]
    if missing:
        raise DataShapeMismatch(
            f"Dataset '{dataset.name}' is missing {len(missing)} column(s) required by the "
            f"training schema: {missing[:10]}",
            missing_columns=missing,
            dataset=dataset.name,
        )

    extra = [col for col in dataset.feature_names if col not in schema.retained]
    if extra:
        logger.debug(f"{dataset.name}: discarding {len(extra)} columns not in the training schema")

    return dataset.with_columns(schema.retained)
