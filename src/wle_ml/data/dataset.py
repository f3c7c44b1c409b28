"""
Dataset container shared by every pipeline stage.

A Dataset is an ordered collection of records: a numeric predictor frame,
an optional outcome label per record and an optional row identifier. Record
identity is the row index inherited from the source file, so splits can be
checked for disjointness and coverage.

Datasets are created during loading/cleaning and treated as frozen afterwards:
every operation returns a new Dataset.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class Dataset:
    """Immutable view of predictor values plus labels/ids.

    Attributes:
        features: Numeric predictor frame (rows = records, columns = predictors)
        labels: Outcome labels aligned with ``features`` (None for scoring data)
        ids: Row identifiers aligned with ``features`` (e.g. problem_id)
        name: Human-readable dataset name used in logs and errors
    """

    features: pd.DataFrame
    labels: pd.Series | None = None
    ids: pd.Series | None = None
    name: str = "dataset"

    def __post_init__(self):
        for attr in ("labels", "ids"):
            series = getattr(self, attr)
            if series is None:
                continue
            if len(series) != len(self.features):
                raise ValueError(
                    f"{self.name}: {attr} has {len(series)} rows but features have "
                    f"{len(self.features)} rows"
                )
            if not series.index.equals(self.features.index):
                raise ValueError(f"{self.name}: {attr} index is not aligned with features")

    def __len__(self) -> int:
        return len(self.features)

    @property
    def n_records(self) -> int:
        return len(self.features)

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def feature_names(self) -> tuple[str, ...]:
        return tuple(self.features.columns)

    @property
    def index(self) -> pd.Index:
        return self.features.index

    @property
    def has_labels(self) -> bool:
        return self.labels is not None

    def require_labels(self) -> pd.Series:
        """Return labels or raise if this dataset is unlabeled."""
        if self.labels is None:
            raise ValueError(f"Dataset '{self.name}' has no outcome labels")
        return self.labels

    def to_numpy(self) -> np.ndarray:
        """Predictor matrix as float array (n_records x n_features)."""
        return self.features.to_numpy(dtype=float)

    def take(self, index: pd.Index | np.ndarray | list, name: str | None = None) -> Dataset:
        """New Dataset with the records at the given row labels, in that order."""
        index = pd.Index(index)
        return Dataset(
            features=self.features.loc[index].copy(),
            labels=None if self.labels is None else self.labels.loc[index].copy(),
            ids=None if self.ids is None else self.ids.loc[index].copy(),
            name=name or self.name,
        )

    def with_columns(self, columns: list[str] | tuple[str, ...], name: str | None = None) -> Dataset:
        """New Dataset restricted to (and ordered by) ``columns``."""
        return Dataset(
            features=self.features.loc[:, list(columns)].copy(),
            labels=self.labels,
            ids=self.ids,
            name=name or self.name,
        )

    def class_counts(self) -> pd.Series:
        """Records per outcome class, sorted by class label."""
        return self.require_labels().value_counts().sort_index()

    def class_proportions(self) -> pd.Series:
        """Fraction of records per outcome class, sorted by class label."""
        counts = self.class_counts()
        return counts / counts.sum()
