"""
Split generation for the WLE-ML pipeline.

Three-way stratified partition of a labelled Dataset:

    source --(p_outer)--> TEST
       \\--> pool --(p_inner)--> TRAIN
                 \\--> VALIDATION

``p_outer`` is the fraction of all records held out for testing; ``p_inner``
is the fraction of the remaining pool used for training. Both steps stratify
on the outcome label and are deterministic for a fixed seed.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from wle_ml.data.dataset import Dataset
from wle_ml.errors import InvalidPartition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Split:
    """Three disjoint Datasets partitioned from one source Dataset."""

    train: Dataset
    validation: Dataset
    test: Dataset
    seed: int

    def items(self) -> list[tuple[str, Dataset]]:
        return [("train", self.train), ("validation", self.validation), ("test", self.test)]


# ============================================================================
# Validation
# ============================================================================


def validate_proportions(p_outer: float, p_inner: float) -> None:
    """
    Validate split proportions.

    Raises:
        InvalidPartition: If either proportion is outside the open interval (0, 1)
    """
    for name, value in (("p_outer", p_outer), ("p_inner", p_inner)):
        if value is None or not np.isfinite(value) or not 0.0 < value < 1.0:
            raise InvalidPartition(f"{name} must lie strictly between 0 and 1, got {value}")


def _stratified_split(
    index: pd.Index,
    labels: pd.Series,
    second_size: float,
    seed: int,
    step: str,
) -> tuple[pd.Index, pd.Index]:
    """Stratified two-way split of ``index``; second part gets ``second_size`` of the records."""
    # Round to a record count so 1 - p_inner does not pick up floating point error
    n_second = int(round(second_size * len(index)))
    if n_second <= 0 or n_second >= len(index):
        raise InvalidPartition(
            f"{step} split of {len(index)} records with fraction {second_size:.3f} "
            "would leave an empty subset"
        )
    try:
        first, second = train_test_split(
            np.asarray(index),
            test_size=n_second,
            random_state=seed,
            stratify=labels.loc[index].to_numpy(),
        )
    except ValueError as e:
        raise InvalidPartition(f"cannot stratify {step} split: {e}") from e

    if len(first) == 0 or len(second) == 0:
        raise InvalidPartition(f"{step} split produced an empty subset")

    return pd.Index(np.sort(first)), pd.Index(np.sort(second))


# ============================================================================
# Partition
# ============================================================================


def partition(dataset: Dataset, p_outer: float, p_inner: float, seed: int = 0) -> Split:
    """
    Partition a labelled dataset into stratified train/validation/test subsets.

    Args:
        dataset: Labelled source Dataset
        p_outer: Test fraction of the whole dataset, in (0, 1)
        p_inner: Training fraction of the train+validation pool, in (0, 1)
        seed: Random seed for reproducibility

    Returns:
        Split with records in source order within each subset

    Raises:
        InvalidPartition: On invalid proportions, unlabelled or too small data

    Example:
        >>> split = partition(dataset, p_outer=0.3, p_inner=0.7, seed=0)
        >>> # 1000 records -> ~490 train, ~210 validation, ~300 test
    """
    validate_proportions(p_outer, p_inner)

    if not dataset.has_labels:
        raise InvalidPartition(f"dataset '{dataset.name}' has no outcome labels to stratify on")
    if dataset.n_records < 3:
        raise InvalidPartition(
            f"dataset '{dataset.name}' has {dataset.n_records} records; need at least 3"
        )
    if not dataset.index.is_unique:
        raise InvalidPartition(f"dataset '{dataset.name}' has duplicate record indices")

    labels = dataset.require_labels()

    pool_idx, test_idx = _stratified_split(dataset.index, labels, p_outer, seed, "test")
    train_idx, val_idx = _stratified_split(pool_idx, labels, 1.0 - p_inner, seed, "validation")

    split = Split(
        train=dataset.take(train_idx, name="train"),
        validation=dataset.take(val_idx, name="validation"),
        test=dataset.take(test_idx, name="test"),
        seed=seed,
    )
    check_disjoint(split, source=dataset)

    logger.info(
        f"Partitioned {dataset.n_records:,} records: train={len(split.train):,}, "
        f"validation={len(split.validation):,}, test={len(split.test):,} (seed={seed})"
    )
    return split


def check_disjoint(split: Split, source: Dataset | None = None) -> None:
    """
    Verify that subsets are pairwise disjoint (and cover ``source`` if given).

    Raises:
        InvalidPartition: On overlap or incomplete coverage
    """
    parts = split.items()
    for i, (name_a, part_a) in enumerate(parts):
        for name_b, part_b in parts[i + 1 :]:
            overlap = part_a.index.intersection(part_b.index)
            if len(overlap) > 0:
                raise InvalidPartition(
                    f"{name_a} and {name_b} share {len(overlap)} records "
                    f"(first: {overlap[0]})"
                )

    if source is not None:
        union = split.train.index.append([split.validation.index, split.test.index])
        if len(union) != source.n_records or not union.sort_values().equals(
            source.index.sort_values()
        ):
            raise InvalidPartition(
                f"split covers {len(union)} records but source '{source.name}' has "
                f"{source.n_records}"
            )


# ============================================================================
# Split Summary Utilities
# ============================================================================


def compute_split_id(indices: pd.Index | np.ndarray) -> str:
    """
    Generate reproducible hash ID for split indices.

    Args:
        indices: Array of indices

    Returns:
        12-character hex hash

    Example:
        >>> split_id = compute_split_id(np.array([0, 1, 2, 3]))
        >>> assert len(split_id) == 12
    """
    sorted_idx = np.sort(np.asarray(indices, dtype=np.int64))
    hash_obj = hashlib.md5(sorted_idx.tobytes())
    return hash_obj.hexdigest()[:12]


def class_proportion_table(split: Split, source: Dataset | None = None) -> pd.DataFrame:
    """
    Per-class proportions of each subset (columns) by class label (rows).

    Args:
        split: Partitioned data
        source: Optional source Dataset, added as the "source" column

    Returns:
        DataFrame of proportions (missing classes as 0.0)
    """
    columns = {}
    if source is not None:
        columns["source"] = source.class_proportions()
    for name, part in split.items():
        columns[name] = part.class_proportions()
    return pd.DataFrame(columns).fillna(0.0).sort_index()


def summarize_split(split: Split) -> dict[str, Any]:
    """
    Compute summary statistics for a split.

    Returns:
        Dictionary with counts, per-class proportions, and split IDs
    """
    summary: dict[str, Any] = {"seed": int(split.seed)}
    for name, part in split.items():
        summary[f"n_{name}"] = int(len(part))
        summary[f"split_id_{name}"] = compute_split_id(part.index)
        summary[f"class_proportions_{name}"] = {
            str(k): float(v) for k, v in part.class_proportions().items()
        }
    return summary
