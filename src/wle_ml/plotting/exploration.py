"""Exploratory plots of the training data.

- Class distribution of each split
- Missing-value fraction per candidate predictor, with the drop threshold
- Per-class boxplots of the most variable retained predictors
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from ..data.cleaning import ColumnSchema  # noqa: E402
from ..data.dataset import Dataset  # noqa: E402

logger = logging.getLogger(__name__)

SPLIT_COLORS = {
    "source": "#6c757d",
    "train": "#2a9d8f",
    "validation": "#e9c46a",
    "test": "#e76f51",
}


def plot_class_distribution(
    proportions: pd.DataFrame,
    out_path: Path | str,
    title: str = "Class distribution",
    dpi: int = 150,
) -> Path | None:
    """Grouped bar chart of class proportions (rows = classes, columns = splits).

    Args:
        proportions: Output of ``data.splits.class_proportion_table``
        out_path: Output file path
        title: Plot title
        dpi: Figure resolution

    Returns:
        Path of the saved figure, or None if there was nothing to plot
    """
    if proportions.empty:
        logger.warning("Empty class proportion table, skipping class distribution plot")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    classes = list(proportions.index)
    splits = list(proportions.columns)
    x = np.arange(len(classes))
    width = 0.8 / len(splits)

    fig, ax = plt.subplots(figsize=(7, 4))
    for i, split in enumerate(splits):
        ax.bar(
            x + (i - (len(splits) - 1) / 2) * width,
            proportions[split].to_numpy(),
            width=width,
            label=split,
            color=SPLIT_COLORS.get(split, None),
            edgecolor="white",
            linewidth=0.5,
        )

    ax.set_xticks(x)
    ax.set_xticklabels(classes)
    ax.set_xlabel("Class")
    ax.set_ylabel("Proportion of records")
    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.legend(frameon=False, fontsize=9)
    ax.grid(axis="y", alpha=0.3)

    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Class distribution plot saved: {out_path}")
    return out_path


def plot_missingness(
    schema: ColumnSchema,
    out_path: Path | str,
    title: str = "Missing values per candidate predictor",
    dpi: int = 150,
) -> Path | None:
    """Histogram of per-column missing fractions with the drop threshold marked.

    Sensor summary columns (kurtosis, skewness, ...) are only filled on
    window boundaries and sit near 1.0; raw readings sit near 0.0.
    """
    if not schema.na_fraction:
        logger.warning("Column schema has no missing-value fractions, skipping missingness plot")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fractions = np.array(list(schema.na_fraction.values()), dtype=float)

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.hist(fractions, bins=np.linspace(0, 1, 21), color="#264653", edgecolor="white")
    ax.axvline(
        schema.na_threshold,
        color="#e76f51",
        linestyle="--",
        linewidth=1.2,
        label=f"drop threshold ({schema.na_threshold:.0%})",
    )
    ax.set_xlabel("Fraction missing")
    ax.set_ylabel("Number of columns")
    ax.set_title(
        f"{title}\nretained {schema.n_retained}, dropped {len(schema.dropped)}",
        fontsize=12,
        fontweight="bold",
    )
    ax.legend(frameon=False, fontsize=9)

    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Missingness plot saved: {out_path}")
    return out_path


def top_variable_columns(dataset: Dataset, n: int = 6) -> list[str]:
    """Retained columns with the largest coefficient of variation (robust to scale)."""
    features = dataset.features
    std = features.std(skipna=True)
    mean = features.mean(skipna=True).abs().replace(0, np.nan)
    cv = (std / mean).replace([np.inf, -np.inf], np.nan).fillna(std)
    return list(cv.sort_values(ascending=False).index[:n])


def plot_feature_boxplots(
    dataset: Dataset,
    out_path: Path | str,
    columns: list[str] | None = None,
    n_top: int = 6,
    dpi: int = 150,
) -> Path | None:
    """Per-class boxplots for a handful of predictors.

    Args:
        dataset: Labelled Dataset (usually the training split)
        out_path: Output file path
        columns: Predictors to show (default: the ``n_top`` most variable)
        n_top: Number of predictors when ``columns`` is not given
        dpi: Figure resolution
    """
    if not dataset.has_labels or dataset.n_records == 0:
        logger.warning(f"'{dataset.name}' has no labelled records, skipping boxplots")
        return None

    columns = columns or top_variable_columns(dataset, n_top)
    if not columns:
        logger.warning("No predictors to plot, skipping boxplots")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    labels = dataset.require_labels()
    classes = sorted(labels.unique())
    n_cols = min(3, len(columns))
    n_rows = int(np.ceil(len(columns) / n_cols))

    fig, axes = plt.subplots(n_rows, n_cols, figsize=(4 * n_cols, 3.2 * n_rows), squeeze=False)
    for ax, col in zip(axes.flat, columns, strict=False):
        groups = [dataset.features.loc[labels == cls, col].dropna().to_numpy() for cls in classes]
        ax.boxplot(groups, showfliers=False)
        ax.set_xticks(range(1, len(classes) + 1))
        ax.set_xticklabels(classes)
        ax.set_title(col, fontsize=10)
        ax.grid(axis="y", alpha=0.3)
    for ax in list(axes.flat)[len(columns) :]:
        ax.set_visible(False)

    fig.suptitle(f"Predictors by class ({dataset.name})", fontsize=12, fontweight="bold")
    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Feature boxplots saved: {out_path}")
    return out_path
