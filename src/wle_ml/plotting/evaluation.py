"""Evaluation plots: confusion heatmaps, model comparison, meta-learner importance."""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from ..evaluation.confusion import ENSEMBLE_NAME, ConfusionResult  # noqa: E402

logger = logging.getLogger(__name__)


def plot_confusion_heatmap(
    result: ConfusionResult,
    out_path: Path | str,
    normalize: bool = True,
    dpi: int = 150,
) -> Path:
    """Heatmap of a contingency table (rows = predicted, columns = reference).

    Args:
        result: ConfusionResult to draw
        out_path: Output file path
        normalize: Color by column share (fraction of each reference class)
        dpi: Figure resolution
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    counts = result.table.to_numpy(dtype=float)
    if normalize:
        col_sums = counts.sum(axis=0, keepdims=True)
        shares = np.divide(counts, col_sums, out=np.zeros_like(counts), where=col_sums > 0)
    else:
        shares = counts

    classes = list(result.classes)
    fig, ax = plt.subplots(figsize=(1.1 * len(classes) + 2.5, 1.0 * len(classes) + 1.8))
    im = ax.imshow(shares, cmap="Blues", vmin=0, vmax=1 if normalize else None)

    for i in range(len(classes)):
        for j in range(len(classes)):
            color = "white" if shares[i, j] > (0.5 if normalize else shares.max() / 2) else "black"
            ax.text(j, i, f"{int(counts[i, j])}", ha="center", va="center", fontsize=9, color=color)

    ax.set_xticks(range(len(classes)))
    ax.set_xticklabels(classes)
    ax.set_yticks(range(len(classes)))
    ax.set_yticklabels(classes)
    ax.set_xlabel("Reference")
    ax.set_ylabel("Prediction")
    ax.set_title(
        f"{result.model} on {result.split}\naccuracy {result.accuracy:.3f} "
        f"[{result.ci_low:.3f}, {result.ci_high:.3f}]",
        fontsize=11,
        fontweight="bold",
    )
    fig.colorbar(
        im, ax=ax, fraction=0.046, pad=0.04, label="share of reference" if normalize else "count"
    )

    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Confusion heatmap saved: {out_path}")
    return out_path


def plot_model_comparison(
    results: list[ConfusionResult],
    out_path: Path | str,
    split: str = "test",
    title: str = "Model comparison",
    dpi: int = 150,
) -> Path | None:
    """Horizontal bars of accuracy with exact CI error bars for one split.

    The combiner is highlighted; the no-information rate is drawn as a
    reference line.
    """
    subset = [r for r in results if r.split == split]
    if not subset:
        logger.warning(f"No results for split '{split}', skipping model comparison plot")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    subset = sorted(subset, key=lambda r: r.accuracy)
    names = [r.model for r in subset]
    acc = np.array([r.accuracy for r in subset])
    err = np.array([[r.accuracy - r.ci_low for r in subset], [r.ci_high - r.accuracy for r in subset]])
    colors = ["#e76f51" if name == ENSEMBLE_NAME else "#2a9d8f" for name in names]

    fig, ax = plt.subplots(figsize=(7, max(3, 0.55 * len(names) + 1.5)))
    ax.barh(range(len(names)), acc, xerr=err, color=colors, capsize=3, edgecolor="white")
    ax.axvline(subset[0].nir, color="grey", linestyle="--", linewidth=0.8, label="no-information rate")
    ax.set_yticks(range(len(names)))
    ax.set_yticklabels(names)
    ax.set_xlabel(f"Accuracy ({subset[0].ci_level:.0%} exact CI)")
    ax.set_xlim(0, 1.0)
    ax.set_title(f"{title} ({split})", fontsize=12, fontweight="bold")
    ax.legend(frameon=False, fontsize=8, loc="lower right")

    for i, value in enumerate(acc):
        ax.text(min(value + 0.01, 0.9), i, f"{value:.3f}", va="center", fontsize=8)

    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Model comparison plot saved: {out_path}")
    return out_path


def plot_meta_importance(
    importance: dict[str, float],
    out_path: Path | str,
    title: str = "Meta-learner importance by base model",
    dpi: int = 150,
) -> Path | None:
    """Horizontal bar chart of how much each base model drives the combiner."""
    if not importance:
        logger.warning("Empty importance dict, skipping meta-learner importance plot")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    items = sorted(importance.items(), key=lambda kv: kv[1])
    names = [k for k, _ in items]
    values = [v for _, v in items]

    fig, ax = plt.subplots(figsize=(6, max(2.5, 0.5 * len(names) + 1.2)))
    ax.barh(range(len(names)), values, color="#264653", edgecolor="white")
    ax.set_yticks(range(len(names)))
    ax.set_yticklabels(names)
    ax.set_xlabel("Share of importance")
    ax.set_title(title, fontsize=12, fontweight="bold")

    plt.tight_layout()
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Meta-learner importance plot saved: {out_path}")
    return out_path
