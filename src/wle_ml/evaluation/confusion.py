"""
Confusion-matrix evaluation of multiclass predictions.

Provides:
- Overall accuracy with an exact (Clopper-Pearson) binomial confidence interval
- Cohen's kappa, no-information rate and the one-sided p-value of
  accuracy > no-information rate
- Contingency table (rows = predicted, columns = reference)
- Per-class sensitivity, specificity, precision, F1, prevalence and
  balanced accuracy

Evaluation is pure: it never modifies the models or datasets it is given.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from scipy.stats import binomtest
from sklearn.metrics import confusion_matrix

from ..data.dataset import Dataset
from ..models.stacking import StackingCombiner
from ..models.training import TrainedModel

ENSEMBLE_NAME = "ENSEMBLE"

PER_CLASS_COLUMNS = [
    "class",
    "sensitivity",
    "specificity",
    "precision",
    "npv",
    "f1",
    "prevalence",
    "detection_rate",
    "balanced_accuracy",
    "support",
]


@dataclass(frozen=True)
class ConfusionResult:
    """Accuracy statistics of one model on one labelled dataset.

    Attributes:
        model: Model name (base model name or "ENSEMBLE")
        split: Dataset name the predictions were made on
        n: Number of records
        correct: Number of correct predictions
        accuracy: correct / n
        ci_low, ci_high: Exact binomial confidence interval on accuracy
        ci_level: Confidence level of the interval
        kappa: Cohen's kappa (NaN when chance agreement is 1)
        nir: No-information rate (largest reference class prevalence)
        p_value_acc_gt_nir: One-sided binomial p-value of accuracy > nir
        classes: Class labels, in table order
        table: Contingency table (rows = predicted, columns = reference)
        per_class: Per-class statistics, one row per class
    """

    model: str
    split: str
    n: int
    correct: int
    accuracy: float
    ci_low: float
    ci_high: float
    ci_level: float
    kappa: float
    nir: float
    p_value_acc_gt_nir: float
    classes: tuple[str, ...]
    table: pd.DataFrame = field(compare=False, repr=False)
    per_class: pd.DataFrame = field(compare=False, repr=False)

    @property
    def out_of_sample_error(self) -> float:
        return 1.0 - self.accuracy

    def summary_row(self) -> dict[str, Any]:
        """Flat record for the metrics summary table."""
        return {
            "model": self.model,
            "split": self.split,
            "n": self.n,
            "correct": self.correct,
            "accuracy": self.accuracy,
            "ci_low": self.ci_low,
            "ci_high": self.ci_high,
            "ci_level": self.ci_level,
            "kappa": self.kappa,
            "nir": self.nir,
            "p_value_acc_gt_nir": self.p_value_acc_gt_nir,
            "out_of_sample_error": self.out_of_sample_error,
        }

    def to_dict(self) -> dict[str, Any]:
        payload = self.summary_row()
        payload["classes"] = list(self.classes)
        payload["table"] = {
            str(pred): {str(ref): int(v) for ref, v in row.items()}
            for pred, row in self.table.iterrows()
        }
        payload["per_class"] = self.per_class.to_dict(orient="records")
        return payload


def _safe_ratio(num: float, den: float) -> float:
    return float(num) / float(den) if den > 0 else float("nan")


def contingency_table(
    y_true: np.ndarray, y_pred: np.ndarray, classes: tuple[str, ...]
) -> pd.DataFrame:
    """Counts with rows = predicted class and columns = reference class."""
    # sklearn puts the reference on rows
    counts = confusion_matrix(y_true, y_pred, labels=list(classes)).T
    return pd.DataFrame(
        counts.astype(int),
        index=pd.Index(list(classes), name="prediction"),
        columns=pd.Index(list(classes), name="reference"),
    )


def cohen_kappa(table: pd.DataFrame) -> float:
    """Cohen's kappa from a square contingency table."""
    counts = table.to_numpy(dtype=float)
    n = counts.sum()
    if n == 0:
        return float("nan")
    observed = np.trace(counts) / n
    expected = float((counts.sum(axis=1) * counts.sum(axis=0)).sum()) / n**2
    if np.isclose(expected, 1.0):
        return float("nan")
    return float((observed - expected) / (1.0 - expected))


def per_class_statistics(table: pd.DataFrame) -> pd.DataFrame:
    """
    One-vs-rest statistics for each class of a contingency table.

    Args:
        table: Square table, rows = predicted, columns = reference

    Returns:
        DataFrame with ``PER_CLASS_COLUMNS``
    """
    counts = table.to_numpy(dtype=float)
    n = counts.sum()
    rows = []
    for i, cls in enumerate(table.columns):
        tp = counts[i, i]
        fp = counts[i, :].sum() - tp
        fn = counts[:, i].sum() - tp
        tn = n - tp - fp - fn

        sensitivity = _safe_ratio(tp, tp + fn)
        specificity = _safe_ratio(tn, tn + fp)
        precision = _safe_ratio(tp, tp + fp)
        f1 = _safe_ratio(2 * tp, 2 * tp + fp + fn)

        rows.append(
            {
                "class": str(cls),
                "sensitivity": sensitivity,
                "specificity": specificity,
                "precision": precision,
                "npv": _safe_ratio(tn, tn + fn),
                "f1": f1,
                "prevalence": _safe_ratio(tp + fn, n),
                "detection_rate": _safe_ratio(tp, n),
                "balanced_accuracy": (sensitivity + specificity) / 2.0,
                "support": int(tp + fn),
            }
        )
    return pd.DataFrame(rows, columns=PER_CLASS_COLUMNS)


def confusion_result(
    y_true: np.ndarray | pd.Series | list,
    y_pred: np.ndarray | pd.Series | list,
    classes: tuple[str, ...] | list[str] | None = None,
    ci_level: float = 0.95,
    model: str = "model",
    split: str = "data",
) -> ConfusionResult:
    """
    Compute accuracy statistics for a vector of predictions.

    Args:
        y_true: Reference labels
        y_pred: Predicted labels (same length)
        classes: Class labels for the table (default: sorted union of both vectors)
        ci_level: Confidence level of the accuracy interval
        model: Model name recorded in the result
        split: Dataset name recorded in the result

    Returns:
        ConfusionResult

    Raises:
        ValueError: On empty input, length mismatch, or labels outside ``classes``

    Example:
        >>> result = confusion_result(["A", "B", "B"], ["A", "B", "A"])
        >>> round(result.accuracy, 3)
        0.667
    """
    y_true = np.asarray(y_true, dtype=object).astype(str)
    y_pred = np.asarray(y_pred, dtype=object).astype(str)

    if len(y_true) == 0:
        raise ValueError("Cannot evaluate an empty set of predictions")
    if len(y_true) != len(y_pred):
        raise ValueError(
            f"Length mismatch: {len(y_true)} reference labels vs {len(y_pred)} predictions"
        )
    if not 0.0 < ci_level < 1.0:
        raise ValueError(f"ci_level must be in (0, 1), got {ci_level}")

    observed = set(y_true) | set(y_pred)
    if classes is None:
        classes = tuple(sorted(observed))
    else:
        classes = tuple(str(c) for c in classes)
        unknown = sorted(observed - set(classes))
        if unknown:
            raise ValueError(f"Labels {unknown} are not among classes {list(classes)}")

    n = int(len(y_true))
    correct = int((y_true == y_pred).sum())
    accuracy = correct / n

    ci = binomtest(correct, n).proportion_ci(confidence_level=ci_level, method="exact")

    table = contingency_table(y_true, y_pred, classes)
    reference_counts = table.sum(axis=0)
    nir = float(reference_counts.max()) / n
    p_value = float(binomtest(correct, n, p=nir, alternative="greater").pvalue) if nir < 1 else 1.0

    return ConfusionResult(
        model=model,
        split=split,
        n=n,
        correct=correct,
        accuracy=float(accuracy),
        ci_low=float(ci.low),
        ci_high=float(ci.high),
        ci_level=float(ci_level),
        kappa=cohen_kappa(table),
        nir=nir,
        p_value_acc_gt_nir=p_value,
        classes=classes,
        table=table,
        per_class=per_class_statistics(table),
    )


def evaluate_model(
    model: TrainedModel | StackingCombiner,
    dataset: Dataset,
    models: dict[str, TrainedModel] | None = None,
    ci_level: float = 0.95,
) -> ConfusionResult:
    """
    Evaluate a base model or the stacking combiner on a labelled dataset.

    Args:
        model: TrainedModel, or StackingCombiner (requires ``models``)
        dataset: Labelled Dataset (validation or test)
        models: Base models feeding the combiner
        ci_level: Confidence level of the accuracy interval

    Returns:
        ConfusionResult

    Raises:
        ValueError: If the dataset is empty or unlabelled, or the combiner has
            no base models to draw predictions from
    """
    if dataset.n_records == 0:
        raise ValueError(f"Cannot evaluate on empty dataset '{dataset.name}'")
    labels = dataset.require_labels()

    if isinstance(model, StackingCombiner):
        if models is None:
            raise ValueError("Evaluating the stacking combiner requires the base models")
        predictions = model.predict(models, dataset)
        name = ENSEMBLE_NAME
        classes = model.classes_
    else:
        predictions = model.predict(dataset)
        name = model.name
        classes = model.classes

    # Reference labels never seen in training still appear in the table
    classes = tuple(sorted(set(classes) | set(labels.astype(str))))

    return confusion_result(
        labels.to_numpy(),
        predictions,
        classes=classes,
        ci_level=ci_level,
        model=name,
        split=dataset.name,
    )


def evaluation_table(results: list[ConfusionResult]) -> pd.DataFrame:
    """Stack summary rows of several results into one DataFrame."""
    return pd.DataFrame([r.summary_row() for r in results])


def per_class_table(results: list[ConfusionResult]) -> pd.DataFrame:
    """Stack per-class statistics of several results, tagged by model and split."""
    frames = []
    for r in results:
        frame = r.per_class.copy()
        frame.insert(0, "model", r.model)
        frame.insert(1, "split", r.split)
        frames.append(frame)
    if not frames:
        return pd.DataFrame(columns=["model", "split"] + PER_CLASS_COLUMNS)
    return pd.concat(frames, ignore_index=True)
