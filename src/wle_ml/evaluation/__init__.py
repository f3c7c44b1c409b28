"""Evaluation: confusion-matrix statistics, scoring predictions and result writing."""

from .confusion import (
    ENSEMBLE_NAME,
    ConfusionResult,
    cohen_kappa,
    confusion_result,
    contingency_table,
    evaluate_model,
    evaluation_table,
    per_class_statistics,
    per_class_table,
)
from .predict import (
    build_bundle,
    load_bundle,
    predict_scoring,
    predict_with_bundle,
    save_bundle,
)
from .reports import OutputDirectories, ResultsWriter

__all__ = [
    # Confusion statistics
    "ENSEMBLE_NAME",
    "ConfusionResult",
    "confusion_result",
    "contingency_table",
    "cohen_kappa",
    "per_class_statistics",
    "evaluate_model",
    "evaluation_table",
    "per_class_table",
    # Scoring
    "predict_scoring",
    "build_bundle",
    "save_bundle",
    "load_bundle",
    "predict_with_bundle",
    # Outputs
    "OutputDirectories",
    "ResultsWriter",
]
