"""
Models package for WLE-ML.

This package contains:
- Base model registry and label encoding
- Parallel base model training with cross-validated accuracy
- Stacking combiner over base model predictions
"""

from .registry import (
    MODEL_FAMILIES,
    build_classifier,
    build_estimator,
    build_meta_estimator,
    class_labels,
    decode_labels,
    encode_labels,
)
from .stacking import StackingCombiner, build_meta_features, build_oof_meta_features
from .training import (
    TrainedModel,
    TrainingOutcome,
    resolve_fold_n_jobs,
    train_base_model,
    train_base_models,
)

__all__ = [
    # Registry
    "MODEL_FAMILIES",
    "build_classifier",
    "build_estimator",
    "build_meta_estimator",
    "class_labels",
    "encode_labels",
    "decode_labels",
    # Training
    "TrainedModel",
    "TrainingOutcome",
    "train_base_model",
    "train_base_models",
    "resolve_fold_n_jobs",
    # Stacking
    "StackingCombiner",
    "build_meta_features",
    "build_oof_meta_features",
]
