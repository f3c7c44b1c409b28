"""Model registry for base classifiers and stacking meta-learners.

This module provides:
- Base model instantiation (random forest, gradient boosting, bagged trees,
  linear discriminant analysis, single decision tree, XGBoost)
- Meta-learner instantiation for the stacking combiner
- Label encoding helpers shared by all models

Every base model is wrapped in a ``Pipeline`` that imputes residual missing
values (median) before the classifier, so the same estimator can be applied
to validation, test and scoring data without extra preprocessing.

Models are fitted on integer-encoded labels (0..K-1, in sorted class order);
``TrainedModel`` and ``StackingCombiner`` decode predictions back to labels.
"""

from typing import Any

import numpy as np
import pandas as pd
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis
from sklearn.ensemble import BaggingClassifier, GradientBoostingClassifier, RandomForestClassifier
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler
from sklearn.tree import DecisionTreeClassifier
from xgboost import XGBClassifier

from ..config.defaults import VALID_META_MODELS, VALID_MODELS
from ..config.schema import ModelsConfig
from ..errors import ConfigurationError

# Human-readable model family names, used in reports
MODEL_FAMILIES = {
    "rf": "Random forest",
    "gbm": "Gradient boosting",
    "bagging": "Bagged decision trees",
    "lda": "Linear discriminant analysis",
    "tree": "Decision tree (recursive partitioning)",
    "xgboost": "XGBoost",
    "multinomial": "Multinomial logistic regression",
}


# ----------------------------
# Label encoding
# ----------------------------
def class_labels(labels: pd.Series | np.ndarray) -> tuple[str, ...]:
    """Sorted distinct class labels."""
    return tuple(sorted(pd.unique(pd.Series(labels).astype(str))))


def encode_labels(labels: pd.Series | np.ndarray, classes: tuple[str, ...]) -> np.ndarray:
    """
    Encode labels to integer codes following ``classes`` order.

    Raises:
        ValueError: If a label is not one of ``classes``
    """
    codes = pd.Categorical(pd.Series(labels).astype(str), categories=list(classes)).codes
    if (codes < 0).any():
        unknown = sorted(set(pd.Series(labels).astype(str)) - set(classes))
        raise ValueError(f"Unknown class label(s) {unknown}; expected one of {list(classes)}")
    return np.asarray(codes, dtype=int)


def decode_labels(codes: np.ndarray, classes: tuple[str, ...]) -> np.ndarray:
    """Decode integer codes back to class labels."""
    return np.asarray(classes, dtype=object)[np.asarray(codes, dtype=int)]


# ----------------------------
# Classifiers
# ----------------------------
def build_classifier(name: str, models_config: ModelsConfig, random_state: int) -> Any:
    """
    Instantiate an unfitted classifier by registry name.

    Args:
        name: Registry name ("rf", "gbm", "bagging", "lda", "tree", "xgboost")
        models_config: Hyperparameters for every model family
        random_state: Random seed

    Returns:
        Unfitted scikit-learn compatible classifier

    Raises:
        ConfigurationError: If name is unknown
    """
    if name == "rf":
        cfg = models_config.rf
        return RandomForestClassifier(
            n_estimators=cfg.n_estimators,
            max_depth=cfg.max_depth,
            min_samples_leaf=cfg.min_samples_leaf,
            max_features=cfg.max_features,
            n_jobs=1,
            random_state=random_state,
        )

    if name == "gbm":
        cfg = models_config.gbm
        return GradientBoostingClassifier(
            n_estimators=cfg.n_estimators,
            learning_rate=cfg.learning_rate,
            max_depth=cfg.max_depth,
            subsample=cfg.subsample,
            random_state=random_state,
        )

    if name == "bagging":
        cfg = models_config.bagging
        return BaggingClassifier(
            estimator=DecisionTreeClassifier(random_state=random_state),
            n_estimators=cfg.n_estimators,
            max_samples=cfg.max_samples,
            max_features=cfg.max_features,
            n_jobs=1,
            random_state=random_state,
        )

    if name == "lda":
        cfg = models_config.lda
        return LinearDiscriminantAnalysis(solver=cfg.solver, shrinkage=cfg.shrinkage)

    if name == "tree":
        cfg = models_config.tree
        return DecisionTreeClassifier(
            criterion=cfg.criterion,
            max_depth=cfg.max_depth,
            min_samples_leaf=cfg.min_samples_leaf,
            ccp_alpha=cfg.ccp_alpha,
            random_state=random_state,
        )

    if name == "xgboost":
        cfg = models_config.xgboost
        return XGBClassifier(
            n_estimators=cfg.n_estimators,
            max_depth=cfg.max_depth,
            learning_rate=cfg.learning_rate,
            subsample=cfg.subsample,
            colsample_bytree=cfg.colsample_bytree,
            tree_method=cfg.tree_method,
            n_jobs=1,
            random_state=random_state,
            verbosity=0,
        )

    raise ConfigurationError(f"Unknown model '{name}'. Valid models: {VALID_MODELS}")


def build_estimator(name: str, models_config: ModelsConfig, random_state: int = 0) -> Pipeline:
    """
    Build an unfitted base model pipeline: median imputation -> classifier.

    Linear discriminant analysis additionally standardizes predictors.

    Args:
        name: Registry name
        models_config: Hyperparameters for every model family
        random_state: Random seed

    Returns:
        Unfitted sklearn Pipeline
    """
    steps: list[tuple[str, Any]] = [("impute", SimpleImputer(strategy="median"))]
    if name == "lda":
        steps.append(("scale", StandardScaler()))
    steps.append(("clf", build_classifier(name, models_config, random_state)))
    return Pipeline(steps)


def build_meta_estimator(
    meta_model: str,
    n_base_models: int,
    classes: tuple[str, ...],
    models_config: ModelsConfig,
    random_state: int = 0,
) -> Pipeline:
    """
    Build an unfitted meta-learner over categorical base model predictions.

    Each base model's predicted label is one-hot encoded against the fixed
    class list, so the meta-feature layout depends only on the number of
    base models and the classes.

    Args:
        meta_model: "gbm", "rf", "xgboost" or "multinomial"
        n_base_models: Number of meta-feature columns
        classes: Class labels (category order for the encoder)
        models_config: Hyperparameters reused for tree-based meta-learners
        random_state: Random seed

    Returns:
        Unfitted sklearn Pipeline (one-hot -> classifier)

    Raises:
        ConfigurationError: If meta_model is unknown
    """
    if meta_model not in VALID_META_MODELS:
        raise ConfigurationError(
            f"Unknown meta-learner '{meta_model}'. Valid meta-learners: {VALID_META_MODELS}"
        )

    encoder = OneHotEncoder(
        categories=[list(classes)] * n_base_models,
        handle_unknown="ignore",
        sparse_output=False,
    )

    if meta_model == "multinomial":
        clf = LogisticRegression(max_iter=1000, random_state=random_state)
    else:
        clf = build_classifier(meta_model, models_config, random_state)

    return Pipeline([("onehot", encoder), ("clf", clf)])
