"""Stacking combiner over base model predictions.

Architecture:
    1. Base models are trained independently (``models.training``)
    2. Each base model predicts a label for every training record; these
       predictions, one categorical column per base model, form the
       meta-feature table
    3. A second-stage classifier (the meta-learner) is trained on the
       meta-feature table against the true labels
    4. At prediction time every record passes through all base models, the
       meta-feature table is rebuilt the same way, and the meta-learner
       produces the final label

The combiner never sees raw predictor columns. Its meta-feature layout is fixed
at training time: the ordered list of base model names.

Meta-feature source:
    - "in_sample": predictions of the fitted base models on their own training
      records. Cheap, but optimistic: the meta-learner sees base model errors
      smaller than on unseen data.
    - "oof": out-of-fold predictions from fresh refits of each base estimator,
      so every training record is predicted by a model that did not see it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.model_selection import StratifiedKFold, cross_val_predict

from ..config.schema import ModelsConfig
from ..data.dataset import Dataset
from ..data.schema import meta_feature_name
from ..errors import ConfigurationError
from ..utils.serialization import library_versions, load_joblib, save_joblib
from .registry import build_meta_estimator, decode_labels, encode_labels
from .training import TrainedModel

logger = logging.getLogger(__name__)


def build_meta_features(
    models: Mapping[str, TrainedModel],
    dataset: Dataset,
    model_names: list[str] | None = None,
    include_label: bool = False,
) -> pd.DataFrame:
    """
    Assemble the meta-feature table: one predicted-label column per base model.

    Args:
        models: Trained base models by name
        dataset: Records to predict
        model_names: Column order (defaults to ``models`` order)
        include_label: Append the true label column (training/evaluation only)

    Returns:
        DataFrame indexed like ``dataset`` with ``pred__<model>`` columns
    """
    names = list(model_names) if model_names is not None else list(models)
    columns = {meta_feature_name(name): models[name].predict(dataset) for name in names}
    meta = pd.DataFrame(columns, index=dataset.index)
    if include_label:
        labels = dataset.require_labels()
        meta[labels.name or "label"] = labels.astype(str)
    return meta


def build_oof_meta_features(
    models: Mapping[str, TrainedModel],
    dataset: Dataset,
    model_names: list[str],
    n_folds: int,
    random_state: int | None,
) -> pd.DataFrame:
    """
    Out-of-fold meta-features: each record predicted by a refit that excluded it.

    Args:
        models: Trained base models (their estimators are cloned, not reused)
        dataset: Labelled training Dataset
        model_names: Column order
        n_folds: Stratified folds for the refits
        random_state: Fold shuffling seed

    Returns:
        DataFrame with the same layout as ``build_meta_features``
    """
    labels = dataset.require_labels()
    X = dataset.to_numpy()
    columns = {}
    for name in model_names:
        model = models[name]
        y = encode_labels(labels, model.classes)
        cv = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=random_state)
        codes = cross_val_predict(model.unfitted(), X, y, cv=cv, method="predict")
        columns[meta_feature_name(name)] = decode_labels(codes, model.classes)
        logger.debug(f"Collected out-of-fold predictions for {name}")
    return pd.DataFrame(columns, index=dataset.index)


class StackingCombiner(BaseEstimator):
    """Second-stage classifier over base model predictions.

    Attributes:
        base_model_names: Requested base model names (None: all passed to fit)
        base_model_names_: Ordered base model names the combiner was fitted on
        meta_estimator_: Fitted meta-learner pipeline (one-hot -> classifier)
        classes_: Class labels, in encoding order
        meta_feature_names_: Meta-feature columns, in order
        is_fitted_: Whether the combiner has been fitted

    Example:
        >>> combiner = StackingCombiner(meta_model="gbm", random_state=0)
        >>> combiner.fit(outcome.models, split.train)
        >>> test_pred = combiner.predict(outcome.models, split.test)
    """

    def __init__(
        self,
        base_model_names: list[str] | None = None,
        meta_model: str = "gbm",
        meta_features: str = "in_sample",
        meta_cv_folds: int = 5,
        models_config: ModelsConfig | None = None,
        random_state: int | None = None,
    ):
        """Initialize the combiner.

        Args:
            base_model_names: Base models to stack, in order (default: all passed to fit)
            meta_model: Meta-learner ("gbm", "rf", "xgboost", "multinomial")
            meta_features: "in_sample" or "oof"
            meta_cv_folds: Folds for out-of-fold meta-features
            models_config: Hyperparameters for tree-based meta-learners
            random_state: Random seed for the meta-learner and folds
        """
        self.base_model_names = base_model_names
        self.meta_model = meta_model
        self.meta_features = meta_features
        self.meta_cv_folds = meta_cv_folds
        self.models_config = models_config
        self.random_state = random_state

        self.meta_estimator_ = None
        self.base_model_names_: list[str] = []
        self.classes_: tuple[str, ...] = ()
        self.meta_feature_names_: list[str] = []
        self.is_fitted_ = False

    # ------------------------------------------------------------------
    # Base model bookkeeping
    # ------------------------------------------------------------------
    @property
    def n_base_models(self) -> int:
        return len(self.base_model_names_)

    def _check_models(
        self, models: Mapping[str, TrainedModel], expected: list[str], context: str
    ) -> None:
        """Base models must match the combiner's list exactly (count and identity)."""
        missing = [name for name in expected if name not in models]
        extra = [name for name in models if name not in expected]
        if missing or extra:
            parts = []
            if missing:
                parts.append(f"missing base model(s) {missing}")
            if extra:
                parts.append(f"unexpected base model(s) {extra}")
            raise ConfigurationError(
                f"{context}: combiner was built for {expected} but got {list(models)}: "
                + "; ".join(parts)
            )

    # ------------------------------------------------------------------
    # Fit
    # ------------------------------------------------------------------
    def fit(self, models: Mapping[str, TrainedModel], dataset: Dataset) -> StackingCombiner:
        """Fit the meta-learner on base model predictions for ``dataset``.

        Args:
            models: Trained base models by name
            dataset: Labelled training Dataset (the base models' training set)

        Returns:
            self (fitted combiner)

        Raises:
            ConfigurationError: If models do not match ``base_model_names``,
                or base models disagree on the class set
        """
        names = list(models) if self.base_model_names is None else list(self.base_model_names)
        self._check_models(models, names, "fit")
        if not names:
            raise ConfigurationError("fit: combiner needs at least one base model")

        class_sets = {tuple(models[name].classes) for name in names}
        if len(class_sets) != 1:
            raise ConfigurationError(
                f"fit: base models were trained on different classes {class_sets}"
            )
        self.classes_ = class_sets.pop()
        self.base_model_names_ = names

        logger.info(
            f"Fitting stacking combiner ({self.meta_model}) on {self.n_base_models} base models "
            f"with {self.meta_features} meta-features"
        )

        if self.meta_features == "in_sample":
            meta = build_meta_features(models, dataset, self.base_model_names_)
        elif self.meta_features == "oof":
            meta = build_oof_meta_features(
                models, dataset, self.base_model_names_, self.meta_cv_folds, self.random_state
            )
        else:
            raise ConfigurationError(
                f"fit: unknown meta_features '{self.meta_features}' (expected 'in_sample' or 'oof')"
            )

        self.meta_feature_names_ = list(meta.columns)
        y = encode_labels(dataset.require_labels(), self.classes_)

        self.meta_estimator_ = build_meta_estimator(
            self.meta_model,
            n_base_models=self.n_base_models,
            classes=self.classes_,
            models_config=self.models_config or ModelsConfig(),
            random_state=0 if self.random_state is None else self.random_state,
        )
        logger.info(f"Training meta-learner on {meta.shape[0]} rows, {meta.shape[1]} meta-features")
        self.meta_estimator_.fit(meta, y)
        self.is_fitted_ = True
        return self

    # ------------------------------------------------------------------
    # Predict
    # ------------------------------------------------------------------
    def _require_fitted(self):
        if not self.is_fitted_:
            raise RuntimeError("Combiner not fitted. Call fit first.")

    def _check_meta_frame(self, meta: pd.DataFrame | np.ndarray) -> pd.DataFrame:
        """Meta-features must have exactly the training layout."""
        n_expected = len(self.meta_feature_names_)
        if isinstance(meta, pd.DataFrame):
            if meta.shape[1] != n_expected:
                raise ConfigurationError(
                    f"predict: meta-feature vector has length {meta.shape[1]} but combiner was "
                    f"trained on {n_expected} base models {self.base_model_names_}"
                )
            if list(meta.columns) != self.meta_feature_names_:
                raise ConfigurationError(
                    f"predict: meta-feature columns {list(meta.columns)} do not match training "
                    f"columns {self.meta_feature_names_}"
                )
            return meta.astype(str)

        meta = np.asarray(meta, dtype=object)
        if meta.ndim == 1:
            # a single record
            meta = meta.reshape(1, -1)
        if meta.ndim != 2 or meta.shape[-1] != n_expected:
            raise ConfigurationError(
                f"predict: meta-feature vector has length {meta.shape[-1]} but combiner was "
                f"trained on {n_expected} base models {self.base_model_names_}"
            )
        return pd.DataFrame(meta, columns=self.meta_feature_names_).astype(str)

    def predict_from_meta(self, meta: pd.DataFrame | np.ndarray) -> np.ndarray:
        """Predict labels from a prebuilt meta-feature table.

        Raises:
            ConfigurationError: If the table's width or columns differ from training
        """
        self._require_fitted()
        meta = self._check_meta_frame(meta)
        if len(meta) == 0:
            return np.array([], dtype=object)
        codes = self.meta_estimator_.predict(meta)
        return decode_labels(np.asarray(codes).ravel(), self.classes_)

    def predict_proba_from_meta(self, meta: pd.DataFrame | np.ndarray) -> np.ndarray:
        """Class probabilities (n_records x n_classes) from a meta-feature table."""
        self._require_fitted()
        return self.meta_estimator_.predict_proba(self._check_meta_frame(meta))

    def meta_features_for(
        self, models: Mapping[str, TrainedModel], dataset: Dataset
    ) -> pd.DataFrame:
        """Re-derive meta-features for new records through every base model."""
        self._require_fitted()
        self._check_models(models, self.base_model_names_, "predict")
        return build_meta_features(models, dataset, self.base_model_names_)

    def predict(self, models: Mapping[str, TrainedModel], dataset: Dataset) -> np.ndarray:
        """Predict labels for ``dataset`` via base models and the meta-learner.

        Raises:
            ConfigurationError: If any base model is missing or unexpected
        """
        return self.predict_from_meta(self.meta_features_for(models, dataset))

    # ------------------------------------------------------------------
    # Interpretability and persistence
    # ------------------------------------------------------------------
    def meta_feature_importance(self) -> dict[str, float]:
        """Importance of each base model in the meta-learner.

        Tree-based meta-learners: summed impurity importance of the model's
        one-hot columns. Multinomial: mean absolute coefficient of those columns.

        Returns:
            Dict mapping base model name to importance (sums to 1 when non-zero)
        """
        self._require_fitted()
        clf = self.meta_estimator_.named_steps["clf"]
        if hasattr(clf, "feature_importances_"):
            weights = np.asarray(clf.feature_importances_, dtype=float)
        elif hasattr(clf, "coef_"):
            weights = np.abs(np.asarray(clf.coef_, dtype=float)).mean(axis=0)
        else:
            return {}

        n_classes = len(self.classes_)
        per_model = {
            name: float(weights[i * n_classes : (i + 1) * n_classes].sum())
            for i, name in enumerate(self.base_model_names_)
        }
        total = sum(per_model.values())
        if total > 0:
            per_model = {name: value / total for name, value in per_model.items()}
        return per_model

    def save(self, path: Path | str) -> None:
        """Save combiner to disk (joblib)."""
        path = Path(path)
        bundle: dict[str, Any] = {
            "combiner": self,
            "base_model_names": list(self.base_model_names_),
            "meta_model": self.meta_model,
            "meta_features": self.meta_features,
            "versions": library_versions(),
        }
        save_joblib(bundle, path)
        logger.info(f"Combiner saved to: {path}")

    @classmethod
    def load(cls, path: Path | str) -> StackingCombiner:
        """Load combiner from disk."""
        bundle = load_joblib(path)
        combiner = bundle["combiner"]
        logger.info(f"Combiner loaded from: {path} (base models: {combiner.base_model_names_})")
        return combiner
