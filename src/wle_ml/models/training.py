"""
Base model training with cross-validated accuracy estimates.

Provides:
- k-fold stratified cross-validation accuracy per base model
- Final fit of each base model on the full training set
- Parallel training of independent base models on a joblib worker pool,
  with a join barrier (all trainers finished, pool released) before returning

A base model that cannot be fitted is reported as a ``TrainingFailure``
value; the remaining models are still returned.
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import clone
from sklearn.exceptions import ConvergenceWarning
from sklearn.model_selection import StratifiedKFold, cross_val_score
from sklearn.pipeline import Pipeline

from ..config.schema import PipelineConfig
from ..data.dataset import Dataset
from ..errors import DataShapeMismatch, TrainingFailure
from ..utils.random import get_model_seed
from .registry import build_estimator, class_labels, decode_labels, encode_labels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainedModel:
    """A fitted base model and its cross-validated accuracy estimate.

    Attributes:
        name: Registry name of the model
        estimator: Fitted sklearn Pipeline (trained on integer-encoded labels)
        classes: Class labels, in encoding order
        feature_names: Predictor columns the model was trained on, in order
        cv_accuracy: Mean accuracy over the cross-validation folds
        cv_scores: Accuracy of each fold
        fit_seconds: Wall time of cross-validation plus final fit
    """

    name: str
    estimator: Pipeline
    classes: tuple[str, ...]
    feature_names: tuple[str, ...]
    cv_accuracy: float
    cv_scores: tuple[float, ...] = ()
    fit_seconds: float = 0.0

    @property
    def cv_accuracy_sd(self) -> float:
        return float(np.std(self.cv_scores, ddof=1)) if len(self.cv_scores) > 1 else float("nan")

    def _matrix(self, dataset: Dataset) -> np.ndarray:
        if dataset.feature_names != self.feature_names:
            missing = [c for c in self.feature_names if c not in dataset.feature_names]
            raise DataShapeMismatch(
                f"model '{self.name}' was trained on {len(self.feature_names)} columns but "
                f"dataset '{dataset.name}' has {dataset.n_features} "
                f"(missing: {missing[:10]})",
                missing_columns=missing,
                dataset=dataset.name,
                stage="prediction",
            )
        return dataset.to_numpy()

    def predict(self, dataset: Dataset) -> np.ndarray:
        """Predicted class labels for every record of ``dataset``."""
        if dataset.n_records == 0:
            return np.array([], dtype=object)
        codes = self.estimator.predict(self._matrix(dataset))
        return decode_labels(np.asarray(codes).ravel(), self.classes)

    def predict_proba(self, dataset: Dataset) -> pd.DataFrame:
        """Class probabilities (columns = classes) for every record of ``dataset``."""
        proba = self.estimator.predict_proba(self._matrix(dataset))
        return pd.DataFrame(proba, index=dataset.index, columns=list(self.classes))

    def unfitted(self) -> Pipeline:
        """Fresh unfitted copy of the estimator (same hyperparameters)."""
        return clone(self.estimator)


@dataclass
class TrainingOutcome:
    """Result of training several base models.

    Attributes:
        models: Successfully trained models, in configured order
        failures: TrainingFailure per model that could not be trained
    """

    models: dict[str, TrainedModel] = field(default_factory=dict)
    failures: dict[str, TrainingFailure] = field(default_factory=dict)

    @property
    def model_names(self) -> list[str]:
        return list(self.models)

    def cv_summary(self) -> pd.DataFrame:
        """One row per trained model: CV accuracy, fold SD, fit time."""
        rows = [
            {
                "model": m.name,
                "cv_accuracy": m.cv_accuracy,
                "cv_accuracy_sd": m.cv_accuracy_sd,
                "n_folds": len(m.cv_scores),
                "fit_seconds": m.fit_seconds,
            }
            for m in self.models.values()
        ]
        return pd.DataFrame(
            rows, columns=["model", "cv_accuracy", "cv_accuracy_sd", "n_folds", "fit_seconds"]
        )


def _fit_with_convergence_check(
    estimator: Pipeline, X: np.ndarray, y: np.ndarray, name: str, fail_on_convergence: bool
) -> Pipeline:
    # catch_warnings swaps process-global state; trainers must not share a process
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConvergenceWarning)
        estimator.fit(X, y)

    convergence = [w for w in caught if issubclass(w.category, ConvergenceWarning)]
    if convergence and fail_on_convergence:
        raise TrainingFailure(name, f"did not converge: {convergence[0].message}", stage="final_fit")
    for w in caught:
        if not issubclass(w.category, ConvergenceWarning):
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
        else:
            logger.warning(f"{name}: {w.message}")
    return estimator


def train_base_model(
    name: str,
    dataset: Dataset,
    config: PipelineConfig,
    model_idx: int = 0,
    fold_n_jobs: int = 1,
) -> TrainedModel:
    """
    Cross-validate and fit one base model on the training dataset.

    All folds complete before the accuracy estimate is computed; folds may be
    fitted in parallel (``fold_n_jobs``).

    Args:
        name: Registry name of the model
        dataset: Labelled training Dataset
        config: Pipeline configuration (cv folds, hyperparameters, seeds)
        model_idx: Position of the model in the configured list (seed offset)
        fold_n_jobs: Parallel jobs for fold fits

    Returns:
        TrainedModel

    Raises:
        TrainingFailure: If resampling or the final fit fails
        ConfigurationError: If the model name is unknown
    """
    t0 = time.perf_counter()
    seed = get_model_seed(config.random_state, model_idx)
    labels = dataset.require_labels()
    classes = class_labels(labels)
    y = encode_labels(labels, classes)
    X = dataset.to_numpy()

    estimator = build_estimator(name, config.models, random_state=seed)

    cv = StratifiedKFold(n_splits=config.cv.folds, shuffle=True, random_state=seed)
    try:
        scores = cross_val_score(
            clone(estimator),
            X,
            y,
            cv=cv,
            scoring="accuracy",
            n_jobs=fold_n_jobs,
            error_score="raise",
        )
    except Exception as e:
        raise TrainingFailure(name, f"{type(e).__name__}: {e}", stage="cross_validation") from e

    if len(scores) == 0 or not np.all(np.isfinite(scores)):
        raise TrainingFailure(name, f"non-finite fold accuracies {scores}", stage="cross_validation")

    try:
        fitted = _fit_with_convergence_check(
            clone(estimator), X, y, name, config.training.fail_on_convergence
        )
    except TrainingFailure:
        raise
    except Exception as e:
        raise TrainingFailure(name, f"{type(e).__name__}: {e}", stage="final_fit") from e

    elapsed = time.perf_counter() - t0
    model = TrainedModel(
        name=name,
        estimator=fitted,
        classes=classes,
        feature_names=dataset.feature_names,
        cv_accuracy=float(np.mean(scores)),
        cv_scores=tuple(float(s) for s in scores),
        fit_seconds=float(elapsed),
    )
    logger.info(
        f"{name}: {config.cv.folds}-fold CV accuracy {model.cv_accuracy:.4f} "
        f"(SD {model.cv_accuracy_sd:.4f}) in {elapsed:.1f}s"
    )
    return model


def _train_or_failure(
    name: str,
    dataset: Dataset,
    config: PipelineConfig,
    model_idx: int,
    fold_n_jobs: int,
) -> TrainedModel | TrainingFailure:
    """Worker entry point: failures are returned, not raised, so siblings keep running."""
    try:
        return train_base_model(name, dataset, config, model_idx, fold_n_jobs)
    except TrainingFailure as failure:
        return failure


def resolve_fold_n_jobs(config: PipelineConfig, n_parallel_models: int) -> int:
    """
    Determine n_jobs for fold fits inside one trainer.

    With "auto", cores left over after one worker per parallel trainer are
    shared among the trainers' folds.
    """
    if config.cv.fold_n_jobs != "auto":
        return max(1, int(config.cv.fold_n_jobs))
    return max(1, config.compute.n_workers // max(1, n_parallel_models))


def _release_worker_pool(backend: str, n_workers: int) -> None:
    """Shut down the reusable process pool so no worker outlives the training stage."""
    if backend != "loky" or n_workers <= 1:
        return
    from joblib.externals.loky import get_reusable_executor

    get_reusable_executor().shutdown(wait=True)
    logger.debug("Released loky worker pool")


def train_base_models(
    names: list[str],
    dataset: Dataset,
    config: PipelineConfig,
) -> TrainingOutcome:
    """
    Train independent base models concurrently.

    Each worker gets its own copy of the training data and returns an
    immutable TrainedModel (or a TrainingFailure). The call returns only after
    every trainer has finished and the worker pool has been released.

    Args:
        names: Registry names, in combiner order
        dataset: Labelled training Dataset
        config: Pipeline configuration

    Returns:
        TrainingOutcome with successes and failures

    Raises:
        TrainingFailure: If no base model could be trained
    """
    if not names:
        raise TrainingFailure("<none>", "no base models configured")

    n_workers = max(1, min(config.compute.n_workers, len(names)))
    fold_n_jobs = resolve_fold_n_jobs(config, n_workers)
    logger.info(
        f"Training {len(names)} base models on {n_workers} worker(s) "
        f"({config.compute.backend} backend, {fold_n_jobs} job(s) per model for folds)"
    )

    jobs = (
        delayed(_train_or_failure)(name, dataset, config, idx, fold_n_jobs)
        for idx, name in enumerate(names)
    )
    try:
        with Parallel(n_jobs=n_workers, backend=config.compute.backend) as parallel:
            results = parallel(jobs)
    finally:
        _release_worker_pool(config.compute.backend, n_workers)

    outcome = TrainingOutcome()
    for name, result in zip(names, results, strict=True):
        if isinstance(result, TrainingFailure):
            outcome.failures[name] = result
            logger.warning(f"Base model '{name}' unavailable: {result}")
        else:
            outcome.models[name] = result

    if not outcome.models:
        reasons = "; ".join(str(f) for f in outcome.failures.values())
        raise TrainingFailure("all", f"every base model failed ({reasons})")

    return outcome
