"""
Shared pytest fixtures for WLE-ML tests.

Synthetic data mimics the weight lifting exercise recordings: bookkeeping
columns, sensor-prefixed numeric columns whose means shift with the class,
a window-summary column that is almost always missing, and ``#DIV/0!``
tokens where the summary is present.
"""

import logging

import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from wle_ml.config.schema import PipelineConfig
from wle_ml.data.cleaning import apply_column_schema, build_dataset, fit_column_schema
from wle_ml.data.splits import Split, partition
from wle_ml.models import training
from wle_ml.models.training import train_base_models

SENSOR_COLUMNS = [
    "roll_belt",
    "pitch_belt",
    "yaw_belt",
    "total_accel_belt",
    "gyros_belt_x",
    "accel_arm_x",
    "magnet_arm_y",
    "roll_dumbbell",
    "pitch_forearm",
    "yaw_arm",
]

SPARSE_COLUMN = "kurtosis_roll_belt"

CLASSES = ["A", "B", "C", "D", "E"]

STACK_MODELS = ["rf", "lda", "tree", "bagging"]


class ExplodingClassifier(ClassifierMixin, BaseEstimator):
    """Classifier whose fit always raises (simulates a base model failure)."""

    def fit(self, X, y):
        raise RuntimeError("boom")


def patch_base_estimator(monkeypatch, target_name, clf):
    """Make the registry build ``clf`` (behind an imputer) for one base model name."""
    original = training.build_estimator

    def fake_build_estimator(name, models_config, random_state=None):
        if name == target_name:
            return Pipeline([("impute", SimpleImputer()), ("clf", clf)])
        return original(name, models_config, random_state=random_state)

    monkeypatch.setattr(training, "build_estimator", fake_build_estimator)


def make_wle_frame(
    n_records: int = 1000,
    seed: int = 0,
    labelled: bool = True,
    sparse_missing: float = 0.95,
) -> pd.DataFrame:
    """
    Build a raw WLE-shaped frame (as read from CSV, before cleaning).

    Args:
        n_records: Number of rows (balanced over 5 classes when labelled)
        seed: Random seed
        labelled: Add the ``classe`` column (else add ``problem_id``)
        sparse_missing: Missing fraction of the window-summary column
    """
    rng = np.random.default_rng(seed)
    labels = np.array(CLASSES * (n_records // len(CLASSES) + 1))[:n_records]
    rng.shuffle(labels)
    codes = pd.Categorical(labels, categories=CLASSES).codes

    frame = pd.DataFrame(
        {
            "X": np.arange(1, n_records + 1),
            "user_name": rng.choice(["adelmo", "carlitos", "charles"], size=n_records),
            "raw_timestamp_part_1": rng.integers(1_322_000_000, 1_323_000_000, size=n_records),
            "new_window": rng.choice(["no", "yes"], size=n_records, p=[0.98, 0.02]),
            "num_window": rng.integers(1, 800, size=n_records),
        }
    )
    for i, col in enumerate(SENSOR_COLUMNS):
        # Half the sensors carry class signal, the rest are noise
        shift = codes * (1.5 if i % 2 == 0 else 0.0)
        frame[col] = rng.normal(loc=shift, scale=1.0, size=n_records)

    sparse = rng.normal(size=n_records).astype(object)
    sparse[rng.random(n_records) < sparse_missing] = np.nan
    present = np.flatnonzero(pd.notna(sparse))
    if len(present) > 0:
        sparse[present[: max(1, len(present) // 4)]] = "#DIV/0!"
    frame[SPARSE_COLUMN] = sparse

    if labelled:
        frame["classe"] = labels
    else:
        frame["problem_id"] = np.arange(1, n_records + 1)
    return frame


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """CLI tests attach handlers to the package logger; keep caplog working."""
    yield
    pkg_logger = logging.getLogger("wle_ml")
    for handler in list(pkg_logger.handlers):
        handler.close()
    pkg_logger.handlers.clear()
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)


@pytest.fixture
def wle_frame():
    """1000 labelled records, 5 balanced classes."""
    return make_wle_frame(1000, seed=0)


@pytest.fixture
def wle_csv(tmp_path, wle_frame):
    """Training CSV written with the original file's NA conventions."""
    path = tmp_path / "pml-training.csv"
    wle_frame.to_csv(path, index=False, na_rep="NA")
    return path


@pytest.fixture
def scoring_csv(tmp_path):
    """20 unlabelled records with problem_id."""
    path = tmp_path / "pml-testing.csv"
    make_wle_frame(20, seed=99, labelled=False).to_csv(path, index=False, na_rep="NA")
    return path


def small_config(tmp_path, **sections) -> PipelineConfig:
    """Fast configuration: 3 folds, few trees, one worker, no plots."""
    payload = {
        "data": {
            "train_file": str(tmp_path / "pml-training.csv"),
            "scoring_file": str(tmp_path / "pml-testing.csv"),
        },
        "cv": {"folds": 3, "fold_n_jobs": 1},
        "models": {
            "base_models": ["rf", "gbm", "bagging", "lda", "tree"],
            "rf": {"n_estimators": 20},
            "gbm": {"n_estimators": 20},
            "bagging": {"n_estimators": 5},
        },
        "ensemble": {"meta_model": "gbm"},
        "compute": {"n_workers": 1, "backend": "loky"},
        "output": {"outdir": str(tmp_path / "results"), "save_plots": False},
        "strictness": {"level": "off"},
        "run_name": "test",
    }
    for key, value in sections.items():
        if isinstance(value, dict) and isinstance(payload.get(key), dict):
            payload[key] = {**payload[key], **value}
        else:
            payload[key] = value
    return PipelineConfig(**payload)


@pytest.fixture
def fast_config(tmp_path, wle_csv, scoring_csv):
    return small_config(tmp_path)


@pytest.fixture
def source_dataset(wle_frame):
    """Cleaned source Dataset (all sensor columns, labels attached)."""
    return build_dataset(wle_frame, PipelineConfig().data, name="source", require_labels=True)


@pytest.fixture
def wle_split(source_dataset):
    return partition(source_dataset, p_outer=0.3, p_inner=0.7, seed=0)


@pytest.fixture
def cleaned_split(wle_split):
    """Split restricted to the column schema fitted on its training subset."""
    schema = fit_column_schema(wle_split.train, 0.5)
    return Split(
        train=apply_column_schema(wle_split.train, schema),
        validation=apply_column_schema(wle_split.validation, schema),
        test=apply_column_schema(wle_split.test, schema),
        seed=wle_split.seed,
    )


@pytest.fixture
def trained_outcome(tmp_path, cleaned_split):
    """Four base models trained on the cleaned training split."""
    config = small_config(tmp_path)
    return train_base_models(STACK_MODELS, cleaned_split.train, config)
