"""
Default configuration values.

This module is the single source of truth for default parameter values used
by the schema, the loader and the tests.
"""

from typing import Any

# Valid base model / meta-learner names (see models.registry)
VALID_MODELS = [
    "rf",
    "gbm",
    "bagging",
    "lda",
    "tree",
    "xgboost",
]

VALID_META_MODELS = [
    "gbm",
    "rf",
    "xgboost",
    "multinomial",
]

DEFAULT_BASE_MODELS = ["rf", "gbm", "bagging", "lda", "tree"]

# Outcome column of the training file and row id column of the scoring file
DEFAULT_OUTCOME_COL = "classe"
DEFAULT_ID_COL = "problem_id"

# Sensor column prefixes of the weight lifting exercise recordings
# (belt, arm, dumbbell and forearm sensors; raw readings and window summaries).
DEFAULT_SENSOR_PREFIXES = [
    "roll_",
    "pitch_",
    "yaw_",
    "total_accel_",
    "gyros_",
    "accel_",
    "magnet_",
    "kurtosis_",
    "skewness_",
    "max_",
    "min_",
    "amplitude_",
    "var_",
    "avg_",
    "stddev_",
]

DEFAULT_NA_TOKENS = ["NA", "", "#DIV/0!"]

DEFAULT_DATA_CONFIG: dict[str, Any] = {
    "train_file": None,
    "scoring_file": None,
    "outcome_col": "classe",
    "id_col": "problem_id",
    "sensor_prefixes": list(DEFAULT_SENSOR_PREFIXES),
    "na_tokens": list(DEFAULT_NA_TOKENS),
}

DEFAULT_CLEANING_CONFIG: dict[str, Any] = {
    "na_threshold": 0.5,
}

DEFAULT_SPLITS_CONFIG: dict[str, Any] = {
    "p_outer": 0.3,
    "p_inner": 0.7,
    "seed": 0,
}

DEFAULT_CV_CONFIG: dict[str, Any] = {
    "folds": 20,
    "fold_n_jobs": "auto",
}

DEFAULT_ENSEMBLE_CONFIG: dict[str, Any] = {
    "meta_model": "gbm",
    "meta_features": "in_sample",
    "meta_cv_folds": 5,
}

DEFAULT_EVALUATION_CONFIG: dict[str, Any] = {
    "ci_level": 0.95,
}

DEFAULT_OUTPUT_CONFIG: dict[str, Any] = {
    "outdir": "results",
    "save_plots": True,
    "plot_format": "png",
    "plot_dpi": 150,
    "save_bundle": True,
    "save_split_predictions": True,
    "explore_top_n": 6,
}

DEFAULT_STRICTNESS_CONFIG: dict[str, Any] = {
    "level": "warn",
}
