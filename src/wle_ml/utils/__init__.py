"""Utility functions for WLE-ML."""

from wle_ml.utils.logging import auto_log_path, log_section, setup_logger
from wle_ml.utils.random import apply_seed_global, get_model_seed, set_random_seed
from wle_ml.utils.serialization import (
    library_versions,
    load_joblib,
    load_json,
    save_joblib,
    save_json,
)

__all__ = [
    "setup_logger",
    "auto_log_path",
    "log_section",
    "set_random_seed",
    "apply_seed_global",
    "get_model_seed",
    "library_versions",
    "save_joblib",
    "load_joblib",
    "save_json",
    "load_json",
]
