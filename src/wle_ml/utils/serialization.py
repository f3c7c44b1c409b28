"""
Serialization utilities for models and results.
"""

import json
import logging
import warnings
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import pandas as pd
import sklearn

logger = logging.getLogger(__name__)


def library_versions() -> dict[str, str]:
    """Versions recorded in saved bundles so reloads can be checked."""
    return {
        "sklearn": sklearn.__version__,
        "pandas": pd.__version__,
        "numpy": np.__version__,
    }


def save_joblib(obj: Any, path: str | Path, compress: int = 3):
    """Save object using joblib."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(obj, path, compress=compress)


def load_joblib(path: str | Path, check_versions: bool = True) -> Any:
    """
    Load object using joblib with optional version checking.

    Args:
        path: Path to joblib file
        check_versions: If True and object is a bundle with version metadata,
            warn if sklearn/pandas/numpy versions differ from current environment

    Returns:
        Loaded object

    Warns:
        UserWarning if versions mismatch and check_versions=True
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    obj = joblib.load(path)

    if check_versions and isinstance(obj, dict) and "versions" in obj:
        current_versions = library_versions()
        mismatches = []
        for lib, saved_ver in obj["versions"].items():
            current_ver = current_versions.get(lib)
            if current_ver and saved_ver != current_ver:
                mismatches.append(f"{lib}: saved={saved_ver}, current={current_ver}")

        if mismatches:
            warnings.warn(
                f"Bundle version mismatch in {path.name}:\n"
                + "\n".join(f"  - {m}" for m in mismatches)
                + "\nPredictions may be inconsistent.",
                UserWarning,
                stacklevel=2,
            )

    return obj


def _convert_numpy_types(obj: Any) -> Any:
    """Convert numpy types to native Python types for JSON serialization."""
    if isinstance(obj, dict):
        return {str(k): _convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, list | tuple):
        return [_convert_numpy_types(v) for v in obj]
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def save_json(obj: Any, path: str | Path, indent: int = 2):
    """Save object as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(_convert_numpy_types(obj), f, indent=indent, default=str)


def load_json(path: str | Path) -> Any:
    """Load JSON file."""
    with open(path) as f:
        return json.load(f)
