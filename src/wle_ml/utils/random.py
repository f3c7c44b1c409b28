"""
Random seed management for reproducibility.

Provides utilities for deterministic RNG seeding, including an optional
SEED_GLOBAL environment variable for single-threaded reproducibility debugging.
"""

import logging
import os
import random

import numpy as np

logger = logging.getLogger(__name__)


def set_random_seed(seed: int):
    """
    Set random seed for all libraries.

    Args:
        seed: Random seed value
    """
    random.seed(seed)
    np.random.seed(seed)

    # sklearn estimators take an explicit random_state instead of a global seed


def apply_seed_global() -> int | None:
    """
    Check SEED_GLOBAL environment variable and apply global seeding if set.

    Returns:
        The seed value applied, or None if SEED_GLOBAL was not set or invalid.

    Examples:
        >>> import os
        >>> os.environ["SEED_GLOBAL"] = "42"
        >>> seed = apply_seed_global()
        >>> seed
        42
        >>> del os.environ["SEED_GLOBAL"]
    """
    seed_str = os.environ.get("SEED_GLOBAL")
    if seed_str is None:
        return None

    seed_str = seed_str.strip()
    if not seed_str:
        return None

    try:
        seed = int(seed_str)
    except ValueError:
        logger.warning(
            "SEED_GLOBAL environment variable has non-integer value '%s'; ignoring.",
            seed_str,
        )
        return None

    if seed < 0 or seed > 2**32 - 1:
        logger.warning("SEED_GLOBAL=%d out of valid range [0, 2^32-1]; ignoring.", seed)
        return None

    set_random_seed(seed)
    logger.info("SEED_GLOBAL=%d applied (global RNG seeded for reproducibility).", seed)
    return seed


def get_model_seed(base_seed: int, model_idx: int, fold_idx: int = 0) -> int:
    """
    Generate a deterministic seed for one base model (and optionally one fold).

    Args:
        base_seed: Run-level random seed
        model_idx: Position of the model in the configured base model list
        fold_idx: Fold index (0-based)

    Returns:
        Deterministic seed for this model/fold combination
    """
    return base_seed + (model_idx * 1000) + fold_idx
