"""
WLE-ML: Stacked classifiers for Weight Lifting Exercise quality

A reproducible pipeline that predicts how a dumbbell curl was performed
(classes A-E) from on-body sensor recordings, by stacking heterogeneous
base classifiers trained in parallel.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from wle_ml import (  # noqa: E402
    config,
    data,
    errors,
    evaluation,
    models,
    plotting,
    utils,
)

__all__ = [
    "__version__",
    "config",
    "data",
    "errors",
    "evaluation",
    "models",
    "plotting",
    "utils",
]
