"""Configuration management for WLE-ML."""

from wle_ml.config.defaults import (
    DEFAULT_BASE_MODELS,
    DEFAULT_SENSOR_PREFIXES,
    VALID_META_MODELS,
    VALID_MODELS,
)
from wle_ml.config.loader import (
    apply_overrides,
    format_config_summary,
    load_pipeline_config,
    load_yaml,
    save_config,
)
from wle_ml.config.schema import (
    CleaningConfig,
    ComputeConfig,
    CVConfig,
    DataConfig,
    EnsembleConfig,
    ModelsConfig,
    PipelineConfig,
    SplitsConfig,
)
from wle_ml.config.validation import (
    ConfigValidationError,
    ConfigValidationWarning,
    validate_cv_folds,
    validate_pipeline_config,
)

__all__ = [
    "VALID_MODELS",
    "VALID_META_MODELS",
    "DEFAULT_BASE_MODELS",
    "DEFAULT_SENSOR_PREFIXES",
    "load_yaml",
    "load_pipeline_config",
    "apply_overrides",
    "save_config",
    "format_config_summary",
    "PipelineConfig",
    "DataConfig",
    "CleaningConfig",
    "SplitsConfig",
    "CVConfig",
    "ModelsConfig",
    "EnsembleConfig",
    "ComputeConfig",
    "validate_pipeline_config",
    "validate_cv_folds",
    "ConfigValidationError",
    "ConfigValidationWarning",
]
