"""
Configuration schema for the WLE-ML pipeline.

Defines Pydantic models for all pipeline configuration parameters.
Defaults live in ``wle_ml.config.defaults``.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wle_ml.config.defaults import (
    DEFAULT_BASE_MODELS,
    DEFAULT_ID_COL,
    DEFAULT_NA_TOKENS,
    DEFAULT_OUTCOME_COL,
    DEFAULT_SENSOR_PREFIXES,
    VALID_MODELS,
)

# ============================================================================
# Data and Cleaning Configuration
# ============================================================================


class DataConfig(BaseModel):
    """Input files and column conventions."""

    train_file: Path | None = None
    scoring_file: Path | None = None
    outcome_col: str = DEFAULT_OUTCOME_COL
    id_col: str = DEFAULT_ID_COL
    sensor_prefixes: list[str] = Field(default_factory=lambda: list(DEFAULT_SENSOR_PREFIXES))
    na_tokens: list[str] = Field(default_factory=lambda: list(DEFAULT_NA_TOKENS))

    @field_validator("sensor_prefixes")
    @classmethod
    def prefixes_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("sensor_prefixes must name at least one column prefix")
        return value


class CleaningConfig(BaseModel):
    """Missing-value column filtering."""

    na_threshold: float = Field(default=0.5, ge=0.0, le=1.0)


class SplitsConfig(BaseModel):
    """Configuration for the train/validation/test partition.

    Proportions are validated by the partitioner itself (``InvalidPartition``)
    so that a bad value fails the run at the partition stage.

    Attributes:
        p_outer: Fraction of all records held out as the test set.
        p_inner: Fraction of the remaining records used for training
            (the rest becomes the validation set).
        seed: Split seed; falls back to the run-level ``random_state``.
    """

    p_outer: float = 0.3
    p_inner: float = 0.7
    seed: int | None = None


# ============================================================================
# Cross-Validation Configuration
# ============================================================================


class CVConfig(BaseModel):
    """Configuration for the per-model resampling estimate."""

    folds: int = Field(default=20, ge=2)
    fold_n_jobs: int | Literal["auto"] = "auto"


# ============================================================================
# Model-Specific Hyperparameter Configurations
# ============================================================================


class RFConfig(BaseModel):
    """Random forest hyperparameters."""

    n_estimators: int = Field(default=200, ge=1)
    max_depth: int | None = None
    min_samples_leaf: int = Field(default=1, ge=1)
    max_features: str | float | None = "sqrt"


class GBMConfig(BaseModel):
    """Gradient boosting hyperparameters."""

    n_estimators: int = Field(default=150, ge=1)
    learning_rate: float = Field(default=0.1, gt=0.0)
    max_depth: int = Field(default=3, ge=1)
    subsample: float = Field(default=1.0, gt=0.0, le=1.0)


class BaggingConfig(BaseModel):
    """Bagged decision tree hyperparameters."""

    n_estimators: int = Field(default=50, ge=1)
    max_samples: float = Field(default=1.0, gt=0.0, le=1.0)
    max_features: float = Field(default=1.0, gt=0.0, le=1.0)


class TreeConfig(BaseModel):
    """Single decision tree (recursive partitioning) hyperparameters."""

    criterion: Literal["gini", "entropy", "log_loss"] = "gini"
    max_depth: int | None = None
    min_samples_leaf: int = Field(default=1, ge=1)
    ccp_alpha: float = Field(default=0.0, ge=0.0)


class LDAConfig(BaseModel):
    """Linear discriminant analysis hyperparameters."""

    solver: Literal["svd", "lsqr", "eigen"] = "svd"
    shrinkage: float | Literal["auto"] | None = None

    @model_validator(mode="after")
    def check_shrinkage_solver(self):
        if self.shrinkage is not None and self.solver == "svd":
            raise ValueError("lda.shrinkage requires solver 'lsqr' or 'eigen'")
        return self


class XGBoostConfig(BaseModel):
    """XGBoost hyperparameters."""

    n_estimators: int = Field(default=200, ge=1)
    max_depth: int = Field(default=6, ge=1)
    learning_rate: float = Field(default=0.1, gt=0.0)
    subsample: float = Field(default=1.0, gt=0.0, le=1.0)
    colsample_bytree: float = Field(default=1.0, gt=0.0, le=1.0)
    tree_method: str = "hist"


class ModelsConfig(BaseModel):
    """Base model selection and per-model hyperparameters."""

    base_models: list[str] = Field(default_factory=lambda: list(DEFAULT_BASE_MODELS))
    rf: RFConfig = Field(default_factory=RFConfig)
    gbm: GBMConfig = Field(default_factory=GBMConfig)
    bagging: BaggingConfig = Field(default_factory=BaggingConfig)
    tree: TreeConfig = Field(default_factory=TreeConfig)
    lda: LDAConfig = Field(default_factory=LDAConfig)
    xgboost: XGBoostConfig = Field(default_factory=XGBoostConfig)

    @field_validator("base_models")
    @classmethod
    def validate_base_models(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("models.base_models must list at least one model")
        unknown = [name for name in value if name not in VALID_MODELS]
        if unknown:
            raise ValueError(f"Unknown base model(s) {unknown}. Valid models: {VALID_MODELS}")
        if len(set(value)) != len(value):
            raise ValueError(f"models.base_models contains duplicates: {value}")
        return value


# ============================================================================
# Ensemble Configuration
# ============================================================================


class EnsembleConfig(BaseModel):
    """Configuration for the stacking combiner.

    meta_features:
        - "in_sample": base model predictions on the data they were trained on
        - "oof": out-of-fold predictions from ``meta_cv_folds``-fold refits
    """

    meta_model: Literal["gbm", "rf", "xgboost", "multinomial"] = "gbm"
    meta_features: Literal["in_sample", "oof"] = "in_sample"
    meta_cv_folds: int = Field(default=5, ge=2)


class TrainingConfig(BaseModel):
    """Failure policy for base model training."""

    fail_on_convergence: bool = True


# ============================================================================
# Evaluation, Compute and Output Configuration
# ============================================================================


class EvaluationConfig(BaseModel):
    """Configuration for confusion statistics."""

    ci_level: float = Field(default=0.95, gt=0.0, lt=1.0)


class ComputeConfig(BaseModel):
    """Worker pool for parallel base model training.

    One core is reserved for coordination by default.
    """

    n_workers: int = Field(default_factory=lambda: max(1, (os.cpu_count() or 1) - 1), ge=1)
    backend: Literal["loky", "multiprocessing"] = "loky"


class OutputConfig(BaseModel):
    """Configuration for output file generation."""

    model_config = ConfigDict(extra="forbid")

    outdir: Path = Field(default=Path("results"))
    save_plots: bool = True
    plot_format: str = "png"
    plot_dpi: int = Field(default=150, ge=50)
    save_bundle: bool = True
    save_split_predictions: bool = True
    explore_top_n: int = Field(default=6, ge=1)


class StrictnessConfig(BaseModel):
    """Configuration for validation strictness."""

    level: Literal["off", "warn", "error"] = "warn"


# ============================================================================
# Master Pipeline Configuration
# ============================================================================


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    data: DataConfig = Field(default_factory=DataConfig)
    cleaning: CleaningConfig = Field(default_factory=CleaningConfig)
    splits: SplitsConfig = Field(default_factory=SplitsConfig)
    cv: CVConfig = Field(default_factory=CVConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    ensemble: EnsembleConfig = Field(default_factory=EnsembleConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    compute: ComputeConfig = Field(default_factory=ComputeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    strictness: StrictnessConfig = Field(default_factory=StrictnessConfig)

    random_state: int = 0
    run_name: str | None = None

    @property
    def split_seed(self) -> int:
        """Seed used by the partitioner."""
        return self.splits.seed if self.splits.seed is not None else self.random_state
