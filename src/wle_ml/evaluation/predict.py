"""
Scoring of unlabelled records and the persisted pipeline bundle.

The bundle holds everything needed to score a new file without retraining:
the data configuration, the fitted column schema, the base models and the
stacking combiner. Its base model list is the one the combiner was actually
trained on, which may be shorter than the configured list if some base
models failed.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..config.schema import DataConfig
from ..data.cleaning import ColumnSchema, apply_column_schema, build_dataset
from ..data.dataset import Dataset
from ..data.io import read_scoring_file
from ..models.stacking import StackingCombiner
from ..models.training import TrainedModel
from ..utils.serialization import library_versions, load_joblib, save_joblib

logger = logging.getLogger(__name__)

BUNDLE_KEYS = ("data_config", "column_schema", "models", "combiner", "versions")


def predict_scoring(
    dataset: Dataset,
    schema: ColumnSchema,
    models: dict[str, TrainedModel],
    combiner: StackingCombiner,
    id_col: str = "problem_id",
    include_base_predictions: bool = False,
) -> pd.DataFrame:
    """
    Predict labels for unlabelled records with the stacking combiner.

    Args:
        dataset: Scoring Dataset (cleaned, not yet restricted to the schema)
        schema: Column schema fitted on the training split
        models: Base models the combiner was trained on
        combiner: Fitted StackingCombiner
        id_col: Name of the record id column in the output
        include_base_predictions: Also output each base model's prediction

    Returns:
        DataFrame with ``id_col`` and ``prediction`` (plus ``pred__<model>``)

    Raises:
        DataShapeMismatch: If the scoring data lacks a retained column
        ConfigurationError: If ``models`` differ from the combiner's base models
    """
    scoring = apply_column_schema(dataset, schema)
    meta = combiner.meta_features_for(models, scoring)
    predictions = combiner.predict_from_meta(meta)

    ids = scoring.ids if scoring.ids is not None else pd.Series(scoring.index, index=scoring.index)
    out = pd.DataFrame({id_col: ids.to_numpy(), "prediction": predictions})
    if include_base_predictions:
        for col in meta.columns:
            out[col] = meta[col].to_numpy()

    logger.info(f"Scored {len(out):,} records from '{dataset.name}'")
    return out


def build_bundle(
    data_config: DataConfig,
    schema: ColumnSchema,
    models: dict[str, TrainedModel],
    combiner: StackingCombiner,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Assemble the pipeline bundle dictionary."""
    return {
        "data_config": data_config.model_dump(mode="json"),
        "column_schema": schema.to_dict(),
        "models": dict(models),
        "combiner": combiner,
        "base_model_names": list(combiner.base_model_names_),
        "metadata": metadata or {},
        "versions": library_versions(),
    }


def save_bundle(bundle: dict[str, Any], path: str | Path) -> Path:
    """Write a pipeline bundle with joblib."""
    path = Path(path)
    save_joblib(bundle, path)
    logger.info(f"Saved pipeline bundle: {path}")
    return path


def load_bundle(path: str | Path) -> dict[str, Any]:
    """
    Load a pipeline bundle (warns on library version mismatch).

    Raises:
        FileNotFoundError: If the bundle does not exist
        ValueError: If the file is not a pipeline bundle
    """
    bundle = load_joblib(path)
    if not isinstance(bundle, dict) or any(key not in bundle for key in BUNDLE_KEYS):
        raise ValueError(f"{path} is not a pipeline bundle (expected keys {list(BUNDLE_KEYS)})")
    return bundle


def predict_with_bundle(
    bundle_path: str | Path,
    scoring_file: str | Path,
    include_base_predictions: bool = False,
) -> pd.DataFrame:
    """
    Score a new file with a saved pipeline bundle.

    Args:
        bundle_path: Path to ``pipeline_bundle.joblib``
        scoring_file: CSV or Parquet file with the id column and sensor columns
        include_base_predictions: Also output each base model's prediction

    Returns:
        DataFrame with id and predicted label per record

    Raises:
        DataShapeMismatch: If a retained column is missing from the file
    """
    bundle = load_bundle(bundle_path)
    data_config = DataConfig(**bundle["data_config"])
    schema = ColumnSchema.from_dict(bundle["column_schema"])
    combiner: StackingCombiner = bundle["combiner"]

    logger.info(
        f"Loaded bundle {Path(bundle_path).name}: {schema.n_retained} predictors, "
        f"base models {combiner.base_model_names_}"
    )

    raw = read_scoring_file(scoring_file, data_config)
    dataset = build_dataset(raw, data_config, name=Path(scoring_file).stem)
    return predict_scoring(
        dataset,
        schema,
        bundle["models"],
        combiner,
        id_col=data_config.id_col,
        include_base_predictions=include_base_predictions,
    )
