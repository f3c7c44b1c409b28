"""Data loading, cleaning, partitioning and schema definitions."""

from wle_ml.data.cleaning import (
    ColumnSchema,
    apply_column_schema,
    build_dataset,
    coerce_numeric,
    compute_na_fraction,
    fit_column_schema,
    select_predictor_columns,
)
from wle_ml.data.dataset import Dataset
from wle_ml.data.io import read_exercise_file, read_scoring_file, read_training_file
from wle_ml.data.schema import (
    CLASS_LABELS,
    ID_COL,
    OUTCOME_COL,
    get_sensor_columns,
    meta_feature_name,
)
from wle_ml.data.splits import (
    Split,
    check_disjoint,
    class_proportion_table,
    compute_split_id,
    partition,
    summarize_split,
    validate_proportions,
)

__all__ = [
    # Schema
    "OUTCOME_COL",
    "ID_COL",
    "CLASS_LABELS",
    "get_sensor_columns",
    "meta_feature_name",
    # Containers
    "Dataset",
    "ColumnSchema",
    "Split",
    # I/O
    "read_exercise_file",
    "read_training_file",
    "read_scoring_file",
    # Cleaning
    "select_predictor_columns",
    "coerce_numeric",
    "build_dataset",
    "compute_na_fraction",
    "fit_column_schema",
    "apply_column_schema",
    # Splits
    "partition",
    "validate_proportions",
    "check_disjoint",
    "class_proportion_table",
    "compute_split_id",
    "summarize_split",
]
