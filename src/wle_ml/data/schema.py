"""
Data schema definitions and constants.

Defines column names, labels, and data structures of the weight lifting
exercise recordings (on-body sensors on belt, arm, forearm and dumbbell).
"""

from wle_ml.config.defaults import DEFAULT_ID_COL, DEFAULT_OUTCOME_COL

# ============================================================================
# Column Names
# ============================================================================

# Outcome column (training file only)
OUTCOME_COL = DEFAULT_OUTCOME_COL

# Row identifier column (scoring file only)
ID_COL = DEFAULT_ID_COL

# Bookkeeping columns that are never predictors
BOOKKEEPING_COLS = [
    "X",
    "user_name",
    "raw_timestamp_part_1",
    "raw_timestamp_part_2",
    "cvtd_timestamp",
    "new_window",
    "num_window",
]

# ============================================================================
# Class Labels
# ============================================================================

CLASS_LABELS = ["A", "B", "C", "D", "E"]

CLASS_DESCRIPTIONS = {
    "A": "exactly according to the specification",
    "B": "throwing the elbows to the front",
    "C": "lifting the dumbbell only halfway",
    "D": "lowering the dumbbell only halfway",
    "E": "throwing the hips to the front",
}

# ============================================================================
# Meta-feature naming
# ============================================================================

META_FEATURE_PREFIX = "pred__"


def meta_feature_name(model_name: str) -> str:
    """Column name of a base model's prediction in the meta-feature table."""
    return f"{META_FEATURE_PREFIX}{model_name}"


def get_sensor_columns(columns: list[str], prefixes: list[str]) -> list[str]:
    """
    Extract sensor predictor columns from a column list.

    Args:
        columns: Column names, in file order
        prefixes: Allowed name prefixes

    Returns:
        Matching column names, preserving file order

    Example:
        >>> get_sensor_columns(["user_name", "roll_belt", "classe"], ["roll_"])
        ['roll_belt']
    """
    bookkeeping = set(BOOKKEEPING_COLS)
    return [
        col
        for col in columns
        if isinstance(col, str) and col not in bookkeeping and col.startswith(tuple(prefixes))
    ]
