"""Tests for data.io module."""

import numpy as np
import pandas as pd
import pytest
from conftest import SENSOR_COLUMNS, SPARSE_COLUMN, make_wle_frame
from wle_ml.config.schema import DataConfig
from wle_ml.data.io import (
    read_exercise_file,
    read_scoring_file,
    read_training_file,
    usecols_for_exercise,
    validate_required_columns,
)
from wle_ml.errors import DataShapeMismatch


class TestUsecols:
    def test_keeps_outcome_id_and_sensor_columns(self):
        keep = usecols_for_exercise(DataConfig())
        assert keep("classe")
        assert keep("problem_id")
        assert keep("roll_belt")
        assert keep("kurtosis_picth_arm")

    def test_drops_bookkeeping_columns(self):
        keep = usecols_for_exercise(DataConfig())
        for col in ["X", "user_name", "raw_timestamp_part_1", "cvtd_timestamp", "num_window"]:
            assert not keep(col)

    def test_extra_columns(self):
        keep = usecols_for_exercise(DataConfig(), extra=("user_name",))
        assert keep("user_name")


class TestReadTrainingFile:
    def test_na_tokens_become_missing(self, wle_csv):
        df = read_training_file(wle_csv, DataConfig())
        assert df[SPARSE_COLUMN].dtype == float
        assert df[SPARSE_COLUMN].isna().mean() > 0.9
        assert "#DIV/0!" not in df[SPARSE_COLUMN].astype(str).tolist()

    def test_bookkeeping_columns_not_loaded(self, wle_csv):
        df = read_training_file(wle_csv, DataConfig())
        assert "user_name" not in df.columns
        assert "X" not in df.columns
        assert set(SENSOR_COLUMNS) <= set(df.columns)
        assert len(df) == 1000

    def test_missing_outcome_column_raises(self, tmp_path):
        path = tmp_path / "no_label.csv"
        make_wle_frame(50, labelled=False).to_csv(path, index=False)
        with pytest.raises(DataShapeMismatch, match="classe"):
            read_training_file(path, DataConfig())

    def test_error_names_file(self, tmp_path):
        path = tmp_path / "unlabelled.csv"
        make_wle_frame(50, labelled=False).to_csv(path, index=False)
        with pytest.raises(DataShapeMismatch) as exc_info:
            read_training_file(path, DataConfig())
        assert "unlabelled.csv" in str(exc_info.value)
        assert exc_info.value.missing_columns == ["classe"]


class TestReadScoringFile:
    def test_reads_problem_id(self, scoring_csv):
        df = read_scoring_file(scoring_csv, DataConfig())
        assert list(df["problem_id"]) == list(range(1, 21))

    def test_missing_id_column_raises(self, wle_csv):
        with pytest.raises(DataShapeMismatch, match="problem_id"):
            read_scoring_file(wle_csv, DataConfig())


class TestReadExerciseFile:
    def test_parquet_roundtrip_with_filter(self, tmp_path):
        frame = make_wle_frame(30)
        frame[SPARSE_COLUMN] = pd.to_numeric(frame[SPARSE_COLUMN], errors="coerce")
        path = tmp_path / "train.parquet"
        frame.to_parquet(path, engine="pyarrow")

        df = read_exercise_file(path, usecols=usecols_for_exercise(DataConfig()))
        assert "user_name" not in df.columns
        assert "roll_belt" in df.columns
        np.testing.assert_allclose(df["roll_belt"], frame["roll_belt"])

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "data.xlsx"
        path.write_text("x")
        with pytest.raises(ValueError, match="Unsupported file format"):
            read_exercise_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_exercise_file(tmp_path / "nope.csv")


def test_validate_required_columns_passes():
    validate_required_columns(pd.DataFrame({"a": [1]}), ["a"], source="frame")
