"""Tests for utils: seeding, serialization and logging setup."""

import logging
import random

import numpy as np
import pytest
from wle_ml.utils.logging import auto_log_path, log_section, setup_logger
from wle_ml.utils.random import apply_seed_global, get_model_seed, set_random_seed
from wle_ml.utils.serialization import (
    library_versions,
    load_joblib,
    load_json,
    save_joblib,
    save_json,
)


class TestSeeds:
    def test_set_random_seed(self):
        set_random_seed(5)
        a = (random.random(), np.random.rand())
        set_random_seed(5)
        assert (random.random(), np.random.rand()) == a

    def test_model_seeds_distinct(self):
        seeds = {get_model_seed(0, i) for i in range(5)}
        assert len(seeds) == 5
        assert get_model_seed(10, 2, fold_idx=3) == 2013

    def test_seed_global_unset(self, monkeypatch):
        monkeypatch.delenv("SEED_GLOBAL", raising=False)
        assert apply_seed_global() is None

    def test_seed_global_applied(self, monkeypatch):
        monkeypatch.setenv("SEED_GLOBAL", " 42 ")
        assert apply_seed_global() == 42

    @pytest.mark.parametrize("value", ["abc", "-1", ""])
    def test_seed_global_ignored(self, monkeypatch, value):
        monkeypatch.setenv("SEED_GLOBAL", value)
        assert apply_seed_global() is None


class TestSerialization:
    def test_json_converts_numpy(self, tmp_path):
        path = tmp_path / "nested" / "x.json"
        save_json({"n": np.int64(3), "acc": np.float32(0.5), "v": np.arange(2)}, path)
        assert load_json(path) == {"n": 3, "acc": 0.5, "v": [0, 1]}

    def test_joblib_roundtrip(self, tmp_path):
        path = tmp_path / "obj.joblib"
        save_joblib({"a": [1, 2]}, path)
        assert load_joblib(path) == {"a": [1, 2]}

    def test_missing_joblib(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_joblib(tmp_path / "none.joblib")

    def test_version_mismatch_warns(self, tmp_path):
        versions = library_versions()
        versions["sklearn"] = "0.0.1"
        path = tmp_path / "bundle.joblib"
        save_joblib({"versions": versions}, path)
        with pytest.warns(UserWarning, match="sklearn: saved=0.0.1"):
            load_joblib(path)

    def test_version_check_can_be_disabled(self, tmp_path, recwarn):
        path = tmp_path / "bundle.joblib"
        save_joblib({"versions": {"sklearn": "0.0.1"}}, path)
        load_joblib(path, check_versions=False)
        assert not [w for w in recwarn if "version mismatch" in str(w.message)]


class TestLogging:
    def test_setup_logger_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logger("wle_ml", level=logging.INFO, log_file=log_file)
        assert len(logger.handlers) == 2
        assert logger.propagate is False

        logging.getLogger("wle_ml.models.training").info("child message")
        log_section(logger, "Stage 1")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text()
        assert "child message" in text
        assert "Stage 1" in text

    def test_setup_logger_replaces_handlers(self):
        setup_logger("wle_ml")
        logger = setup_logger("wle_ml")
        assert len(logger.handlers) == 1

    def test_auto_log_path(self, tmp_path):
        path = auto_log_path("run", tmp_path / "results", "demo")
        assert path == (tmp_path / "results").resolve() / "logs" / "run_demo.log"
        assert auto_log_path("predict", tmp_path).name == "predict_run.log"
