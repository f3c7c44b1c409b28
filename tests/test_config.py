"""
Tests for configuration loading, overrides and validation.
"""

from pathlib import Path

import pytest
import yaml
from conftest import small_config
from wle_ml.config import (
    ConfigValidationError,
    ConfigValidationWarning,
    PipelineConfig,
    apply_overrides,
    load_pipeline_config,
    load_yaml,
    save_config,
    validate_cv_folds,
    validate_pipeline_config,
)
from wle_ml.config.loader import format_config_summary, resolve_paths_relative_to_config
from wle_ml.data.schema import ID_COL, OUTCOME_COL

CONFIGS_DIR = Path(__file__).resolve().parent.parent / "configs"


def _write_yaml(path: Path, payload: dict) -> Path:
    with open(path, "w") as f:
        yaml.safe_dump(payload, f)
    return path


class TestDefaults:
    def test_default_values(self):
        config = load_pipeline_config()
        assert config.splits.p_outer == 0.3
        assert config.splits.p_inner == 0.7
        assert config.cleaning.na_threshold == 0.5
        assert config.cv.folds == 20
        assert config.models.base_models == ["rf", "gbm", "bagging", "lda", "tree"]
        assert config.ensemble.meta_model == "gbm"
        assert config.ensemble.meta_features == "in_sample"
        assert config.data.na_tokens == ["NA", "", "#DIV/0!"]
        assert config.compute.n_workers >= 1

    def test_column_defaults_match_data_schema(self):
        data = PipelineConfig().data
        assert (data.outcome_col, data.id_col) == (OUTCOME_COL, ID_COL) == ("classe", "problem_id")

    def test_split_seed_falls_back_to_random_state(self):
        config = PipelineConfig(random_state=7)
        assert config.split_seed == 7
        assert PipelineConfig(random_state=7, splits={"seed": 3}).split_seed == 3


class TestYamlLoading:
    def test_base_inheritance(self, tmp_path):
        _write_yaml(
            tmp_path / "base.yaml", {"cv": {"folds": 10, "fold_n_jobs": 2}, "run_name": "a"}
        )
        child = _write_yaml(tmp_path / "child.yaml", {"_base": "base.yaml", "cv": {"folds": 4}})
        merged = load_yaml(child)
        assert merged["cv"] == {"folds": 4, "fold_n_jobs": 2}
        assert merged["run_name"] == "a"
        assert "_base" not in merged

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_paths_resolved_relative_to_config(self, tmp_path):
        config_dir = tmp_path / "configs"
        config_dir.mkdir()
        path = _write_yaml(
            config_dir / "run.yaml",
            {"data": {"train_file": "../data/train.csv"}, "output": {"outdir": "/abs/out"}},
        )
        config = load_pipeline_config(path)
        assert config.data.train_file.resolve() == (tmp_path / "data" / "train.csv").resolve()
        assert config.output.outdir == Path("/abs/out")

    def test_resolve_paths_leaves_other_keys(self, tmp_path):
        resolved = resolve_paths_relative_to_config(
            {"run_name": "x", "cv": {"folds": 3}}, tmp_path / "c.yaml"
        )
        assert resolved == {"run_name": "x", "cv": {"folds": 3}}

    def test_shipped_configs_load(self):
        config = load_pipeline_config(CONFIGS_DIR / "quick.yaml")
        assert config.cv.folds == 5
        assert config.run_name == "wle_quick"
        assert config.data.train_file.name == "pml-training.csv"


class TestOverrides:
    def test_dot_notation(self):
        out = apply_overrides({}, ["cv.folds=10", "splits.p_outer=0.25", "output.save_plots=false"])
        assert out == {
            "cv": {"folds": 10},
            "splits": {"p_outer": 0.25},
            "output": {"save_plots": False},
        }

    def test_list_keys(self):
        out = apply_overrides({}, ["models.base_models=rf", "data.na_tokens=NA,#DIV/0!"])
        assert out["models"]["base_models"] == ["rf"]
        assert out["data"]["na_tokens"] == ["NA", "#DIV/0!"]

    def test_string_keys_not_parsed(self):
        assert apply_overrides({}, ["run_name=2024"])["run_name"] == "2024"

    def test_none(self):
        assert apply_overrides({}, ["splits.seed=none"])["splits"]["seed"] is None

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid override format"):
            apply_overrides({}, ["cv.folds"])

    def test_overrides_win_over_file(self, tmp_path):
        path = _write_yaml(tmp_path / "c.yaml", {"cv": {"folds": 10}})
        config = load_pipeline_config(path, overrides=["cv.folds=4", "ensemble.meta_model=rf"])
        assert config.cv.folds == 4
        assert config.ensemble.meta_model == "rf"


class TestSchemaValidation:
    @pytest.mark.parametrize(
        "override",
        [
            "cv.folds=1",
            "cleaning.na_threshold=1.5",
            "models.base_models=svm",
            "models.base_models=rf,rf",
            "ensemble.meta_model=lda",
            "ensemble.meta_features=holdout",
            "evaluation.ci_level=1.0",
            "compute.n_workers=0",
        ],
    )
    def test_invalid_values_raise(self, override):
        with pytest.raises(ValueError, match="Invalid pipeline configuration"):
            load_pipeline_config(overrides=[override])

    def test_partition_proportions_not_checked_by_schema(self):
        # the partitioner reports bad proportions with InvalidPartition
        config = load_pipeline_config(overrides=["splits.p_outer=1.5"])
        assert config.splits.p_outer == 1.5

    def test_lda_shrinkage_needs_solver(self):
        with pytest.raises(ValueError, match="shrinkage"):
            PipelineConfig(models={"lda": {"shrinkage": 0.1}})

    def test_output_section_rejects_unknown_keys(self):
        with pytest.raises(ValueError):
            PipelineConfig(output={"save_everything": True})

    def test_thread_backend_rejected(self):
        # convergence warnings are captured per process
        with pytest.raises(ValueError, match="backend"):
            PipelineConfig(compute={"n_workers": 2, "backend": "threading"})

    @pytest.mark.parametrize("backend", ["loky", "multiprocessing"])
    def test_process_backends_accepted(self, backend):
        config = PipelineConfig(compute={"n_workers": 2, "backend": backend})
        assert config.compute.backend == backend


class TestValidation:
    def test_in_sample_meta_features_logged_not_an_issue(self, tmp_path, caplog):
        config = small_config(tmp_path, strictness={"level": "warn"})
        with caplog.at_level("WARNING", logger="wle_ml.config.validation"):
            issues = validate_pipeline_config(config)
        assert issues == []
        assert "meta_features='in_sample'" in caplog.text

    def test_default_config_passes_error_strictness(self, tmp_path, caplog):
        config = small_config(tmp_path, strictness={"level": "error"})
        assert config.ensemble.meta_features == "in_sample"
        with caplog.at_level("WARNING", logger="wle_ml.config.validation"):
            assert validate_pipeline_config(config) == []
        assert "optimistic" in caplog.text

    def test_clean_config_has_no_issues(self, tmp_path):
        config = small_config(tmp_path, ensemble={"meta_features": "oof"})
        assert validate_pipeline_config(config, strictness="error") == []

    def test_single_base_model(self, tmp_path):
        config = small_config(
            tmp_path, models={"base_models": ["rf"]}, ensemble={"meta_features": "oof"}
        )
        issues = validate_pipeline_config(config, strictness="off")
        assert any("Only one base model" in issue for issue in issues)

    def test_error_strictness_raises(self, tmp_path):
        config = small_config(tmp_path, models={"base_models": ["rf"]})
        with pytest.raises(ConfigValidationError, match="Pipeline configuration issues"):
            validate_pipeline_config(config, strictness="error")

    def test_warn_strictness_warns(self, tmp_path):
        config = small_config(tmp_path, models={"base_models": ["rf"]})
        with pytest.warns(ConfigValidationWarning, match="Only one base model"):
            validate_pipeline_config(config, strictness="warn")

    def test_off_strictness_silent(self, tmp_path, recwarn):
        config = small_config(tmp_path, models={"base_models": ["rf"]})
        validate_pipeline_config(config, strictness="off")
        assert not [w for w in recwarn if issubclass(w.category, ConfigValidationWarning)]

    def test_cv_folds_against_class_counts(self, tmp_path):
        config = small_config(tmp_path, cv={"folds": 10})
        issues = validate_cv_folds(config, {"A": 100, "B": 6}, strictness="off")
        assert len(issues) == 1
        assert "class 'B'" in issues[0]
        assert validate_cv_folds(config, {"A": 100, "B": 60}, strictness="error") == []


def test_save_config_roundtrip(tmp_path):
    config = small_config(tmp_path)
    path = tmp_path / "resolved.yaml"
    save_config(config, path)
    reloaded = load_pipeline_config(path)
    assert reloaded.cv.folds == 3
    assert reloaded.models.base_models == config.models.base_models


def test_format_config_summary(tmp_path):
    summary = format_config_summary(small_config(tmp_path))
    assert "Configuration Summary" in summary
    assert "folds: 3" in summary
