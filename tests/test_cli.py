"""
Tests for the ``wle`` command line interface.
"""

import io
from pathlib import Path

import pandas as pd
import pytest
import yaml
from click.testing import CliRunner
from conftest import make_wle_frame, small_config
from wle_ml import __version__
from wle_ml.cli.main import cli
from wle_ml.cli.run_pipeline import run_pipeline
from wle_ml.config.loader import save_config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, wle_csv, scoring_csv):
    path = tmp_path / "configs" / "run.yaml"
    save_config(small_config(tmp_path), path)
    return path


@pytest.fixture
def bundle_path(fast_config):
    result = run_pipeline(fast_config)
    return Path(result.output_dirs.models) / "pipeline_bundle.joblib"


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"wle, version {__version__}" in result.output


def test_help_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("run", "predict", "show-config"):
        assert command in result.output


class TestShowConfig:
    def test_summary_with_override(self, runner, config_file):
        result = runner.invoke(
            cli, ["show-config", "--config", str(config_file), "--override", "cv.folds=7"]
        )
        assert result.exit_code == 0, result.output
        assert "Configuration Summary" in result.output
        assert "folds: 7" in result.output

    def test_as_yaml(self, runner):
        result = runner.invoke(cli, ["show-config", "--as-yaml"])
        assert result.exit_code == 0
        payload = yaml.safe_load(result.output)
        assert payload["splits"] == {"p_outer": 0.3, "p_inner": 0.7, "seed": 0}

    def test_invalid_override(self, runner):
        result = runner.invoke(cli, ["show-config", "--override", "cv.folds=1"])
        assert result.exit_code == 1
        assert "Invalid pipeline configuration" in result.output


class TestRun:
    def test_run_writes_outputs(self, runner, config_file, tmp_path):
        result = runner.invoke(cli, ["run", "--config", str(config_file)])
        assert result.exit_code == 0, result.output
        assert "Combiner test accuracy:" in result.output
        assert "Outputs:" in result.output

        root = tmp_path / "results"
        assert (root / "report.md").exists()
        assert (root / "models" / "pipeline_bundle.joblib").exists()
        assert (root / "logs" / "run_test.log").exists()

    def test_run_with_overrides(self, runner, config_file, tmp_path):
        result = runner.invoke(
            cli,
            [
                "run",
                "--config",
                str(config_file),
                "--override",
                "models.base_models=lda,tree",
                "--override",
                "ensemble.meta_model=multinomial",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "(base models: lda, tree)" in result.output
        cv = pd.read_csv(tmp_path / "results" / "core" / "cv_summary.csv")
        assert list(cv["model"]) == ["lda", "tree"]

    def test_invalid_partition_reported(self, runner, config_file):
        result = runner.invoke(
            cli, ["run", "--config", str(config_file), "--override", "splits.p_outer=1.5"]
        )
        assert result.exit_code == 1
        assert "[partition]" in result.output
        assert "p_outer" in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "--config", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 2


class TestPredict:
    def test_predict_to_stdout(self, runner, bundle_path, scoring_csv):
        result = runner.invoke(
            cli, ["predict", "--bundle", str(bundle_path), "--infile", str(scoring_csv)]
        )
        assert result.exit_code == 0, result.output
        df = pd.read_csv(io.StringIO(result.stdout))
        assert list(df.columns) == ["problem_id", "prediction"]
        assert len(df) == 20

    def test_predict_to_file(self, runner, bundle_path, scoring_csv, tmp_path):
        out = tmp_path / "scored" / "preds.csv"
        result = runner.invoke(
            cli,
            [
                "predict",
                "-b",
                str(bundle_path),
                "--infile",
                str(scoring_csv),
                "-o",
                str(out),
                "--with-base-predictions",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Wrote 20 predictions" in result.output
        df = pd.read_csv(out)
        assert "pred__rf" in df.columns

    def test_predict_missing_column(self, runner, bundle_path, tmp_path):
        bad = tmp_path / "bad.csv"
        make_wle_frame(5, labelled=False).drop(columns=["roll_belt"]).to_csv(bad, index=False)
        result = runner.invoke(cli, ["predict", "--bundle", str(bundle_path), "--infile", str(bad)])
        assert result.exit_code == 1
        assert "roll_belt" in result.output
