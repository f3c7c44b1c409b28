"""
ResultsWriter: Structured output directory management and results serialization.

Provides:
- OutputDirectories: Directory structure creation and path management
- ResultsWriter: High-level API for saving metrics, predictions, bundles and
  the markdown report

Layout under the output root:
    core/        metrics and run metadata (CSV / JSON)
    confusion/   contingency tables, one per model and split
    preds/       scoring predictions and held-out predictions
    models/      pipeline bundle
    plots/       figures
    logs/        log files (written by the CLI)
    report.md    human-readable summary
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..data.cleaning import ColumnSchema
from ..data.schema import CLASS_DESCRIPTIONS
from ..errors import TrainingFailure
from ..models.registry import MODEL_FAMILIES
from ..utils.serialization import save_json
from .confusion import ConfusionResult, evaluation_table, per_class_table
from .predict import save_bundle

logger = logging.getLogger(__name__)


@dataclass
class OutputDirectories:
    """
    Structured output directory paths.

    Attributes:
        root: Base output directory
        core: Metrics summaries, run settings, schema and split metadata
        confusion: Contingency tables (confusion__<model>__<split>.csv)
        preds: Scoring and held-out predictions
        models: Serialized pipeline bundle
        plots: Exploration and evaluation figures
        logs: Log files
    """

    root: str
    core: str
    confusion: str
    preds: str
    models: str
    plots: str
    logs: str

    @classmethod
    def create(cls, root: str | Path, exist_ok: bool = True) -> "OutputDirectories":
        """
        Create output directory structure.

        Args:
            root: Base output directory path
            exist_ok: If True, do not raise if directories exist

        Returns:
            OutputDirectories instance with all paths created
        """
        root_path = Path(root)
        structure = {
            "core": "core",
            "confusion": "confusion",
            "preds": "preds",
            "models": "models",
            "plots": "plots",
            "logs": "logs",
        }

        paths = {"root": str(root_path)}
        for key, rel_path in structure.items():
            abs_path = root_path / rel_path
            abs_path.mkdir(parents=True, exist_ok=exist_ok)
            paths[key] = str(abs_path)

        logger.debug(f"Created output structure at: {root}")
        return cls(**paths)

    def get_path(self, category: str, filename: str) -> str:
        """
        Construct full path for a file in a specific category.

        Raises:
            ValueError: If category is invalid
        """
        if not hasattr(self, category):
            raise ValueError(f"Unknown output category: {category}")
        return os.path.join(getattr(self, category), filename)


class ResultsWriter:
    """
    High-level API for writing pipeline results.

    Usage:
        writer = ResultsWriter(OutputDirectories.create("results"))
        writer.save_metrics_summary(results)
        writer.save_scoring_predictions(pred_df)
    """

    def __init__(self, output_dirs: OutputDirectories):
        self.dirs = output_dirs

    # ========== Settings and metadata ==========

    def save_run_settings(self, settings: dict[str, Any]) -> str:
        """Save run configuration and run metadata to core/run_settings.json."""
        path = self.dirs.get_path("core", "run_settings.json")
        with open(path, "w") as f:
            json.dump(settings, f, indent=2, sort_keys=True, default=str)
        logger.info(f"Saved run settings: {path}")
        return str(path)

    def save_column_schema(self, schema: ColumnSchema) -> str:
        """Save the fitted column schema to core/column_schema.json."""
        path = self.dirs.get_path("core", "column_schema.json")
        save_json(schema.to_dict(), path)
        logger.info(f"Saved column schema ({schema.n_retained} retained): {path}")
        return str(path)

    def save_split_summary(self, summary: dict[str, Any], proportions: pd.DataFrame) -> str:
        """Save split counts/ids to core/split_summary.json and class proportions to CSV."""
        path = self.dirs.get_path("core", "split_summary.json")
        save_json(summary, path)
        proportions.to_csv(self.dirs.get_path("core", "class_proportions.csv"), index_label="class")
        logger.info(f"Saved split summary: {path}")
        return str(path)

    def save_training_failures(
        self, failures: dict[str, TrainingFailure], trained: list[str], configured: list[str]
    ) -> str:
        """
        Record which base models the combiner was actually built from.

        Saved to core/training_failures.json.
        """
        payload = {
            "configured_base_models": list(configured),
            "trained_base_models": list(trained),
            "failures": [
                {"model": f.model_name, "stage": f.stage, "reason": f.reason}
                for f in failures.values()
            ],
        }
        path = self.dirs.get_path("core", "training_failures.json")
        save_json(payload, path)
        logger.info(f"Saved training failure record: {path}")
        return str(path)

    # ========== Metrics ==========

    def save_cv_summary(self, cv_summary: pd.DataFrame) -> str:
        """Save base model cross-validation accuracies to core/cv_summary.csv."""
        path = self.dirs.get_path("core", "cv_summary.csv")
        cv_summary.to_csv(path, index=False)
        logger.info(f"Saved CV summary: {path}")
        return str(path)

    def save_metrics_summary(self, results: list[ConfusionResult]) -> str:
        """Save one row per (model, split) to core/metrics_summary.csv."""
        path = self.dirs.get_path("core", "metrics_summary.csv")
        evaluation_table(results).to_csv(path, index=False)
        logger.info(f"Saved metrics summary: {path}")
        return str(path)

    def save_per_class_metrics(self, results: list[ConfusionResult]) -> str:
        """Save per-class statistics to core/per_class_metrics.csv."""
        path = self.dirs.get_path("core", "per_class_metrics.csv")
        per_class_table(results).to_csv(path, index=False)
        logger.info(f"Saved per-class metrics: {path}")
        return str(path)

    def save_confusion_table(self, result: ConfusionResult) -> str:
        """Save a contingency table to confusion/confusion__<model>__<split>.csv."""
        filename = f"confusion__{result.model}__{result.split}.csv"
        path = self.dirs.get_path("confusion", filename)
        result.table.to_csv(path)
        logger.debug(f"Saved confusion table: {path}")
        return str(path)

    def save_meta_importance(self, importance: dict[str, float]) -> str:
        """Save meta-learner importance per base model to core/meta_importance.csv."""
        path = self.dirs.get_path("core", "meta_importance.csv")
        df = pd.DataFrame(
            sorted(importance.items(), key=lambda kv: kv[1], reverse=True),
            columns=["base_model", "importance"],
        )
        df.to_csv(path, index=False)
        logger.info(f"Saved meta-learner importance: {path}")
        return str(path)

    # ========== Predictions ==========

    def save_scoring_predictions(self, predictions_df: pd.DataFrame) -> str:
        """Save scoring predictions to preds/scoring_predictions.csv."""
        path = self.dirs.get_path("preds", "scoring_predictions.csv")
        predictions_df.to_csv(path, index=False)
        logger.info(f"Saved scoring predictions: {path}")
        return str(path)

    def save_split_predictions(self, predictions_df: pd.DataFrame, split: str) -> str:
        """Save held-out predictions (every model) to preds/<split>_predictions.csv."""
        path = self.dirs.get_path("preds", f"{split}_predictions.csv")
        predictions_df.to_csv(path, index=False)
        logger.info(f"Saved {split} predictions: {path}")
        return str(path)

    # ========== Model artifacts ==========

    def save_pipeline_bundle(self, bundle: dict[str, Any]) -> str:
        """Save the pipeline bundle to models/pipeline_bundle.joblib."""
        path = self.dirs.get_path("models", "pipeline_bundle.joblib")
        try:
            save_bundle(bundle, path)
        except Exception as e:
            logger.error(f"Failed to save pipeline bundle: {e}")
            raise OSError(f"Bundle serialization failed: {e}") from e
        return str(path)

    # ========== Report ==========

    def write_report(
        self,
        results: list[ConfusionResult],
        cv_summary: pd.DataFrame,
        schema: ColumnSchema,
        split_summary: dict[str, Any],
        failures: dict[str, TrainingFailure],
        combiner_models: list[str],
        meta_model: str,
        meta_features: str,
        plots: list[str] | None = None,
        run_name: str | None = None,
    ) -> str:
        """
        Write report.md: data, split, base model and combiner accuracy summary.

        Returns:
            Path to the report
        """
        lines = [f"# Weight lifting exercise classification: {run_name or 'run'}", ""]

        lines += [
            "## Data",
            "",
            f"- Predictors retained: {schema.n_retained} "
            f"(dropped {len(schema.dropped)} with > {schema.na_threshold:.0%} missing)",
            f"- Records: train {split_summary.get('n_train', 0):,}, "
            f"validation {split_summary.get('n_validation', 0):,}, "
            f"test {split_summary.get('n_test', 0):,} (seed {split_summary.get('seed')})",
            "",
        ]

        classes = sorted({c for r in results for c in r.classes})
        if classes:
            lines += ["Classes:", ""]
            for label in classes:
                lines.append(f"- `{label}`: {CLASS_DESCRIPTIONS.get(label, label)}")
            lines.append("")

        lines += ["## Base models", ""]
        lines += [
            "| model | family | CV accuracy | CV SD | fit (s) |",
            "|---|---|---|---|---|",
        ]
        for row in cv_summary.itertuples(index=False):
            lines.append(
                f"| {row.model} | {MODEL_FAMILIES.get(row.model, row.model)} | "
                f"{row.cv_accuracy:.4f} | {row.cv_accuracy_sd:.4f} | {row.fit_seconds:.1f} |"
            )
        lines.append("")

        if failures:
            lines += ["**Failed base models** (excluded from the combiner):", ""]
            for failure in failures.values():
                lines.append(f"- `{failure.model_name}` ({failure.stage}): {failure.reason}")
            lines.append("")

        lines += [
            "## Stacking combiner",
            "",
            f"- Meta-learner: {MODEL_FAMILIES.get(meta_model, meta_model)}",
            f"- Meta-features: {meta_features}",
            f"- Base models: {', '.join(combiner_models)}",
            "",
        ]

        lines += ["## Held-out accuracy", ""]
        lines += [
            "| model | split | n | accuracy | CI | kappa | NIR | p (acc > NIR) |",
            "|---|---|---|---|---|---|---|---|",
        ]
        for r in results:
            lines.append(
                f"| {r.model} | {r.split} | {r.n:,} | {r.accuracy:.4f} | "
                f"[{r.ci_low:.4f}, {r.ci_high:.4f}] | {r.kappa:.4f} | {r.nir:.4f} | "
                f"{r.p_value_acc_gt_nir:.3g} |"
            )
        lines.append("")

        test_ensemble = [r for r in results if r.model == "ENSEMBLE" and r.split == "test"]
        if test_ensemble:
            r = test_ensemble[0]
            lines += [
                f"Expected out-of-sample error (combiner, test): {r.out_of_sample_error:.4f} "
                f"({r.ci_level:.0%} CI [{1 - r.ci_high:.4f}, {1 - r.ci_low:.4f}])",
                "",
            ]

        if plots:
            lines += ["## Figures", ""]
            root = Path(self.dirs.root)
            for plot in plots:
                rel = Path(plot).relative_to(root) if Path(plot).is_relative_to(root) else plot
                lines.append(f"![{Path(plot).stem}]({rel})")
            lines.append("")

        path = os.path.join(self.dirs.root, "report.md")
        with open(path, "w") as f:
            f.write("\n".join(lines))
        logger.info(f"Wrote report: {path}")
        return path
