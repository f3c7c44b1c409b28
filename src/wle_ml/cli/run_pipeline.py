"""
Full pipeline orchestration: load, clean, partition, train, stack, evaluate, score, report.

Stages are connected by immutable artifacts:

    Dataset -> Split -> ColumnSchema -> TrainedModel (parallel) -> [barrier]
        -> StackingCombiner -> ConfusionResult -> outputs

This module provides a single entry point (``run_pipeline``) used by the
``wle run`` command and by the end-to-end tests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from wle_ml.config.loader import format_config_summary, load_pipeline_config
from wle_ml.config.schema import PipelineConfig
from wle_ml.config.validation import validate_cv_folds, validate_pipeline_config
from wle_ml.data.cleaning import ColumnSchema, apply_column_schema, build_dataset, fit_column_schema
from wle_ml.data.dataset import Dataset
from wle_ml.data.io import read_scoring_file, read_training_file
from wle_ml.data.schema import meta_feature_name
from wle_ml.data.splits import Split, class_proportion_table, partition, summarize_split
from wle_ml.errors import ConfigurationError
from wle_ml.evaluation.confusion import (
    ENSEMBLE_NAME,
    ConfusionResult,
    evaluate_model,
    evaluation_table,
)
from wle_ml.evaluation.predict import build_bundle, predict_scoring
from wle_ml.evaluation.reports import OutputDirectories, ResultsWriter
from wle_ml.models.stacking import StackingCombiner
from wle_ml.models.training import TrainingOutcome, train_base_models
from wle_ml.plotting.evaluation import (
    plot_confusion_heatmap,
    plot_meta_importance,
    plot_model_comparison,
)
from wle_ml.plotting.exploration import (
    plot_class_distribution,
    plot_feature_boxplots,
    plot_missingness,
)
from wle_ml.utils.logging import auto_log_path, log_section, setup_logger
from wle_ml.utils.serialization import library_versions

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Artifacts of one pipeline run."""

    config: PipelineConfig
    split: Split
    schema: ColumnSchema
    training: TrainingOutcome
    combiner: StackingCombiner
    results: list[ConfusionResult] = field(default_factory=list)
    scoring_predictions: pd.DataFrame | None = None
    output_dirs: OutputDirectories | None = None

    @property
    def evaluation(self) -> pd.DataFrame:
        """One row per (model, split) with accuracy, CI, kappa and NIR."""
        return evaluation_table(self.results)

    def result_for(self, model: str, split: str) -> ConfusionResult:
        for r in self.results:
            if r.model == model and r.split == split:
                return r
        raise KeyError(f"No evaluation result for model '{model}' on '{split}'")


# ============================================================================
# Stage helpers
# ============================================================================


def _apply_schema_to_split(split: Split, schema: ColumnSchema) -> Split:
    return Split(
        train=apply_column_schema(split.train, schema),
        validation=apply_column_schema(split.validation, schema),
        test=apply_column_schema(split.test, schema),
        seed=split.seed,
    )


def _safe_plot(func, *args, **kwargs) -> Path | None:
    """Plots are best-effort; a failing figure is logged and skipped."""
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Plot {func.__name__} failed: {type(e).__name__}: {e}")
        return None


def _split_predictions(
    dataset: Dataset,
    training: TrainingOutcome,
    combiner: StackingCombiner,
    outcome_col: str,
) -> pd.DataFrame:
    """Held-out predictions of every base model and the combiner."""
    meta = combiner.meta_features_for(training.models, dataset)
    frame = pd.DataFrame(
        {"record": dataset.index, outcome_col: dataset.require_labels().to_numpy()}
    )
    for name in combiner.base_model_names_:
        frame[meta_feature_name(name)] = meta[meta_feature_name(name)].to_numpy()
    frame[meta_feature_name(ENSEMBLE_NAME)] = combiner.predict_from_meta(meta)
    return frame


def _run_metadata(
    config: PipelineConfig,
    training: TrainingOutcome,
    combiner: StackingCombiner,
    started: datetime,
) -> dict[str, Any]:
    return {
        "config": config.model_dump(mode="json"),
        "run": {
            "run_name": config.run_name,
            "started": started.isoformat(timespec="seconds"),
            "finished": datetime.now().isoformat(timespec="seconds"),
            "split_seed": config.split_seed,
            "configured_base_models": list(config.models.base_models),
            "combiner_base_models": list(combiner.base_model_names_),
            "failed_base_models": sorted(training.failures),
        },
        "versions": library_versions(),
    }


# ============================================================================
# Pipeline
# ============================================================================


def run_pipeline(config: PipelineConfig, write_outputs: bool = True) -> PipelineResult:
    """
    Run the full pipeline for one configuration.

    Args:
        config: Validated PipelineConfig
        write_outputs: Write metrics, predictions, bundle, plots and report
            under ``config.output.outdir``

    Returns:
        PipelineResult

    Raises:
        ConfigurationError: If no training file is configured
        InvalidPartition: If the split proportions or data cannot be partitioned
        DataShapeMismatch: If validation/test/scoring data lacks a retained column
        TrainingFailure: If no base model could be trained
    """
    started = datetime.now()
    if config.data.train_file is None:
        raise ConfigurationError("data.train_file is not set")

    validate_pipeline_config(config)

    out_dirs = OutputDirectories.create(config.output.outdir) if write_outputs else None
    writer = ResultsWriter(out_dirs) if out_dirs is not None else None
    plots: list[str] = []
    plot_dpi = config.output.plot_dpi
    plot_ext = config.output.plot_format

    def plot_path(name: str) -> Path:
        return Path(out_dirs.plots) / f"{name}.{plot_ext}"

    want_plots = write_outputs and config.output.save_plots

    # ------------------------------------------------------------------
    log_section(logger, "Stage 1: Loading and cleaning data")
    raw = read_training_file(config.data.train_file, config.data)
    source = build_dataset(raw, config.data, name="source", require_labels=True)

    # ------------------------------------------------------------------
    log_section(logger, "Stage 2: Partitioning")
    split = partition(
        source,
        p_outer=config.splits.p_outer,
        p_inner=config.splits.p_inner,
        seed=config.split_seed,
    )
    proportions = class_proportion_table(split, source=source)
    logger.debug(f"Class proportions by split:\n{proportions.round(3)}")

    schema = fit_column_schema(split.train, config.cleaning.na_threshold)
    split = _apply_schema_to_split(split, schema)
    validate_cv_folds(config, {str(k): int(v) for k, v in split.train.class_counts().items()})

    if want_plots:
        for path in (
            _safe_plot(
                plot_class_distribution, proportions, plot_path("class_distribution"), dpi=plot_dpi
            ),
            _safe_plot(plot_missingness, schema, plot_path("missingness"), dpi=plot_dpi),
            _safe_plot(
                plot_feature_boxplots,
                split.train,
                plot_path("feature_boxplots"),
                n_top=config.output.explore_top_n,
                dpi=plot_dpi,
            ),
        ):
            if path is not None:
                plots.append(str(path))

    # ------------------------------------------------------------------
    log_section(logger, "Stage 3: Training base models")
    training = train_base_models(list(config.models.base_models), split.train, config)

    if training.failures:
        logger.warning("!" * 80)
        logger.warning(
            f"Stacking combiner will be built from {len(training.models)} of "
            f"{len(config.models.base_models)} configured base models; "
            f"failed: {sorted(training.failures)}"
        )
        logger.warning("!" * 80)

    # ------------------------------------------------------------------
    log_section(logger, "Stage 4: Stacking combiner")
    combiner = StackingCombiner(
        base_model_names=training.model_names,
        meta_model=config.ensemble.meta_model,
        meta_features=config.ensemble.meta_features,
        meta_cv_folds=config.ensemble.meta_cv_folds,
        models_config=config.models,
        random_state=config.random_state,
    )
    combiner.fit(training.models, split.train)
    importance = combiner.meta_feature_importance()
    if importance:
        ranked = ", ".join(
            f"{k}={v:.3f}" for k, v in sorted(importance.items(), key=lambda kv: -kv[1])
        )
        logger.info(f"Meta-learner importance: {ranked}")

    # ------------------------------------------------------------------
    log_section(logger, "Stage 5: Evaluation")
    results: list[ConfusionResult] = []
    for dataset in (split.validation, split.test):
        for model in training.models.values():
            results.append(evaluate_model(model, dataset, ci_level=config.evaluation.ci_level))
        results.append(
            evaluate_model(
                combiner, dataset, models=training.models, ci_level=config.evaluation.ci_level
            )
        )
    for r in results:
        logger.info(
            f"{r.model:>10s} on {r.split:<10s}: accuracy {r.accuracy:.4f} "
            f"[{r.ci_low:.4f}, {r.ci_high:.4f}], kappa {r.kappa:.4f}"
        )

    # ------------------------------------------------------------------
    scoring_predictions = None
    if config.data.scoring_file is not None:
        log_section(logger, "Stage 6: Scoring")
        scoring_raw = read_scoring_file(config.data.scoring_file, config.data)
        scoring = build_dataset(scoring_raw, config.data, name="scoring")
        scoring_predictions = predict_scoring(
            scoring, schema, training.models, combiner, id_col=config.data.id_col
        )
    else:
        logger.info("No scoring file configured; skipping scoring stage")

    result = PipelineResult(
        config=config,
        split=split,
        schema=schema,
        training=training,
        combiner=combiner,
        results=results,
        scoring_predictions=scoring_predictions,
        output_dirs=out_dirs,
    )

    if writer is None:
        return result

    # ------------------------------------------------------------------
    log_section(logger, "Stage 7: Writing outputs")
    writer.save_column_schema(schema)
    writer.save_split_summary(summarize_split(split), proportions)
    writer.save_training_failures(
        training.failures, training.model_names, list(config.models.base_models)
    )
    writer.save_cv_summary(training.cv_summary())
    writer.save_metrics_summary(results)
    writer.save_per_class_metrics(results)
    for r in results:
        writer.save_confusion_table(r)
    if importance:
        writer.save_meta_importance(importance)

    if config.output.save_split_predictions:
        for dataset in (split.validation, split.test):
            writer.save_split_predictions(
                _split_predictions(dataset, training, combiner, config.data.outcome_col),
                dataset.name,
            )
    if scoring_predictions is not None:
        writer.save_scoring_predictions(scoring_predictions)

    if config.output.save_bundle:
        bundle = build_bundle(
            config.data,
            schema,
            training.models,
            combiner,
            metadata={"run_name": config.run_name, "failed_base_models": sorted(training.failures)},
        )
        writer.save_pipeline_bundle(bundle)

    if want_plots:
        for r in results:
            if r.model == ENSEMBLE_NAME:
                path = _safe_plot(
                    plot_confusion_heatmap,
                    r,
                    plot_path(f"confusion__{r.model}__{r.split}"),
                    dpi=plot_dpi,
                )
                if path is not None:
                    plots.append(str(path))
        for path in (
            _safe_plot(
                plot_model_comparison, results, plot_path("model_comparison_test"), dpi=plot_dpi
            ),
            _safe_plot(
                plot_meta_importance, importance, plot_path("meta_importance"), dpi=plot_dpi
            ),
        ):
            if path is not None:
                plots.append(str(path))

    writer.save_run_settings(_run_metadata(config, training, combiner, started))
    writer.write_report(
        results=results,
        cv_summary=training.cv_summary(),
        schema=schema,
        split_summary=summarize_split(split),
        failures=training.failures,
        combiner_models=list(combiner.base_model_names_),
        meta_model=config.ensemble.meta_model,
        meta_features=config.ensemble.meta_features,
        plots=plots,
        run_name=config.run_name,
    )

    logger.info(f"All outputs written to: {out_dirs.root}")
    return result


def run_pipeline_from_cli(
    config_file: str | Path | None,
    overrides: list[str] | None = None,
    verbose: int = 0,
    log_level: int | None = None,
) -> PipelineResult:
    """
    Load configuration, set up logging and run the pipeline.

    Args:
        config_file: YAML configuration file (optional)
        overrides: "key=value" overrides in dot notation
        verbose: Verbosity level (0=INFO, 1+=DEBUG)
        log_level: Logging level constant; takes precedence over ``verbose``
    """
    if log_level is None:
        log_level = logging.DEBUG if verbose else logging.INFO

    config = load_pipeline_config(config_file, overrides)
    run_name = config.run_name or datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = auto_log_path("run", config.output.outdir, run_name)
    setup_logger("wle_ml", level=log_level, log_file=log_file)

    logger.info(f"Logging to file: {log_file}")
    logger.debug(format_config_summary(config))
    return run_pipeline(config)
