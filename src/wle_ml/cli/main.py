"""
Main CLI entry point for the WLE-ML pipeline.

Provides subcommands:
  - wle run: Load, partition, train, stack, evaluate, score and report
  - wle predict: Score a new file with a saved pipeline bundle
  - wle show-config: Print the resolved configuration
"""

import logging
from pathlib import Path

import click

from wle_ml import __version__
from wle_ml.config.validation import ConfigValidationError
from wle_ml.errors import WLEError


def _verbosity_to_level(verbose: int) -> int:
    return logging.DEBUG if verbose > 0 else logging.INFO


@click.group()
@click.version_option(version=__version__, prog_name="wle")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v for DEBUG logging)",
)
@click.pass_context
def cli(ctx, verbose):
    """
    WLE-ML: stacked classifiers for weight lifting exercise quality

    Predicts how a dumbbell curl was performed (classes A-E) from on-body
    sensor recordings, by stacking heterogeneous base classifiers.
    """
    from wle_ml.utils.random import apply_seed_global

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    seed_applied = apply_seed_global()
    if seed_applied is not None:
        ctx.obj["seed_global"] = seed_applied


@cli.command("run")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to YAML configuration file",
)
@click.option(
    "--override",
    multiple=True,
    help="Override config values (format: key=value or nested.key=value)",
)
@click.pass_context
def run(ctx, config, override):
    """Run the full pipeline: train, stack, evaluate and score."""
    from wle_ml.cli.run_pipeline import run_pipeline_from_cli

    try:
        result = run_pipeline_from_cli(
            config_file=config,
            overrides=list(override),
            log_level=_verbosity_to_level(ctx.obj.get("verbose", 0)),
        )
    except (WLEError, ConfigValidationError, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    ensemble_test = [r for r in result.results if r.model == "ENSEMBLE" and r.split == "test"]
    if ensemble_test:
        r = ensemble_test[0]
        click.echo(
            f"Combiner test accuracy: {r.accuracy:.4f} [{r.ci_low:.4f}, {r.ci_high:.4f}] "
            f"(base models: {', '.join(result.combiner.base_model_names_)})"
        )
    if result.output_dirs is not None:
        click.echo(f"Outputs: {result.output_dirs.root}")


@cli.command("predict")
@click.option(
    "--bundle",
    "-b",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Path to pipeline_bundle.joblib written by 'wle run'",
)
@click.option(
    "--infile",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Scoring file (CSV or Parquet) with the id column and sensor columns",
)
@click.option(
    "--out",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output CSV (default: print to stdout)",
)
@click.option(
    "--with-base-predictions",
    is_flag=True,
    help="Also output each base model's prediction",
)
@click.pass_context
def predict(ctx, bundle, infile, out, with_base_predictions):
    """Score a new file with a saved pipeline bundle."""
    from wle_ml.evaluation.predict import predict_with_bundle
    from wle_ml.utils.logging import setup_logger

    level = _verbosity_to_level(ctx.obj.get("verbose", 0))
    if out is None and level > logging.DEBUG:
        # Predictions go to stdout; keep INFO log lines out of the CSV
        level = logging.WARNING
    setup_logger("wle_ml", level=level)

    try:
        predictions = predict_with_bundle(
            bundle, infile, include_base_predictions=with_base_predictions
        )
    except (WLEError, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    if out is None:
        click.echo(predictions.to_csv(index=False), nl=False)
    else:
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        predictions.to_csv(out, index=False)
        click.echo(f"Wrote {len(predictions):,} predictions to: {out}")


@cli.command("show-config")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to YAML configuration file",
)
@click.option(
    "--override",
    multiple=True,
    help="Override config values (format: key=value or nested.key=value)",
)
@click.option(
    "--as-yaml",
    is_flag=True,
    help="Print the resolved configuration as YAML instead of a summary",
)
def show_config(config, override, as_yaml):
    """Print the resolved configuration (defaults + file + overrides)."""
    import yaml

    from wle_ml.config.loader import format_config_summary, load_pipeline_config

    try:
        resolved = load_pipeline_config(config, list(override))
    except (ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    if as_yaml:
        click.echo(yaml.safe_dump(resolved.model_dump(mode="json"), sort_keys=False))
    else:
        click.echo(format_config_summary(resolved))


def main():
    """Entry point for console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
