"""
Configuration validation and safety checks.

Issues that make a run statistically questionable (but not impossible) are
reported according to the configured strictness level.
"""

import logging
import warnings

from wle_ml.config.schema import PipelineConfig

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails in strict mode."""


class ConfigValidationWarning(UserWarning):
    """Warning for potential configuration issues."""


def validate_pipeline_config(config: PipelineConfig, strictness: str | None = None) -> list[str]:
    """
    Validate a pipeline configuration for questionable settings.

    Args:
        config: PipelineConfig instance
        strictness: Override for ``config.strictness.level`` ("off", "warn", "error")

    Returns:
        List of issue descriptions (empty if none)
    """
    level = strictness or config.strictness.level
    issues = []

    # The default mode: logged at any strictness, never escalated to an error
    if config.ensemble.meta_features == "in_sample":
        logger.warning(
            "ensemble.meta_features='in_sample' trains the combiner on base model predictions "
            "for the same records the base models were fitted on; combiner accuracy on the "
            "training set will be optimistic. Use 'oof' for out-of-fold meta-features."
        )

    if len(config.models.base_models) < 2:
        issues.append(
            f"Only one base model configured ({config.models.base_models}); "
            "stacking needs several models with uncorrelated errors."
        )

    if config.cv.folds > 50:
        issues.append(f"cv.folds={config.cv.folds} is unusually high; training will be slow.")

    _handle_issues(issues, level, "Pipeline configuration")
    return issues


def _handle_issues(issues: list[str], strictness: str, context: str):
    """Report issues according to strictness level."""
    if not issues or strictness == "off":
        return

    message = f"{context} issues:\n" + "\n".join(f"  - {issue}" for issue in issues)

    if strictness == "error":
        raise ConfigValidationError(message)

    warnings.warn(message, ConfigValidationWarning, stacklevel=3)
    logger.warning(message)


def validate_cv_folds(
    config: PipelineConfig, class_counts: dict[str, int], strictness: str | None = None
) -> list[str]:
    """
    Check ``cv.folds`` against the class counts of the training split.

    StratifiedKFold needs at least ``folds`` records per class; with fewer,
    some folds lack a class entirely.

    Args:
        config: PipelineConfig instance
        class_counts: Records per class in the training split
        strictness: Override for ``config.strictness.level``

    Returns:
        List of issue descriptions (empty if none)
    """
    level = strictness or config.strictness.level
    issues = []
    if class_counts:
        smallest_class, smallest = min(class_counts.items(), key=lambda kv: kv[1])
        if config.cv.folds > smallest:
            issues.append(
                f"cv.folds={config.cv.folds} exceeds the {smallest} training records of class "
                f"'{smallest_class}'; some folds will not contain every class."
            )
    _handle_issues(issues, level, "Cross-validation")
    return issues
