"""
Configuration loading and merging logic.

Supports:
1. Loading from YAML files (with ``_base`` inheritance)
2. CLI argument overrides (dot-notation: e.g., cv.folds=10)
3. Validation and resolution
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from wle_ml.config.defaults import (
    DEFAULT_CLEANING_CONFIG,
    DEFAULT_CV_CONFIG,
    DEFAULT_DATA_CONFIG,
    DEFAULT_ENSEMBLE_CONFIG,
    DEFAULT_EVALUATION_CONFIG,
    DEFAULT_OUTPUT_CONFIG,
    DEFAULT_SPLITS_CONFIG,
    DEFAULT_STRICTNESS_CONFIG,
)
from wle_ml.config.schema import PipelineConfig


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* into *base* (overlay wins on leaf conflicts).

    Returns a new dict; neither input is mutated.
    """
    merged = base.copy()
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml(file_path: str | Path) -> dict[str, Any]:
    """Load configuration from YAML file.

    Supports a ``_base`` key: if present, the referenced YAML file is loaded
    first and the current file's values are deep-merged on top.  The ``_base``
    path is resolved relative to the directory containing *file_path*.
    Bases can be chained (a base may itself declare ``_base``).
    """
    file_path = Path(file_path).resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path) as f:
        config_dict = yaml.safe_load(f) or {}

    base_ref = config_dict.pop("_base", None)
    if base_ref is not None:
        base_path = (file_path.parent / base_ref).resolve()
        base_dict = load_yaml(base_path)
        config_dict = _deep_merge(base_dict, config_dict)

    return config_dict


# Keys holding file system paths, resolved relative to the config file
PATH_LIKE_KEYS = ("train_file", "scoring_file", "outdir")


def resolve_paths_relative_to_config(
    config_dict: dict[str, Any], config_file: Path
) -> dict[str, Any]:
    """
    Resolve relative paths in config dict relative to config file directory.

    Only keys listed in ``PATH_LIKE_KEYS`` (at the top level or one section
    down) are touched; absolute paths are left unchanged.

    Args:
        config_dict: Configuration dictionary
        config_file: Path to the config file

    Returns:
        Config dict with relative paths resolved
    """
    config_dir = Path(config_file).resolve().parent

    def resolve_value(value: Any) -> Any:
        if isinstance(value, str) and value:
            path = Path(value)
            if not path.is_absolute():
                return str(config_dir / path)
        return value

    resolved = {}
    for key, val in config_dict.items():
        if key in PATH_LIKE_KEYS:
            resolved[key] = resolve_value(val)
        elif isinstance(val, dict):
            resolved[key] = {
                nested_key: resolve_value(nested_val) if nested_key in PATH_LIKE_KEYS else nested_val
                for nested_key, nested_val in val.items()
            }
        else:
            resolved[key] = val
    return resolved


def apply_overrides(config_dict: dict[str, Any], overrides: list[str]) -> dict[str, Any]:
    """
    Apply CLI overrides to config dictionary.

    Supports dot-notation for nested keys:
        cv.folds=10 -> config_dict['cv']['folds'] = 10
        models.base_models=rf,lda -> config_dict['models']['base_models'] = ['rf', 'lda']

    Args:
        config_dict: Base configuration dictionary
        overrides: List of "key=value" or "nested.key=value" strings

    Returns:
        Updated config dictionary
    """
    # Keys that should always be lists
    LIST_KEYS = {
        "base_models",
        "sensor_prefixes",
        "na_tokens",
    }

    # Keys that should always be strings (not parsed as int/float)
    STRING_KEYS = {
        "run_name",
        "train_file",
        "scoring_file",
        "outdir",
    }

    for override in overrides:
        if "=" not in override:
            raise ValueError(f"Invalid override format: {override}. Expected 'key=value'")

        key_path, value_str = override.split("=", 1)
        keys = key_path.split(".")

        target = config_dict
        for key in keys[:-1]:
            if key not in target or not isinstance(target[key], dict):
                target[key] = {}
            target = target[key]

        final_key = keys[-1]
        value = _parse_value(
            value_str,
            force_list=final_key in LIST_KEYS,
            force_string=final_key in STRING_KEYS,
        )
        target[final_key] = value

    return config_dict


def _parse_scalar(value_str: str) -> Any:
    try:
        return int(value_str)
    except ValueError:
        pass
    try:
        return float(value_str)
    except ValueError:
        pass
    return value_str


def _parse_value(value_str: str, force_list: bool = False, force_string: bool = False) -> Any:
    """
    Parse string value to appropriate Python type.

    Args:
        value_str: String to parse
        force_list: If True, always return a list (for comma-separated or single values)
        force_string: If True, always return a string (skip int/float parsing)
    """
    if force_string:
        return value_str

    if force_list:
        return [_parse_scalar(v.strip()) for v in value_str.split(",") if v.strip()]

    lowered = value_str.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered in ("none", "null"):
        return None

    if "," in value_str:
        return [_parse_scalar(v.strip()) for v in value_str.split(",")]

    return _parse_scalar(value_str)


def default_config_dict() -> dict[str, Any]:
    """Nested dict of defaults, before any file or override is applied."""
    return {
        "data": DEFAULT_DATA_CONFIG.copy(),
        "cleaning": DEFAULT_CLEANING_CONFIG.copy(),
        "splits": DEFAULT_SPLITS_CONFIG.copy(),
        "cv": DEFAULT_CV_CONFIG.copy(),
        "ensemble": DEFAULT_ENSEMBLE_CONFIG.copy(),
        "evaluation": DEFAULT_EVALUATION_CONFIG.copy(),
        "output": DEFAULT_OUTPUT_CONFIG.copy(),
        "strictness": DEFAULT_STRICTNESS_CONFIG.copy(),
    }


def load_pipeline_config(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from file and CLI overrides.

    Args:
        config_file: Path to YAML config file (optional)
        overrides: List of CLI overrides in "key=value" format (optional)

    Returns:
        Validated PipelineConfig instance

    Raises:
        FileNotFoundError: If config_file does not exist
        ValueError: If the merged configuration fails validation
    """
    config_dict = default_config_dict()

    if config_file is not None:
        config_file_path = Path(config_file)
        file_config = load_yaml(config_file_path)
        file_config = resolve_paths_relative_to_config(file_config, config_file_path)
        config_dict = _deep_merge(config_dict, file_config)

    if overrides:
        config_dict = apply_overrides(config_dict, overrides)

    try:
        return PipelineConfig(**config_dict)
    except ValidationError as e:
        raise ValueError(f"Invalid pipeline configuration:\n{e}") from e


def save_config(config: PipelineConfig, output_path: str | Path):
    """Save resolved configuration to YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="json")

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def format_config_summary(config: PipelineConfig) -> str:
    """Human-readable configuration summary."""
    lines = ["=" * 80, "Configuration Summary", "=" * 80]

    def format_dict(d, indent=0):
        result = []
        for key, value in d.items():
            if isinstance(value, dict):
                result.append(f"{'  ' * indent}{key}:")
                result.extend(format_dict(value, indent + 1))
            else:
                result.append(f"{'  ' * indent}{key}: {value}")
        return result

    lines.extend(format_dict(config.model_dump(mode="json")))
    lines.append("=" * 80)
    return "\n".join(lines)
