"""
Consistent logging setup for the WLE-ML pipeline.
"""

import logging
import sys
from pathlib import Path


def setup_logger(
    name: str = "wle_ml",
    level: int = logging.INFO,
    log_file: Path | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """
    Setup a logger with console and optional file output.

    USAGE PATTERN:
        - CLI entrypoints: Call this function to create a logger with handlers
        - Library modules: Use logging.getLogger(__name__) directly (no handlers)
        - Child loggers automatically propagate to parent logger with handlers

    Args:
        name: Logger name (typically "wle_ml" for main CLI)
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        format_string: Custom format string (default: timestamp + level + message)

    Returns:
        Configured logger instance with handlers attached
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    # Handlers live on this logger only; library loggers propagate up to it.
    logger.propagate = False

    if format_string is None:
        format_string = "[%(asctime)s] %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def auto_log_path(command: str, outdir: Path | str = "results", run_name: str | None = None) -> Path:
    """Build an automatic log file path for a CLI command.

    Logs are written next to the run outputs:
        <outdir>/logs/{command}_{run_name}.log

    Parent directories are NOT created here; ``setup_logger`` handles that.
    """
    rid = run_name or "run"
    return Path(outdir).resolve() / "logs" / f"{command}_{rid}.log"


def log_section(logger: logging.Logger, title: str, width: int = 80, char: str = "="):
    """Log a section header."""
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)
