"""Command-line interface and pipeline orchestration."""
