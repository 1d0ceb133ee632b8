"""Configuration module for bitcoin-bench."""

from pathlib import Path
from typing import Any

import yaml

from .settings import (
    DEFAULT_DATA_DIR,
    DEFAULT_DB_PATH,
    DEFAULT_REPO_PATH,
    DEFAULT_REVISION,
    DEFAULT_SCHEDULE,
    LOG_PATH,
    MAX_LOG_SIZE_BYTES,
    MAX_ROTATED_LOGS,
    RESULTS_FILENAME,
    BenchConfig,
    normalize_data_dir,
)

# Load recipe.yaml
_RECIPE_PATH = Path(__file__).parent / "recipe.yaml"
with _RECIPE_PATH.open(encoding="utf-8") as f:
    DRIVER_RECIPE: dict[str, Any] = yaml.safe_load(f)

__all__ = [
    # Settings
    "DEFAULT_DATA_DIR",
    "DEFAULT_DB_PATH",
    "DEFAULT_REPO_PATH",
    "DEFAULT_REVISION",
    "DEFAULT_SCHEDULE",
    "LOG_PATH",
    "MAX_LOG_SIZE_BYTES",
    "MAX_ROTATED_LOGS",
    "RESULTS_FILENAME",
    "BenchConfig",
    "normalize_data_dir",
    # Recipe
    "DRIVER_RECIPE",
]
