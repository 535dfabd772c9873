"""Configuration file loading.

Settings live in a ``ganttcalc.yaml`` file, with all scheduling options
under a ``scheduler`` section::

    scheduler:
      minutes_per_working_day: 480
      fallback_start_date: 2024-01-01
      skip_weekends: true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from . import context
from .exceptions import ConfigError
from .scheduler import SchedulingConfig

CONFIG_FILENAME = "ganttcalc.yaml"


class GanttCalcConfig(BaseModel):
    """Top-level configuration."""

    scheduler: SchedulingConfig = Field(default_factory=SchedulingConfig)


def load_config(config_path: Path | str) -> GanttCalcConfig:
    """Load configuration from a YAML file.

    An empty file yields the defaults.

    Raises:
        ConfigError: If the file is missing, is not valid YAML or has
            invalid settings
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config {config_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config {config_path} is not valid UTF-8") from e

    if data is None:
        return GanttCalcConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a mapping at the root level")

    try:
        return GanttCalcConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e


def discover_config(
    project_path: Path | str | None = None,
    config_path: Path | None = None,
) -> GanttCalcConfig:
    """Find and load the configuration for a project file.

    Search order:
    1. Explicit config_path argument
    2. Global context (set via CLI --config)
    3. Project file directory / ganttcalc.yaml
    4. Current directory / ganttcalc.yaml

    Returns the defaults when no file is found.
    """
    # 1. Explicit argument
    if config_path is not None:
        return load_config(config_path)

    # 2. Global context
    ctx_config = context.get_config_path()
    if ctx_config is not None:
        return load_config(ctx_config)

    # 3. Project directory
    if project_path is not None:
        dir_config = Path(project_path).parent / CONFIG_FILENAME
        if dir_config.exists():
            return load_config(dir_config)

    # 4. Current directory
    cwd_config = Path(CONFIG_FILENAME)
    if cwd_config.exists():
        return load_config(cwd_config)

    return GanttCalcConfig()
