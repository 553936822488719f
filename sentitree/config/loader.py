# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
YAML config files for sentitree.

A config file has up to three top-level sections, `global`, `model` and
`train`. The file is parsed with yaml.safe_load and the resulting mapping
is validated in one go; any problem is raised before a treebank is opened.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sentitree.config.exceptions import ConfigLoadError, ConfigValidationError
from sentitree.config.schema import SentitreeConfig


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Parse config_path into a mapping.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> SentitreeConfig:
    """
    Load config_path as a frozen SentitreeConfig.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types, unknown keys).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = SentitreeConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config
