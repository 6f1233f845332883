"""Loading config.yaml into ConfigData.

The file holds everything under a top-level ``config:`` key. ``${VAR}``
placeholders are expanded from the environment first; see config_utils
for the placeholder forms and the per-environment override variables.
"""

import os
from pathlib import Path
from typing import Any, Literal, overload

import yaml
from loguru import logger
from pydantic_core import ValidationError

from src.app.runtime.config.config_data import ConfigData
from src.app.runtime.config.config_utils import (
    apply_environment_overrides,
    substitute_env_vars,
)

CONFIG_PATH = Path(os.getenv("RELEASE_SERVICE_CONFIG", "config.yaml"))


def _expand(content: str) -> str:
    environment = os.getenv("APP_ENVIRONMENT", "development")
    overridden = apply_environment_overrides(environment)
    logger.info(
        f"Loading configuration for {environment} "
        f"({len(overridden)} environment-specific overrides)"
    )
    return substitute_env_vars(content)


def _parse(content: str) -> Any:
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e


@overload
def load_config(file_path: Path = ..., *, processed: Literal[False]) -> dict[str, Any]: ...


@overload
def load_config(file_path: Path = ..., processed: Literal[True] = ...) -> ConfigData: ...


def load_config(
    file_path: Path = CONFIG_PATH, processed: bool = True
) -> ConfigData | dict[str, Any]:
    """Read a config file.

    Args:
        file_path: YAML file to read. Defaults to ``config.yaml`` or the path
            in ``RELEASE_SERVICE_CONFIG``.
        processed: When False, return the raw mapping with placeholders left
            as written and no validation.

    Raises:
        FileNotFoundError: The file does not exist.
        ValueError: A required variable is unset, the YAML is malformed or has
            no ``config`` key, or the values fail validation.
    """
    content = Path(file_path).read_text()
    if not processed:
        return _parse(content)

    document = _parse(_expand(content))
    if not document:
        raise ValueError("Failed to parse YAML")
    if "config" not in document:
        raise ValueError("Invalid YAML structure: missing 'config' key")

    try:
        return ConfigData(**(document["config"] or {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
