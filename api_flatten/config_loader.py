"""Config Loader - Reads the runtime configuration used by imports and the CLI.

The file is a YAML mapping validated against FlattenConfig. String values may
embed ${NAME} references to environment variables; a reference to an unset
variable fails the load.

Example:
    max_depth: 10
    default_server_url: ${API_BASE_URL}
    log_level: info
    validate_examples: true
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from api_flatten.errors import ConfigError
from api_flatten.models import FlattenConfig

logger = logging.getLogger(__name__)

ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


def load_config(config_path: Path) -> FlattenConfig:
    """Load a FlattenConfig from YAML. An empty file yields the defaults.

    Raises:
        ConfigError: If the file is missing, not YAML, not a mapping,
            references an unset variable, or holds invalid values.
    """
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if data is None:
        logger.debug("Config file %s is empty, using defaults", config_path)
        return FlattenConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    try:
        return FlattenConfig.model_validate(expand_env(data))
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def expand_env(value: Any) -> Any:
    """Replace ${NAME} references in every string nested inside value."""
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if not isinstance(value, str):
        return value
    return ENV_REFERENCE.sub(_env_value, value)


def _env_value(match: re.Match[str]) -> str:
    name = match.group(1)
    if name not in os.environ:
        raise ConfigError(f"Environment variable '{name}' is not set")
    return os.environ[name]
