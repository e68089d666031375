# src/agentstate/config/loader.py
"""
Loading of :class:`StorageConfig` from TOML files, environment variables and
runtime overrides.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..exceptions import ConfigError
from .models import StorageConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "AGENTSTATE_"


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> StorageConfig:
    """
    Load storage configuration.

    Configuration is loaded and merged in order:
        1. Default values (from Pydantic models)
        2. TOML config file (if provided)
        3. Config dictionary (if provided)
        4. Environment variables (AGENTSTATE_<SECTION>__<KEY>)
        5. Runtime overrides (if provided)

    Args:
        config_path: Optional path to a TOML config file.
        config_dict: Optional config dictionary.
        overrides: Optional runtime overrides.

    Returns:
        A validated StorageConfig.

    Raises:
        ConfigError: If the file cannot be read or parsed, or validation fails.
    """
    merged_config: Dict[str, Any] = {}

    if config_path is not None:
        try:
            with open(config_path, "rb") as f:
                merged_config = _deep_merge(merged_config, tomllib.load(f))
            logger.debug(f"Loaded storage config from {config_path}")
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {config_path}") from e
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Failed to load config from {config_path}: {e}")
            raise ConfigError(f"Failed to load config from {config_path}: {e}") from e

    if config_dict is not None:
        merged_config = _deep_merge(merged_config, config_dict)

    merged_config = _apply_env_overrides(merged_config)

    if overrides is not None:
        merged_config = _deep_merge(merged_config, overrides)

    try:
        return StorageConfig(**merged_config)
    except ValidationError as e:
        logger.error(f"Invalid storage configuration: {e}")
        raise ConfigError(f"Invalid storage configuration: {e}") from e


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides.

    Environment variables follow the pattern:
        AGENTSTATE_<SECTION>__<KEY>=value

    Examples:
        AGENTSTATE_SESSION__PATH=/var/lib/agent/sessions
        AGENTSTATE_SESSION__CACHE_SIZE=50
        AGENTSTATE_MEMORY__TYPE=chromadb
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        path_parts = key[len(ENV_PREFIX):].lower().split("__")
        if len(path_parts) < 2:
            continue

        current = config
        for part in path_parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[path_parts[-1]] = _convert_env_value(value)

    return config


def _convert_env_value(value: str) -> Any:
    """Convert environment variable string to bool, int, float or str."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
