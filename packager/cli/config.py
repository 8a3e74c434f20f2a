#!/usr/bin/env python3
"""
Configuration loader for the Streaming Template Packager

Loads the YAML configuration, substitutes environment variables and turns
the streaming section into StreamingOptions.
"""

import copy
import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
import re

from ..core.options import StreamingOptions
from ..errors import ConfigurationError
from .config_validator import ConfigurationValidator, validate_config_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'streaming': {
        'max_memory_mb': 100,
        'chunk_size_kb': 1024,
        'memory_monitoring': True,
        'temp_directory': '.temp/streaming'
    },
    'archive': {
        'compression_level': 6
    },
    'logging': {
        'level': 'INFO',
        'file': None
    }
}


ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')


def _env_value(match: re.Match) -> str:
    var_name = match.group(1)
    env_value = os.getenv(var_name)
    if env_value is None:
        logger.warning(f"Environment variable {var_name} not set, substituting empty string")
        return ''
    return env_value


def _coerce_scalar(raw: str) -> Any:
    """Read a whole-value substitution as a YAML scalar, so numbers and booleans keep their type."""
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    if isinstance(value, (bool, int, float, str)):
        return value
    return raw


def substitute_env_vars(value: Any) -> Any:
    """
    Replace ${VAR_NAME} references in string values, at any depth.

    A value that is exactly one reference takes the variable's YAML scalar
    type, so `max_memory_mb: ${MEMORY_MB}` yields an integer. References
    embedded in longer strings are substituted as text. Unset variables
    become empty strings.
    """
    if isinstance(value, str):
        whole = ENV_VAR_PATTERN.fullmatch(value)
        if whole and os.getenv(whole.group(1)) is not None:
            return _coerce_scalar(_env_value(whole))
        return ENV_VAR_PATTERN.sub(_env_value, value)
    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries, override wins on conflicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load packager configuration.

    Args:
        config_path: Path to the configuration YAML file; built-in defaults
            are used when omitted

    Returns:
        Validated configuration dictionary with defaults filled in

    Raises:
        ConfigurationError: the file is unreadable, malformed or invalid
    """
    raw_config: Dict[str, Any] = {}

    if config_path:
        # Validate config file syntax first
        is_valid, file_issues = validate_config_file(config_path)
        if not is_valid:
            for issue in file_issues:
                logger.error(f"Config file validation: {issue}")
            raise ConfigurationError("Configuration file validation failed", path=config_path)

        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f) or {}

        logger.debug(f"Loaded configuration from {config_path}")

    # Substitute environment variables
    config = merge_config(DEFAULT_CONFIG, substitute_env_vars(raw_config))

    # Validate configuration structure and values
    validator = ConfigurationValidator()
    is_valid, config_issues = validator.validate_packager_config(config)

    for issue in validator.errors:
        logger.error(f"Config validation error: {issue}")
    for issue in validator.warnings:
        logger.warning(f"Config validation warning: {issue}")

    # Stop if there are critical errors
    if not is_valid:
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(validator.errors)}",
                                 path=config_path)

    return config


def build_streaming_options(config: Dict[str, Any],
                            overrides: Optional[Dict[str, Any]] = None) -> StreamingOptions:
    """
    Build StreamingOptions from the streaming section of a configuration.

    Args:
        config: Configuration as returned by load_config
        overrides: Values from the command line (max_memory_mb, chunk_size_kb,
            memory_monitoring, temp_directory); None values are ignored

    Returns:
        Validated StreamingOptions
    """
    streaming = dict(config.get('streaming', {}))
    for key, value in (overrides or {}).items():
        if value is not None:
            streaming[key] = value

    temp_directory = Path(streaming.get('temp_directory', DEFAULT_CONFIG['streaming']['temp_directory']))
    if not temp_directory.is_absolute():
        temp_directory = Path.cwd() / temp_directory

    try:
        max_memory_bytes = int(streaming.get('max_memory_mb', 100) * 1024 * 1024)
        chunk_size_bytes = int(streaming.get('chunk_size_kb', 1024) * 1024)
    except TypeError as e:
        raise ConfigurationError(f"Invalid streaming size setting: {e}") from e

    return StreamingOptions(
        max_memory_bytes=max_memory_bytes,
        chunk_size_bytes=chunk_size_bytes,
        memory_monitoring_enabled=bool(streaming.get('memory_monitoring', True)),
        temp_directory=temp_directory
    )


def get_default_config_path() -> Optional[str]:
    """Get the default configuration file path, if one ships with the repository."""
    current_dir = Path(__file__).parent
    default_config = current_dir.parent.parent / 'config' / 'packager.yaml'

    if not default_config.exists():
        logger.debug(f"Default configuration file not found: {default_config}")
        return None

    return str(default_config)
