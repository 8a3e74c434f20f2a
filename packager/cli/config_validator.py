"""
Configuration validation for the packager.
Validates configuration before any operation starts to prevent common errors.
"""

import os
from pathlib import Path
from typing import Dict, List, Tuple, Any
import logging

import yaml

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
KNOWN_SECTIONS = {'streaming', 'archive', 'logging'}


class ConfigurationValidator:
    """Validates packager configuration to prevent runtime errors."""

    def __init__(self):
        self.errors = []
        self.warnings = []

    def validate_packager_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate configuration before an operation starts.

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        self.errors = []
        self.warnings = []

        for section in config:
            if section not in KNOWN_SECTIONS:
                self.warnings.append(f"Unknown configuration section '{section}' will be ignored")

        # Validate streaming settings
        self._validate_streaming_config(self._section(config, 'streaming'))

        # Validate archive settings
        self._validate_archive_config(self._section(config, 'archive'))

        # Validate logging settings
        self._validate_logging_config(self._section(config, 'logging'))

        all_issues = self.errors + self.warnings
        is_valid = len(self.errors) == 0

        return is_valid, all_issues

    def _section(self, config: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = config.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            self.errors.append(f"Section '{name}' must be a dictionary, got: {type(section).__name__}")
            return {}
        return section

    def _validate_streaming_config(self, streaming_config: Dict[str, Any]):
        """Validate streaming settings."""

        # Validate memory ceiling
        max_memory = streaming_config.get('max_memory_mb', 100)
        if isinstance(max_memory, bool) or not isinstance(max_memory, (int, float)) or max_memory <= 0:
            self.errors.append(f"max_memory_mb must be a positive number, got: {max_memory}")

        # Validate chunk size
        chunk_size = streaming_config.get('chunk_size_kb', 1024)
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, (int, float)) or chunk_size <= 0:
            self.errors.append(f"chunk_size_kb must be a positive number, got: {chunk_size}")
        elif (isinstance(max_memory, (int, float)) and not isinstance(max_memory, bool)
              and max_memory > 0 and chunk_size * 1024 > max_memory * 1024 * 1024):
            self.warnings.append(f"chunk_size_kb ({chunk_size}) is larger than the memory ceiling "
                                 f"({max_memory}MB)")

        monitoring = streaming_config.get('memory_monitoring')
        if monitoring is not None and not isinstance(monitoring, bool):
            self.errors.append(f"memory_monitoring must be boolean, got: {monitoring}")

        temp_directory = streaming_config.get('temp_directory')
        if temp_directory is not None and (not isinstance(temp_directory, str) or not temp_directory):
            self.errors.append(f"temp_directory must be a non-empty string, got: {temp_directory}")

    def _validate_archive_config(self, archive_config: Dict[str, Any]):
        """Validate archive settings."""

        level = archive_config.get('compression_level', 6)
        if isinstance(level, bool) or not isinstance(level, int) or not (0 <= level <= 9):
            self.errors.append(f"compression_level must be an integer between 0 and 9, got: {level}")
        elif level == 0:
            self.warnings.append("compression_level 0 stores files without compression")

    def _validate_logging_config(self, logging_config: Dict[str, Any]):
        """Validate logging settings."""

        level = logging_config.get('level', 'INFO')
        if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
            self.errors.append(f"Invalid log level '{level}'. Valid: {VALID_LOG_LEVELS}")

        log_file = logging_config.get('file')
        if log_file is not None:
            if not isinstance(log_file, str):
                self.errors.append(f"logging.file must be a string, got: {log_file}")
            elif not Path(log_file).parent.exists():
                self.warnings.append(f"Log file directory does not exist: {Path(log_file).parent}")

    def validate_output_path(self, output_path: str) -> Tuple[bool, List[str]]:
        """
        Validate that the output path is writable.

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []

        output_file = Path(output_path)

        # Parent directories are created on demand; check the nearest existing one
        parent_dir = output_file.parent
        while not parent_dir.exists() and parent_dir != parent_dir.parent:
            parent_dir = parent_dir.parent

        if not parent_dir.is_dir():
            issues.append(f"Output location is not inside a directory: {parent_dir}")
            return False, issues

        if not os.access(parent_dir, os.W_OK):
            issues.append(f"Output directory is not writable: {parent_dir}")
            return False, issues

        if output_file.exists() and not os.access(output_file, os.W_OK):
            issues.append(f"Output file exists but is not writable: {output_path}")
            return False, issues

        # Warn about overwriting existing files
        if output_file.exists():
            issues.append(f"Output file already exists and will be overwritten: {output_path}")

        return True, issues


def validate_config_file(config_path: str) -> Tuple[bool, List[str]]:
    """
    Validate configuration file syntax and basic structure.

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    config_file = Path(config_path)

    # Check if config file exists
    if not config_file.exists():
        issues.append(f"Configuration file not found: {config_path}")
        return False, issues

    # Check if config file is readable
    if not os.access(config_file, os.R_OK):
        issues.append(f"Configuration file is not readable: {config_path}")
        return False, issues

    # Try to parse the config file
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        issues.append(f"Invalid YAML syntax in config file: {e}")
        return False, issues
    except OSError as e:
        issues.append(f"Error reading config file: {e}")
        return False, issues

    # An empty file means "all defaults"
    if config is None:
        return True, issues

    # Validate structure
    if not isinstance(config, dict):
        issues.append("Configuration file must contain a dictionary at root level")
        return False, issues

    return True, issues
