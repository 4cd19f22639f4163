"""
Configuration file loading utilities.

This module handles the low-level loading and parsing of TOML configuration
files: the main config.toml and the progress rules file it points to.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..validation import handle_config_error, ErrorSeverity

logger = logging.getLogger(__name__)


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def load_main_config(config_path: Path) -> Dict[str, Any]:
    """Load the main configuration file (config.toml)."""
    return load_toml_file(config_path, "main configuration file")


def load_progress_rules_config(rules_path: Path) -> List[Dict[str, Any]]:
    """
    Load the progress rules file.

    Returns:
        List of rule dictionaries from its ``[[rules]]`` tables
    """
    rules_data = load_toml_file(rules_path, "progress rules file")
    return rules_data.get("rules", [])


def get_progress_rules_path(main_config_data: Dict[str, Any], config_dir: Path) -> Optional[Path]:
    """
    Resolve the progress rules path from the main config.

    Args:
        main_config_data: Parsed main configuration data
        config_dir: Directory containing the main config file (for relative paths)

    Returns:
        Resolved path, or None when no rules file is configured
    """
    rules_file = main_config_data.get("paths", {}).get("progress_rules")
    if not rules_file:
        return None
    return config_dir / rules_file
