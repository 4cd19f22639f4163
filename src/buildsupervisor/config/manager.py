"""
Configuration management and singleton pattern.

This module provides the main configuration loading and management interface,
implementing a singleton pattern to ensure configuration is loaded only once.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from ..validation import handle_config_error, ErrorSeverity
from .loader import get_progress_rules_path, load_main_config, load_progress_rules_config
from .validators import (
    validate_artifact_config,
    validate_container_config,
    validate_progress_rules_config,
    validate_supervisor_config,
)

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Default path to the main configuration file, relative to this script's location.
# Overridden by the CLI --config option or by tests.
_CONFIG_FILE_PATH = Path(__file__).parent.parent.parent.parent / "conf" / "config.toml"


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path and drop the cached configuration.

    Args:
        config_path: Path to the main config.toml file
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the complete application configuration.

    Args:
        config_path: Path to the main config.toml file

    Returns:
        Fully validated AppConfig instance

    Raises:
        FileNotFoundError: If configuration files are missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If TOML files are malformed
    """
    try:
        main_config_data = load_main_config(config_path)
        config_dir = config_path.parent

        supervisor_config = validate_supervisor_config(main_config_data.get("supervisor", {}))
        container_config = validate_container_config(
            main_config_data.get("container", {}), config_dir
        )
        artifact_config = validate_artifact_config(main_config_data.get("artifacts", {}))

        progress_rules = []
        rules_path = get_progress_rules_path(main_config_data, config_dir)
        if rules_path is not None:
            progress_rules = validate_progress_rules_config(load_progress_rules_config(rules_path))

        app_config = AppConfig(
            supervisor=supervisor_config,
            container=container_config,
            artifacts=artifact_config,
            progress_rules=progress_rules,
        )

        logger.info(
            f"Successfully loaded configuration for image {container_config.image} "
            f"with {len(progress_rules)} progress rules"
        )
        return app_config

    except FileNotFoundError as e:
        handle_config_error(
            error=e,
            context="loading configuration file",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise
    except Exception as e:
        handle_config_error(
            error=e,
            context="processing configuration",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> AppConfig:
    """
    Get the global application configuration, loading it if necessary.

    Returns:
        The singleton AppConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """Check if configuration has been loaded and cached."""
    return _CONFIG is not None


def get_config_info() -> dict:
    """
    Get information about the current configuration state.
    """
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(_CONFIG_FILE_PATH),
        "image": _CONFIG.container.image if _CONFIG else None,
        "progress_rules_count": len(_CONFIG.progress_rules) if _CONFIG else 0,
    }
