"""
Configuration management and live reload.

This module provides the main configuration loading and management interface.
The loaded AppConfig is a frozen snapshot held in a module-level singleton;
a reload builds and validates a complete new snapshot first and only then
swaps it in under a lock, so a scrape in flight sees either the old or the
new configuration, never a mix.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from ..validation import handle_config_error, ErrorSeverity
from .loader import load_main_config
from .validators import validate_app_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Overridden by the CLI through --config.file.
_CONFIG_FILE_PATH = Path("azure.toml")

_CONFIG_LOCK = threading.Lock()


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Args:
        config_path: Path to the configuration file

    Note:
        The cached configuration is dropped, the next call to get_config()
        loads from the new path.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    with _CONFIG_LOCK:
        _CONFIG_FILE_PATH = Path(config_path)
        _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    with _CONFIG_LOCK:
        _CONFIG = None
    logger.debug("Configuration cache cleared")


def load_config(config_path: Path) -> AppConfig:
    """
    Load and validate a configuration file without touching the cached snapshot.

    Args:
        config_path: Path to the configuration file

    Returns:
        Fully validated AppConfig instance

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    try:
        config_data = load_main_config(config_path)
        app_config = validate_app_config(config_data)

        logger.info(
            f"Successfully loaded configuration with {len(app_config.resources)} resources "
            f"and {len(app_config.resource_groups)} resource groups"
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
            severity=ErrorSeverity.ERROR,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> AppConfig:
    """
    Get the current configuration snapshot, loading it if necessary.

    Returns:
        The cached AppConfig instance

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
    """
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = load_config(_CONFIG_FILE_PATH)
        return _CONFIG


def reload_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Reload the configuration and swap the cached snapshot.

    On failure the previous snapshot stays in place and the error is raised
    to the caller.

    Args:
        config_path: Optional new path, defaults to the current one

    Returns:
        The newly loaded AppConfig instance
    """
    global _CONFIG, _CONFIG_FILE_PATH
    path = Path(config_path) if config_path is not None else _CONFIG_FILE_PATH
    new_config = load_config(path)
    with _CONFIG_LOCK:
        _CONFIG = new_config
        _CONFIG_FILE_PATH = path
    logger.info(f"Configuration reloaded from {path}")
    return new_config
