"""
Configuration management for the azmonitor package.

This module provides a clean interface for loading, validating, and accessing
configuration data from the TOML configuration file, with a lock-protected
snapshot for live reloads.
"""

# Main configuration interface
from .manager import (
    clear_config_cache,
    get_config,
    load_config,
    reload_config,
    set_config_path,
)

# For advanced usage - direct access to loaders and validators
from .loader import load_main_config, load_toml_file
from .validators import (
    validate_aggregations,
    validate_app_config,
    validate_credentials,
    validate_exporter_settings,
    validate_resource_groups_config,
    validate_resources_config,
)

__all__ = [
    # Main interface
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "load_config",
    "reload_config",
    # Advanced interface
    "load_toml_file",
    "load_main_config",
    "validate_aggregations",
    "validate_app_config",
    "validate_credentials",
    "validate_exporter_settings",
    "validate_resource_groups_config",
    "validate_resources_config",
]
