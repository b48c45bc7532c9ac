"""
Validation and error handling for the azmonitor package.

This module provides input validation and error handling with consistent
error reporting across the application.
"""

# Core exception classes and error handling
from .exceptions import (
    ErrorSeverity,
    ValidationError,
    handle_error,
    handle_api_error,
    handle_config_error,
    handle_cli_error,
)

# Validation functions
from .validators import (
    reject_unknown_keys,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_resource_path,
    validate_string_list,
)

__all__ = [
    # Core functionality
    "ErrorSeverity",
    "ValidationError",
    "handle_error",
    "handle_api_error",
    "handle_config_error",
    "handle_cli_error",
    # Validators
    "reject_unknown_keys",
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_regex_pattern",
    "validate_resource_path",
    "validate_string_list",
]
