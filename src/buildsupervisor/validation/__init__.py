"""
Validation and error handling for the buildsupervisor package.

This module provides input validation, the build error taxonomy and
consistent error reporting across the application.
"""

from .exceptions import (
    ArtifactNotFoundError,
    BuildError,
    BuildTimeoutError,
    CancellationError,
    DuplicateJobError,
    ErrorSeverity,
    ExecutionError,
    LaunchError,
    ProvisioningError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_subprocess_error,
)
from .validators import (
    validate_build_id,
    validate_directory_path,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
)

__all__ = [
    # Error taxonomy
    "ArtifactNotFoundError",
    "BuildError",
    "BuildTimeoutError",
    "CancellationError",
    "DuplicateJobError",
    "ExecutionError",
    "LaunchError",
    "ProvisioningError",
    "ValidationError",
    # Error handling
    "ErrorSeverity",
    "handle_error",
    "handle_config_error",
    "handle_subprocess_error",
    "handle_cli_error",
    # Validators
    "validate_build_id",
    "validate_directory_path",
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_regex_pattern",
]
