"""
Exception taxonomy and error handling helpers.

Every failure a build job can run into maps to one class here. The registry
turns them into terminal progress events; nothing in this hierarchy is meant
to be swallowed.
"""

import logging
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValidationError(Exception):
    """
    Exception raised when validation of build options or configuration fails.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class BuildError(Exception):
    """
    Base class for failures of a single build job.

    ``terminal_status`` names the status the job ends in when this error
    decides its outcome.
    """

    terminal_status = "failed"

    def __init__(self, message: str, build_id: Optional[str] = None):
        super().__init__(message)
        self.build_id = build_id


class DuplicateJobError(BuildError):
    """A job with the same build id is already active."""

    def __init__(self, build_id: str):
        super().__init__(f"Build {build_id} is already active", build_id=build_id)


class ProvisioningError(BuildError):
    """The build image is missing and could not be built."""


class LaunchError(BuildError):
    """The build process could not be started."""


class ExecutionError(BuildError):
    """The build process exited with a non-zero code."""

    def __init__(self, exit_code: int, stdout_tail: str = "", stderr_tail: str = "",
                 build_id: Optional[str] = None):
        # stderr is the most useful diagnostic, stdout is the fallback
        detail = stderr_tail.strip() or stdout_tail.strip()
        message = f"Build failed with exit code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, build_id=build_id)
        self.exit_code = exit_code
        self.stdout_tail = stdout_tail
        self.stderr_tail = stderr_tail


class BuildTimeoutError(BuildError):
    """The job's deadline expired before the process finished."""

    terminal_status = "timeout"

    def __init__(self, build_id: Optional[str] = None):
        super().__init__("Build timeout", build_id=build_id)


class CancellationError(BuildError):
    """The job was cancelled before the process finished."""

    terminal_status = "cancelled"

    def __init__(self, reason: str, build_id: Optional[str] = None):
        super().__init__(f"Build was cancelled ({reason})", build_id=build_id)
        self.reason = reason


class ArtifactNotFoundError(BuildError):
    """The process exited cleanly but left no matching output file."""

    def __init__(self, build_id: Optional[str] = None):
        super().__init__("No output file found", build_id=build_id)


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=True)
    elif severity_str == "info":
        effective_logger.info(error_msg)
    elif severity_str == "warning":
        effective_logger.warning(error_msg)
    elif severity_str == "error":
        effective_logger.error(error_msg)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=True)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_subprocess_error(error: Exception, command: str, **kwargs) -> None:
    """Handle subprocess-related errors."""
    handle_error(error, f"subprocess command '{command}'", **kwargs)


def handle_cli_error(error: Exception, context: str, **kwargs) -> None:
    """Handle CLI-related errors and exit."""
    exit_code = kwargs.pop('exit_code', 1)

    severity = kwargs.pop('severity', ErrorSeverity.ERROR)
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)

    import sys
    sys.exit(exit_code)
