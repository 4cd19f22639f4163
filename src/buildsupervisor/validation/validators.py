"""
Validation functions for build options and configuration values.
"""

import re
from pathlib import Path
from typing import Any, List, Optional, Union

from .exceptions import ValidationError

_BUILD_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within bounds.

    Raises:
        ValidationError: If validation fails
    """
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a number within bounds.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_non_empty_string(value: Any, field_name: str = "value") -> str:
    """Validate that a value is a string with visible content."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=value
        )
    return value


def validate_build_id(build_id: Any, field_name: str = "build_id") -> str:
    """
    Validate a build id.

    The id ends up in a container name and in artifact file names, so it is
    restricted to characters both accept.

    Raises:
        ValidationError: If the id is empty or contains other characters
    """
    validate_non_empty_string(build_id, field_name)
    if not _BUILD_ID_PATTERN.match(build_id):
        raise ValidationError(
            f"{field_name} must contain only alphanumeric characters, dots, "
            f"underscores, and hyphens: {build_id}",
            field_name=field_name,
            value=build_id
        )
    return build_id


def validate_directory_path(
    path: Union[str, Path],
    must_exist: bool = False,
    field_name: str = "path"
) -> Path:
    """
    Validate a directory path and return it as an absolute ``Path``.

    Raises:
        ValidationError: If the path is empty, or missing when ``must_exist``
    """
    if isinstance(path, str):
        validate_non_empty_string(path, field_name)
    elif not isinstance(path, Path):
        raise ValidationError(
            f"{field_name} must be a path, got {type(path).__name__}",
            field_name=field_name,
            value=path
        )
    resolved = Path(path).expanduser().resolve()
    if must_exist and not resolved.is_dir():
        raise ValidationError(
            f"{field_name} is not an existing directory: {resolved}",
            field_name=field_name,
            value=str(path)
        )
    return resolved


def validate_regex_pattern(pattern: str, field_name: str = "regex_pattern") -> str:
    """
    Validate regex pattern format.

    Raises:
        ValidationError: If pattern is invalid
    """
    if not pattern or not isinstance(pattern, str):
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=pattern
        )

    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(
            f"{field_name} is not a valid regex pattern: {e}",
            field_name=field_name,
            value=pattern
        )

    return pattern


def validate_enum_choice(
    value: Any,
    choices: List[str],
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Returns:
        The matching choice, in the spelling used by ``choices``

    Raises:
        ValidationError: If value is not in choices
    """
    str_value = str(value)

    if case_sensitive:
        if str_value not in choices:
            raise ValidationError(
                f"{field_name} must be one of {choices}, got {value}",
                field_name=field_name,
                value=value
            )
        return str_value

    lower_choices = [choice.lower() for choice in choices]
    lower_value = str_value.lower()
    if lower_value not in lower_choices:
        raise ValidationError(
            f"{field_name} must be one of {choices}, got {value}",
            field_name=field_name,
            value=value
        )
    return choices[lower_choices.index(lower_value)]
