"""
Configuration validation utilities.

This module turns raw TOML sections into validated configuration dataclasses.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..models.config import (
    ArtifactConfig,
    ContainerConfig,
    DEFAULT_ARTIFACT_EXTENSIONS,
    ProgressRule,
    SupervisorConfig,
)
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
)

logger = logging.getLogger(__name__)


def _validate_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean", field_name=field_name, value=value)
    return value


def validate_supervisor_config(data: Dict[str, Any]) -> SupervisorConfig:
    """
    Validate the ``[supervisor]`` section.

    Raises:
        ValidationError: If validation fails
    """
    defaults = SupervisorConfig()

    default_timeout_ms = validate_positive_integer(
        data.get("default_timeout_ms", defaults.default_timeout_ms),
        min_value=1,
        max_value=24 * 60 * 60 * 1000,  # one day
        field_name="supervisor.default_timeout_ms",
    )

    grace_period_seconds = validate_positive_float(
        data.get("grace_period_seconds", defaults.grace_period_seconds),
        min_value=0.0,
        max_value=300.0,
        field_name="supervisor.grace_period_seconds",
    )

    log_tail_chars = validate_positive_integer(
        data.get("log_tail_chars", defaults.log_tail_chars),
        min_value=0,
        max_value=1_000_000,
        field_name="supervisor.log_tail_chars",
    )

    starting_percent = validate_positive_integer(
        data.get("starting_percent", defaults.starting_percent),
        min_value=0,
        max_value=100,
        field_name="supervisor.starting_percent",
    )

    return SupervisorConfig(
        default_timeout_ms=default_timeout_ms,
        grace_period_seconds=grace_period_seconds,
        log_tail_chars=log_tail_chars,
        starting_percent=starting_percent,
    )


def validate_container_config(data: Dict[str, Any], config_dir: Path) -> ContainerConfig:
    """
    Validate the ``[container]`` section.

    Relative Dockerfile and build context paths are resolved against
    ``config_dir``.

    Raises:
        ValidationError: If validation fails
    """
    defaults = ContainerConfig()

    executable = validate_non_empty_string(
        data.get("executable", defaults.executable), "container.executable"
    )
    image = validate_non_empty_string(data.get("image", defaults.image), "container.image")
    if ":" not in image.rsplit("/", 1)[-1]:
        # `docker images` always reports a tag, so compare against the full name
        image = f"{image}:latest"

    dockerfile = Path(validate_non_empty_string(
        str(data.get("dockerfile", defaults.dockerfile)), "container.dockerfile"
    ))
    build_context = Path(validate_non_empty_string(
        str(data.get("build_context", defaults.build_context)), "container.build_context"
    ))

    memory_limit = validate_non_empty_string(
        data.get("memory_limit", defaults.memory_limit), "container.memory_limit"
    )

    cpus = validate_positive_float(
        data.get("cpus", defaults.cpus),
        min_value=0.01,
        max_value=1024.0,
        field_name="container.cpus",
    )

    name_prefix = validate_non_empty_string(
        data.get("name_prefix", defaults.name_prefix), "container.name_prefix"
    )

    auto_build_image = _validate_bool(
        data.get("auto_build_image", defaults.auto_build_image), "container.auto_build_image"
    )

    command_timeout_seconds = validate_positive_float(
        data.get("command_timeout_seconds", defaults.command_timeout_seconds),
        min_value=0.1,
        max_value=3600.0,
        field_name="container.command_timeout_seconds",
    )

    return ContainerConfig(
        executable=executable,
        image=image,
        dockerfile=dockerfile if dockerfile.is_absolute() else config_dir / dockerfile,
        build_context=build_context if build_context.is_absolute() else config_dir / build_context,
        memory_limit=memory_limit,
        cpus=cpus,
        name_prefix=name_prefix,
        auto_build_image=auto_build_image,
        command_timeout_seconds=command_timeout_seconds,
    )


def validate_artifact_config(data: Dict[str, Any]) -> ArtifactConfig:
    """
    Validate the ``[artifacts]`` section.

    Every build type keeps exactly one extension and no two types may share
    one, so an artifact can never be attributed to the wrong type.

    Raises:
        ValidationError: If an unknown type, malformed or duplicate extension is given
    """
    raw_extensions = data.get("extensions", {})
    extensions = dict(DEFAULT_ARTIFACT_EXTENSIONS)

    for build_type, extension in raw_extensions.items():
        validate_enum_choice(
            build_type,
            choices=list(DEFAULT_ARTIFACT_EXTENSIONS),
            field_name="artifacts.extensions key",
        )
        field_name = f"artifacts.extensions.{build_type}"
        validate_non_empty_string(extension, field_name)
        if not extension.startswith("."):
            extension = f".{extension}"
        extensions[build_type] = extension.lower()

    seen: Dict[str, str] = {}
    for build_type, extension in extensions.items():
        if extension in seen:
            raise ValidationError(
                f"artifacts.extensions: '{extension}' is used by both "
                f"{seen[extension]} and {build_type}",
                field_name="artifacts.extensions",
                value=extension,
            )
        seen[extension] = build_type

    return ArtifactConfig(extensions=extensions)


def validate_progress_rules_config(rules_data: List[Dict[str, Any]]) -> List[ProgressRule]:
    """
    Validate progress rules and sort them by descending priority.

    Rules with equal priority keep their file order.

    Raises:
        ValidationError: If a rule is malformed
    """
    rules: List[ProgressRule] = []

    for index, rule_data in enumerate(rules_data):
        prefix = f"rules[{index}]"

        phase = validate_non_empty_string(rule_data.get("phase"), f"{prefix}.phase")
        message = validate_non_empty_string(rule_data.get("message"), f"{prefix}.message")
        percent = validate_positive_integer(
            rule_data.get("percent"), min_value=0, max_value=100, field_name=f"{prefix}.percent"
        )
        match_type = validate_enum_choice(
            rule_data.get("match_type", "contains"),
            choices=["contains", "regex"],
            field_name=f"{prefix}.match_type",
        )
        pattern = rule_data.get("pattern")
        if match_type == "regex":
            validate_regex_pattern(pattern, f"{prefix}.pattern")
        else:
            validate_non_empty_string(pattern, f"{prefix}.pattern")
        priority = validate_positive_integer(
            rule_data.get("priority", 0), min_value=0, field_name=f"{prefix}.priority"
        )

        rules.append(ProgressRule(
            phase=phase,
            percent=percent,
            message=message,
            pattern=pattern,
            match_type=match_type,
            priority=priority,
            comment=rule_data.get("comment", ""),
        ))

    rules.sort(key=lambda rule: rule.priority, reverse=True)
    logger.debug(f"Validated {len(rules)} progress rules")
    return rules
