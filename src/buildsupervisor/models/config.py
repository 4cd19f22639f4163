"""
Configuration data models.

This module contains the configuration structures for the supervisor itself,
the container runtime, artifact naming and progress classification rules.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List


DEFAULT_ARTIFACT_EXTENSIONS: Dict[str, str] = {
    "package": ".apk",
    "bundle": ".aab",
    "source-archive": ".zip",
    "ios-package": ".ipa",
}


@dataclass
class SupervisorConfig:
    """
    Job lifecycle settings, loaded from the ``[supervisor]`` section.
    """

    # Deadline applied when a request does not carry its own timeout.
    default_timeout_ms: int = 600_000
    # Delay between the graceful stop request and the forced kill.
    grace_period_seconds: float = 5.0
    # Characters of stdout/stderr kept per stream for failure diagnostics.
    log_tail_chars: int = 500
    # Percent reported with the initial ``starting`` event.
    starting_percent: int = 5


@dataclass
class ContainerConfig:
    """
    Execution environment settings, loaded from the ``[container]`` section.
    """

    executable: str = "docker"
    image: str = "appbuilder/flutter-builder:latest"
    dockerfile: Path = Path("docker/Dockerfile.flutter")
    build_context: Path = Path("docker")
    memory_limit: str = "2g"
    cpus: float = 2.0
    name_prefix: str = "appbuild-"
    # Build the image on first use when it is missing locally.
    auto_build_image: bool = True
    # Upper bound for short runtime commands (image listing, stop, kill).
    command_timeout_seconds: float = 30.0


@dataclass
class ArtifactConfig:
    """
    File extension per build type, loaded from ``[artifacts.extensions]``.
    """

    extensions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ARTIFACT_EXTENSIONS)
    )


@dataclass
class ProgressRule:
    """
    A progress classification rule, loaded from the progress rules file.
    """

    # Short phase identifier (e.g. "dependencies", "packaging").
    phase: str
    # Percent reported when the rule matches.
    percent: int
    # Human-readable description of the phase.
    message: str
    # The text the rule looks for in an output line.
    pattern: str
    # 'contains' for a substring match, 'regex' for re.search.
    match_type: str = "contains"
    # Higher numbers are evaluated first.
    priority: int = 0
    comment: str = ""


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    supervisor: SupervisorConfig = field(default_factory=SupervisorConfig)
    container: ContainerConfig = field(default_factory=ContainerConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)
    # Sorted by priority; empty means the built-in defaults are used.
    progress_rules: List[ProgressRule] = field(default_factory=list)
