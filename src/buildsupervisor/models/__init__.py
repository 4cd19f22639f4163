"""
Data models for the build supervisor.

Configuration Models:
- Supervisor lifecycle settings
- Container runtime settings
- Artifact extension mapping
- Progress classification rules

Job Models:
- Build requests and their validated options
- Per-job mutable state owned by the registry
- Progress events delivered to sinks
"""

# Configuration models
from .config import (
    AppConfig,
    ArtifactConfig,
    ContainerConfig,
    DEFAULT_ARTIFACT_EXTENSIONS,
    ProgressRule,
    SupervisorConfig,
)

# Job models
from .job import (
    Artifact,
    BuildJob,
    BuildMode,
    BuildOptions,
    BuildProgress,
    BuildStatus,
    BuildType,
)

__all__ = [
    # Configuration
    "AppConfig",
    "ArtifactConfig",
    "ContainerConfig",
    "DEFAULT_ARTIFACT_EXTENSIONS",
    "ProgressRule",
    "SupervisorConfig",
    # Jobs
    "Artifact",
    "BuildJob",
    "BuildMode",
    "BuildOptions",
    "BuildProgress",
    "BuildStatus",
    "BuildType",
]
