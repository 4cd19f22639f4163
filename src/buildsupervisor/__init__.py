"""
buildsupervisor: Containerized build supervision for app builds.

This package runs each build job in an isolated, resource-capped container,
turns its console output into monotonic progress events, enforces a per-job
timeout, supports graceful-then-forced cancellation and locates the produced
artifact.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation and the build error taxonomy
- system: Process-tree signalling
- classification: Console output to progress classification
- artifacts: Artifact location in the output directory
- provisioning: Build image availability and image builds
- executor: Container runtime access and build process supervision
- orchestration: Job registry, timeouts, cancellation and progress sinks
- cli: Command-line interface

Usage:
    From command line:
        buildsupervisor build --build-id b1 --type package --app-name Demo \\
            --project ./project --output ./out

    Programmatically:
        from buildsupervisor import BuildJobRegistry, QueueProgressSink
        events = QueueProgressSink()
        async with BuildJobRegistry(sink=events) as registry:
            await registry.start_build({...})
"""

# Main interfaces
from .config import get_config, clear_config_cache, set_config_path
from .orchestration import (
    BuildJobRegistry,
    CallbackProgressSink,
    CompositeProgressSink,
    LoggingProgressSink,
    ProgressSink,
    QueueProgressSink,
)
from .cli import main_cli

# Model classes for external use
from .models import (
    AppConfig,
    Artifact,
    BuildMode,
    BuildOptions,
    BuildProgress,
    BuildStatus,
    BuildType,
)

# Errors
from .validation import (
    BuildError,
    DuplicateJobError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "BuildJobRegistry",
    "main_cli",
    # Sinks
    "ProgressSink",
    "LoggingProgressSink",
    "CallbackProgressSink",
    "QueueProgressSink",
    "CompositeProgressSink",
    # Models
    "AppConfig",
    "Artifact",
    "BuildMode",
    "BuildOptions",
    "BuildProgress",
    "BuildStatus",
    "BuildType",
    # Errors
    "BuildError",
    "DuplicateJobError",
    "ValidationError",
]
