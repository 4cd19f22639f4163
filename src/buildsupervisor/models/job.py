"""
Build job data models.

This module contains the inbound build request, the per-job state owned by
the registry, and the progress events handed to the outbound sink.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..validation import (
    validate_build_id,
    validate_directory_path,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_integer,
)

if TYPE_CHECKING:
    from ..executor.build_process import BuildProcess
    from ..orchestration.timeout import TimeoutController


class BuildType(Enum):
    """Kind of artifact a job produces."""
    PACKAGE = "package"
    BUNDLE = "bundle"
    SOURCE_ARCHIVE = "source-archive"
    IOS_PACKAGE = "ios-package"


class BuildMode(Enum):
    DEBUG = "debug"
    RELEASE = "release"


class BuildStatus(Enum):
    """Lifecycle states of a build job."""
    STARTING = "starting"
    BUILDING = "building"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    BuildStatus.COMPLETED,
    BuildStatus.FAILED,
    BuildStatus.TIMEOUT,
    BuildStatus.CANCELLED,
})


# Accepted spellings of each request field, wire name first.
_OPTION_KEYS = {
    "build_id": ("buildId", "build_id"),
    "build_type": ("buildType", "build_type"),
    "build_mode": ("buildMode", "build_mode"),
    "app_name": ("appName", "app_name"),
    "project_path": ("projectPath", "project_path"),
    "output_path": ("outputPath", "output_path"),
    "timeout_ms": ("timeoutMs", "timeout_ms", "timeout"),
}


@dataclass(frozen=True)
class Artifact:
    """The single output file of a completed build."""

    path: Path
    size_bytes: int


@dataclass(frozen=True)
class BuildOptions:
    """
    A validated request to run one build job.
    """

    build_id: str
    build_type: BuildType
    build_mode: BuildMode
    app_name: str
    project_path: Path
    output_path: Path
    # None means the configured default applies.
    timeout_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildOptions":
        """
        Create validated options from a request payload.

        Both the camelCase wire names (``buildId``) and snake_case names are
        accepted.

        Raises:
            ValidationError: If a required field is missing or malformed
        """
        values: Dict[str, Any] = {}
        for name, keys in _OPTION_KEYS.items():
            for key in keys:
                if key in data and data[key] is not None:
                    values[name] = data[key]
                    break

        build_type = validate_enum_choice(
            values.get("build_type"),
            choices=[t.value for t in BuildType],
            field_name="buildType",
        )
        build_mode = validate_enum_choice(
            values.get("build_mode"),
            choices=[m.value for m in BuildMode],
            field_name="buildMode",
            case_sensitive=False,
        )
        timeout_ms = values.get("timeout_ms")
        if timeout_ms is not None:
            timeout_ms = validate_positive_integer(timeout_ms, min_value=1, field_name="timeoutMs")

        return cls(
            build_id=validate_build_id(values.get("build_id"), field_name="buildId"),
            build_type=BuildType(build_type),
            build_mode=BuildMode(build_mode),
            app_name=validate_non_empty_string(values.get("app_name"), field_name="appName"),
            project_path=validate_directory_path(
                values.get("project_path", ""), must_exist=True, field_name="projectPath"
            ),
            output_path=validate_directory_path(
                values.get("output_path", ""), field_name="outputPath"
            ),
            timeout_ms=timeout_ms,
        )


@dataclass
class BuildProgress:
    """
    One progress event for a build job.

    A job produces a sequence of these ending in exactly one event whose
    status is terminal.
    """

    build_id: str
    status: BuildStatus
    progress_percent: int
    message: str
    output_path: Optional[Path] = None
    size_bytes: Optional[int] = None
    error: Optional[str] = None
    # Name of the error class that decided a failure-class outcome.
    error_type: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Render the event in its wire shape, omitting unset optional fields."""
        payload: Dict[str, Any] = {
            "buildId": self.build_id,
            "status": self.status.value,
            "progressPercent": self.progress_percent,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.output_path is not None:
            payload["outputPath"] = str(self.output_path)
        if self.size_bytes is not None:
            payload["sizeBytes"] = self.size_bytes
        if self.error is not None:
            payload["error"] = self.error
        if self.error_type is not None:
            payload["errorType"] = self.error_type
        return payload


@dataclass
class BuildJob:
    """
    Mutable state of one build job, owned by the registry until terminal.
    """

    options: BuildOptions
    timeout_ms: int
    status: BuildStatus = BuildStatus.STARTING
    progress_percent: int = 0
    message: str = ""
    error: Optional[str] = None
    error_type: Optional[str] = None
    artifact: Optional[Artifact] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    # Held only while the job is live; detached by the terminal claim.
    process: Optional["BuildProcess"] = field(default=None, repr=False)
    timer: Optional["TimeoutController"] = field(default=None, repr=False)
    # True between registration and the end of the launch attempt.
    launching: bool = field(default=False, repr=False)

    @property
    def build_id(self) -> str:
        return self.options.build_id

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def duration_seconds(self) -> float:
        end_time = self.finished_at or time.time()
        return end_time - self.started_at

    def snapshot(self) -> BuildProgress:
        """Describe the current state as a progress event."""
        return BuildProgress(
            build_id=self.build_id,
            status=self.status,
            progress_percent=self.progress_percent,
            message=self.message,
            output_path=self.artifact.path if self.artifact else None,
            size_bytes=self.artifact.size_bytes if self.artifact else None,
            error=self.error,
            error_type=self.error_type,
        )
