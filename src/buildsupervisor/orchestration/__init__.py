"""
Build orchestration for the buildsupervisor package.

This module coordinates build jobs: the job registry, per-job timeouts,
graceful-then-forced cancellation and the outbound progress sinks.
"""

from .cancellation import CancellationController, TerminationOutcome
from .registry import BuildJobRegistry
from .sinks import (
    CallbackProgressSink,
    CompositeProgressSink,
    LoggingProgressSink,
    ProgressSink,
    QueueProgressSink,
)
from .timeout import TimeoutController

__all__ = [
    "BuildJobRegistry",
    "CancellationController",
    "TerminationOutcome",
    "TimeoutController",
    "ProgressSink",
    "LoggingProgressSink",
    "CallbackProgressSink",
    "QueueProgressSink",
    "CompositeProgressSink",
]
