"""
Build execution for the buildsupervisor package.

This module launches containerized build processes and supervises their
output and exit.
"""

from .build_process import BuildProcess, LogTail, OutputCallback, ProcessResult
from .container import CommandResult, ContainerRuntime

__all__ = [
    "BuildProcess",
    "CommandResult",
    "ContainerRuntime",
    "LogTail",
    "OutputCallback",
    "ProcessResult",
]
