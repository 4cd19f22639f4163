"""
Command-line interface for the buildsupervisor package.

This module provides the main CLI entry point for the build supervisor.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
