"""
Build output classification for the buildsupervisor package.

This module derives structured progress from unstructured build output
using configurable rules.
"""

from .classifier import (
    DEFAULT_PROGRESS_RULES,
    ProgressClassifier,
    ProgressUpdate,
    RuleBasedProgressClassifier,
    create_classifier,
)

__all__ = [
    "DEFAULT_PROGRESS_RULES",
    "ProgressClassifier",
    "ProgressUpdate",
    "RuleBasedProgressClassifier",
    "create_classifier",
]
