"""
System interaction utilities.

This module provides process tree inspection and signalling used when a
build job has to be stopped.
"""

from .processes import (
    get_process_children,
    is_process_alive,
    kill_process_tree,
    signal_process_tree,
)

__all__ = [
    "get_process_children",
    "is_process_alive",
    "kill_process_tree",
    "signal_process_tree",
]
