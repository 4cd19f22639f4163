"""
Process tree signalling utilities.

The local build process is the container client; it may have helper
children of its own. Forced termination signals the whole tree so nothing
outlives the job.
"""

import logging
import signal
from typing import List

import psutil

logger = logging.getLogger(__name__)


def is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def get_process_children(parent: psutil.Process) -> List[psutil.Process]:
    """Safely get all live descendants of a process, handling race conditions."""
    children = []
    try:
        for child in parent.children(recursive=True):
            if is_process_alive(child):
                children.append(child)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        # Parent or children may have exited during enumeration
        pass
    return children


def signal_process_tree(pid: int, sig: int = signal.SIGTERM, name: str = "process") -> List[int]:
    """
    Send ``sig`` to a process and all of its live descendants.

    Children are signalled before the parent so they cannot be re-parented
    out of reach.

    Args:
        pid: Root of the process tree
        sig: Signal to send
        name: Human-readable name for log messages

    Returns:
        PIDs that were signalled
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping signal")
        return []

    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"{name} (PID: {pid}) already exited")
        return []

    signalled = []
    for process in get_process_children(parent) + [parent]:
        try:
            if not is_process_alive(process):
                continue
            process.send_signal(sig)
            signalled.append(process.pid)
            logger.debug(f"Sent {signal.Signals(sig).name} to PID {process.pid}")
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning(f"Access denied sending {signal.Signals(sig).name} to PID {process.pid}")

    if signalled:
        logger.info(f"Sent {signal.Signals(sig).name} to {len(signalled)} processes of {name}")
    return signalled


def kill_process_tree(pid: int, name: str = "process") -> List[int]:
    """Unconditionally kill a process and all of its descendants."""
    return signal_process_tree(pid, signal.SIGKILL, name)
