"""Process helpers for subprocess-backed hooks."""

import logging
from contextlib import suppress

import psutil

logger = logging.getLogger(__name__)


def kill_process_tree(pid: int) -> int:
    """Kill a process and all of its descendants.

    Hooks run through a shell, so the shell's children must be collected
    before the shell itself is killed or they are reparented and keep running.

    Args:
        pid: Root process ID

    Returns:
        Number of processes signalled
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    killed = 0
    for child in children:
        with suppress(psutil.NoSuchProcess):
            child.kill()
            killed += 1

    with suppress(psutil.NoSuchProcess):
        parent.kill()
        killed += 1

    logger.debug("Killed process tree rooted at %d (%d processes)", pid, killed)
    return killed
