"""Worker-count helpers for the parallel for-each and bulk PR lookups."""

import os
import sys
from typing import Any, Dict, Optional

# Upper bounds so a large machine does not spawn hundreds of git processes
MAX_WORKERS_GIL = 32
MAX_WORKERS_FREE_THREADING = 64


def is_free_threading_enabled() -> bool:
    """True on a free-threaded (no-GIL) interpreter."""
    # sys._is_gil_enabled only exists on 3.13+; older interpreters always hold the GIL
    is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    if is_gil_enabled is None:
        return False
    return not is_gil_enabled()


def get_optimal_worker_count(user_specified: Optional[int] = None) -> int:
    """Number of workers to use for independent per-worktree jobs.

    Args:
        user_specified: Explicit worker count (ignored when not positive)

    Returns:
        Worker count of at least 1
    """
    # --workers N takes precedence
    if user_specified is not None and user_specified > 0:
        return user_specified

    # cpu_count() can return None in containers
    cpu_count = os.cpu_count() or 1

    # Without a GIL the jobs run truly in parallel: 2 per CPU
    if is_free_threading_enabled():
        return min(MAX_WORKERS_FREE_THREADING, cpu_count * 2)

    # With the GIL the jobs mostly wait on git subprocesses: CPUs + 4
    return min(MAX_WORKERS_GIL, cpu_count + 4)


def get_threading_info() -> Dict[str, Any]:
    """Threading details printed by `gren --debug`."""
    return {
        "free_threading": is_free_threading_enabled(),
        "mode": "free-threading" if is_free_threading_enabled() else "GIL",
        "cpu_count": os.cpu_count() or 1,
        "optimal_workers": get_optimal_worker_count(),
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    }
