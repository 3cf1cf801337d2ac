"""Git-related services for git-gren."""

from .ref_reader import RefReader
from .sync_resolver import BranchSyncResolver
from .stale_cache import StaleCache, StaleDetector
from .worktrees import WorktreeService
from .merge import MergeOrchestrator

__all__ = [
    "RefReader",
    "BranchSyncResolver",
    "StaleCache",
    "StaleDetector",
    "WorktreeService",
    "MergeOrchestrator",
]
