"""Data models for git-gren."""

from .branch import BranchStatus, StaleReason, BranchSyncStatus
from .hook import HookType, HookResult
from .worktree import (
    BARE,
    DETACHED,
    CIInfo,
    CleanupResult,
    CreateWorktreeRequest,
    CreateWorktreeResult,
    ForEachOptions,
    ForEachResult,
    MergeOptions,
    MergeResult,
    PRInfo,
    WorktreeInfo,
    WorktreeStatus,
)

__all__ = [
    "BARE",
    "DETACHED",
    "BranchStatus",
    "StaleReason",
    "BranchSyncStatus",
    "HookType",
    "HookResult",
    "CIInfo",
    "CleanupResult",
    "CreateWorktreeRequest",
    "CreateWorktreeResult",
    "ForEachOptions",
    "ForEachResult",
    "MergeOptions",
    "MergeResult",
    "PRInfo",
    "WorktreeInfo",
    "WorktreeStatus",
]
