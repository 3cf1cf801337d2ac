"""Status formatting utilities."""

from git_gren.constants import (
    STALE_REASON_DISPLAY,
    STATUS_DISPLAY,
    SYMBOL_MODIFIED,
    SYMBOL_STAGED,
    SYMBOL_UNPUSHED,
    SYMBOL_UNTRACKED,
    WorktreeStyleType,
)
from git_gren.models.worktree import WorktreeInfo, WorktreeStatus


def format_status(status: WorktreeStatus) -> str:
    """
    Format worktree status as display text.

    Args:
        status: Worktree status enum value

    Returns:
        Display text for status
    """
    return STATUS_DISPLAY.get(status.value, status.value)


def format_changes(wt: WorktreeInfo) -> str:
    """
    Compact file and commit counts, e.g. "+1 ~2 ?3 ↑1".

    Args:
        wt: Worktree information

    Returns:
        Space-separated indicators, empty for a clean worktree
    """
    parts = []
    if wt.staged_count:
        parts.append(f"{SYMBOL_STAGED}{wt.staged_count}")
    if wt.modified_count:
        parts.append(f"{SYMBOL_MODIFIED}{wt.modified_count}")
    if wt.untracked_count:
        parts.append(f"{SYMBOL_UNTRACKED}{wt.untracked_count}")
    if wt.unpushed_count:
        parts.append(f"{SYMBOL_UNPUSHED}{wt.unpushed_count}")
    return " ".join(parts)


def format_stale_reason(wt: WorktreeInfo) -> str:
    """Human-readable stale reason, empty for active worktrees."""
    if not wt.is_stale:
        return ""
    return STALE_REASON_DISPLAY.get(wt.stale_reason.value, wt.stale_reason.value)


def get_worktree_style_type(wt: WorktreeInfo) -> str:
    """
    Determine the row style for a worktree.

    Returns:
        WorktreeStyleType constant
    """
    if wt.is_current:
        return WorktreeStyleType.CURRENT
    if wt.is_missing:
        return WorktreeStyleType.MISSING
    if wt.is_stale:
        return WorktreeStyleType.STALE
    if wt.status in (WorktreeStatus.MODIFIED, WorktreeStatus.UNTRACKED, WorktreeStatus.MIXED):
        return WorktreeStyleType.DIRTY
    return WorktreeStyleType.ACTIVE
