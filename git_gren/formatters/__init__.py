"""Formatting utilities for git-gren.

This package provides formatting functions for displaying worktree information:
- status: Working-tree status, change counts and stale reasons
- links: Pull request and CI annotations
- worktree: Worktree names and activity markers
"""

from .status import (
    format_status,
    format_changes,
    format_stale_reason,
    get_worktree_style_type,
)
from .links import format_pr_link
from .worktree import format_worktree_name, format_marker

__all__ = [
    # Status
    "format_status",
    "format_changes",
    "format_stale_reason",
    "get_worktree_style_type",
    # Links
    "format_pr_link",
    # Worktree
    "format_worktree_name",
    "format_marker",
]
