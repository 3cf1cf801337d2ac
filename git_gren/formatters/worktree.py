"""Worktree name formatting utilities."""

from git_gren.constants import SYMBOL_CURRENT, SYMBOL_MAIN, SYMBOL_SUBMODULES
from git_gren.models.worktree import WorktreeInfo
from git_gren.services.marker_service import marker_display


def format_worktree_name(wt: WorktreeInfo) -> str:
    """Name with current/main/submodule indicators, e.g. "* api ⌂"."""
    prefix = f"{SYMBOL_CURRENT} " if wt.is_current else "  "
    suffix = ""
    if wt.is_main:
        suffix += f" {SYMBOL_MAIN}"
    if wt.has_submodules:
        suffix += f" {SYMBOL_SUBMODULES}"
    return f"{prefix}{wt.name}{suffix}"


def format_marker(wt: WorktreeInfo) -> str:
    return marker_display(wt.marker) if wt.marker else ""
