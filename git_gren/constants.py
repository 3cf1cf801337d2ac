"""Shared constants for git-gren."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("name", "Worktree", 24),
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("status", "Status", 10),
    ColumnDefinition("changes", "Changes", 12),
    ColumnDefinition("last_commit", "Last Commit", 10),
    ColumnDefinition("stale", "Stale", 18),
    ColumnDefinition("pr", "PR", 14),
    ColumnDefinition("marker", "Marker", 8),
    ColumnDefinition("path", "Path", 0),
]


# Symbol constants
SYMBOL_CURRENT = "*"
SYMBOL_MAIN = "⌂"
SYMBOL_SUBMODULES = "📦"
SYMBOL_STAGED = "+"
SYMBOL_MODIFIED = "~"
SYMBOL_UNTRACKED = "?"
SYMBOL_UNPUSHED = "↑"


# Status display names
STATUS_DISPLAY = {
    "clean": "clean",
    "modified": "modified",
    "untracked": "untracked",
    "mixed": "mixed",
    "unpushed": "unpushed",
    "missing": "missing",
}

STALE_REASON_DISPLAY = {
    "merged_locally": "merged",
    "no_unique_commits": "no unique commits",
    "remote_gone": "remote gone",
    "pr_merged": "PR merged",
    "pr_closed": "PR closed",
}

CI_SYMBOLS = {
    "success": "✓",
    "failure": "✗",
    "pending": "…",
}


class WorktreeStyleType:
    """Row style types for worktrees."""

    CURRENT = "current"
    STALE = "stale"
    MISSING = "missing"
    DIRTY = "dirty"
    ACTIVE = "active"


# CLI colors (Rich color names)
CLI_COLORS = {
    WorktreeStyleType.CURRENT: "bold green",
    WorktreeStyleType.STALE: "yellow",
    WorktreeStyleType.MISSING: "red",
    WorktreeStyleType.DIRTY: "cyan",
    WorktreeStyleType.ACTIVE: None,
}


LEGEND_TEXT = """
Legend:
* = Current worktree      ⌂ = Main worktree
+N = Staged files         ~N = Modified files
?N = Untracked files      ↑N = Unpushed commits
📦 = Has submodules (removed with force)

Colors:
Green = Current worktree
Yellow = Stale (safe to clean up)
Red = Missing directory
"""
