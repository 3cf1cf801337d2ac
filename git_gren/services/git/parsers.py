"""Parsers for git's text output.

Each function takes the raw stdout of one git command and returns plain data,
so the parsing can be tested without running git.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Set

from git_gren.models.worktree import BARE, DETACHED

_RELATIVE_UNITS = {
    "second": "s",
    "minute": "m",
    "hour": "h",
    "day": "d",
    "week": "w",
    "month": "mo",
    "year": "y",
}
_RELATIVE_RE = re.compile(r"(\d+)\s+(second|minute|hour|day|week|month|year)s?\b")


@dataclass
class PorcelainWorktree:
    """One record of `git worktree list --porcelain`."""

    path: str
    head: str = ""
    branch: str = ""
    bare: bool = False
    detached: bool = False
    locked: bool = False
    prunable: bool = False

    @property
    def display_branch(self) -> str:
        if self.bare:
            return BARE
        if self.detached or not self.branch:
            return DETACHED
        return self.branch


@dataclass
class StatusCounts:
    """File counts from `git status --porcelain`."""

    staged: int = 0
    modified: int = 0
    untracked: int = 0

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.modified or self.untracked)


def parse_worktree_porcelain(output: str) -> List[PorcelainWorktree]:
    """Parse `git worktree list --porcelain`.

    Records are separated by blank lines; the first line of each record is
    ``worktree <path>``. Branch refs are reported as ``refs/heads/<name>``.
    """
    worktrees: List[PorcelainWorktree] = []
    current: Optional[PorcelainWorktree] = None

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            current = None
            continue

        if line.startswith("worktree "):
            current = PorcelainWorktree(path=line.split(" ", 1)[1])
            worktrees.append(current)
            continue

        if current is None:
            continue

        if line.startswith("HEAD "):
            current.head = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            ref = line.split(" ", 1)[1]
            if ref.startswith("refs/heads/"):
                current.branch = ref[len("refs/heads/"):]
            else:
                current.branch = ref
        elif line == "detached":
            current.detached = True
        elif line == "bare":
            current.bare = True
        elif line.startswith("locked"):
            current.locked = True
        elif line.startswith("prunable"):
            current.prunable = True

    return worktrees


def _strip_branch_marker(line: str) -> str:
    # "* " marks the current branch, "+ " a branch checked out in another worktree
    line = line.strip()
    if line.startswith("* ") or line.startswith("+ "):
        line = line[2:]
    return line.strip()


def parse_branch_list(output: str, exclude: Optional[str] = None) -> Set[str]:
    """Parse `git branch` / `git branch --merged <base>` output into names."""
    branches = set()
    for raw_line in output.splitlines():
        name = _strip_branch_marker(raw_line)
        # "(HEAD detached at abc123)" is not a branch
        if not name or name.startswith("("):
            continue
        if exclude and name == exclude:
            continue
        branches.add(name)
    return branches


def parse_gone_branches(output: str) -> Set[str]:
    """Branches whose upstream is reported as gone by `git branch -vv`."""
    gone = set()
    for raw_line in output.splitlines():
        if ": gone]" not in raw_line:
            continue
        stripped = _strip_branch_marker(raw_line)
        parts = stripped.split()
        if parts:
            gone.add(parts[0])
    return gone


def parse_status_counts(output: str) -> StatusCounts:
    """Count staged, modified and untracked entries in `git status --porcelain`.

    Each line is ``XY path`` where X is the index state and Y the
    working-tree state.
    """
    counts = StatusCounts()
    for line in output.splitlines():
        if len(line) < 2:
            continue
        if line.startswith("??"):
            counts.untracked += 1
            continue
        index_status, worktree_status = line[0], line[1]
        if index_status not in (" ", "?"):
            counts.staged += 1
        if worktree_status not in (" ", "?"):
            counts.modified += 1
    return counts


def shorten_relative_time(text: str) -> str:
    """Shorten git's ``%cr`` output, e.g. "2 hours ago" -> "2h ago"."""
    text = text.strip()
    if not text:
        return ""
    match = _RELATIVE_RE.search(text)
    if not match:
        return text
    return f"{match.group(1)}{_RELATIVE_UNITS[match.group(2)]} ago"


def count_lines(output: str) -> int:
    """Number of non-empty lines, e.g. for `git log --oneline`."""
    return sum(1 for line in output.splitlines() if line.strip())


def parse_porcelain_changes(output: str) -> List[tuple]:
    """(path, status) pairs from `git status --porcelain`.

    Status is "added" for untracked or added files, "deleted" for deletions and
    "modified" otherwise. Renames report the new path.
    """
    changes = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        if "?" in code or "A" in code:
            status = "added"
        elif "D" in code:
            status = "deleted"
        else:
            status = "modified"
        changes.append((path, status))
    return changes


def parse_name_status(output: str) -> List[tuple]:
    """(path, status) pairs from `git diff --name-status`."""
    changes = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            parts = line.split()
        if len(parts) < 2:
            continue
        code = parts[0][:1]
        path = parts[-1]
        if code == "A":
            status = "added"
        elif code == "D":
            status = "deleted"
        else:
            status = "modified"
        changes.append((path, status))
    return changes
