"""Worktree data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from git_gren.models.branch import BranchStatus, StaleReason

DETACHED = "(detached)"
BARE = "(bare)"


class WorktreeStatus(Enum):
    """Working-tree state of a worktree."""

    CLEAN = "clean"
    MODIFIED = "modified"
    UNTRACKED = "untracked"
    MIXED = "mixed"
    UNPUSHED = "unpushed"
    MISSING = "missing"


@dataclass
class WorktreeInfo:
    """Information about a git worktree."""

    name: str
    path: str
    branch: str
    head: str = ""
    is_current: bool = False
    is_main: bool = False  # .git is a directory, not a pointer file
    status: WorktreeStatus = WorktreeStatus.CLEAN
    staged_count: int = 0
    modified_count: int = 0
    untracked_count: int = 0
    unpushed_count: int = 0
    last_commit: str = ""
    has_submodules: bool = False
    branch_status: BranchStatus = BranchStatus.UNKNOWN
    stale_reason: StaleReason = StaleReason.NONE
    pr_number: int = 0
    pr_state: str = ""
    pr_url: str = ""
    ci_status: str = ""
    ci_conclusion: str = ""
    marker: str = ""

    @property
    def is_missing(self) -> bool:
        return self.status == WorktreeStatus.MISSING

    @property
    def is_detached(self) -> bool:
        return self.branch in (DETACHED, BARE)

    @property
    def is_stale(self) -> bool:
        return self.branch_status == BranchStatus.STALE

    def __str__(self) -> str:
        """String representation of worktree."""
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch} @ {self.path}{main_marker} [{self.status.value}]"


@dataclass
class PRInfo:
    """Pull request summary for a branch."""

    number: int
    state: str  # OPEN, MERGED, CLOSED, DRAFT
    url: str = ""
    head_sha: str = ""


@dataclass
class CIInfo:
    """Aggregated check-run state for a pull request."""

    status: str  # success, failure, pending, unknown
    conclusion: str = ""


@dataclass
class CreateWorktreeRequest:
    """Request to create a worktree."""

    name: str
    branch: str = ""
    base_branch: str = ""
    create_branch: bool = False
    worktree_dir: str = ""


@dataclass
class CreateWorktreeResult:
    """Outcome of a successful worktree creation."""

    path: str
    branch: str
    source_ref: str
    warning: str = ""
    hook_output: str = ""


@dataclass
class MergeOptions:
    """Options for the one-shot merge workflow."""

    target: str = ""
    squash: bool = True
    rebase: bool = True
    remove: bool = True
    verify: bool = True
    force: bool = False


@dataclass
class MergeResult:
    """Outcome of a merge invocation."""

    source_branch: str = ""
    target_branch: str = ""
    commits_squashed: int = 0
    worktree_removed: bool = False
    remove_error: str = ""
    skipped: bool = False
    skip_reason: str = ""
    hook_output: List[str] = field(default_factory=list)


@dataclass
class ForEachOptions:
    """Options for running a command across worktrees."""

    command: List[str]
    skip_current: bool = False
    skip_main: bool = False
    parallel: bool = False
    workers: Optional[int] = None


@dataclass
class ForEachResult:
    """Result of running a command in one worktree."""

    worktree: str
    branch: str
    path: str
    output: str = ""
    exit_code: int = 0
    error: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.error


@dataclass
class CleanupResult:
    """Stale worktrees found by cleanup and what happened to each."""

    candidates: List[WorktreeInfo] = field(default_factory=list)
    deleted: List[WorktreeInfo] = field(default_factory=list)
    failed: List[Tuple[WorktreeInfo, str]] = field(default_factory=list)
