"""Branch model and related enums"""
from enum import Enum
from dataclasses import dataclass


class BranchStatus(Enum):
    """Lifecycle status of a worktree's branch."""
    ACTIVE = "active"
    STALE = "stale"
    UNKNOWN = ""


class StaleReason(Enum):
    """Why a branch was classified as stale."""
    NONE = ""
    MERGED_LOCALLY = "merged_locally"
    NO_UNIQUE_COMMITS = "no_unique_commits"
    REMOTE_GONE = "remote_gone"
    PR_MERGED = "pr_merged"
    PR_CLOSED = "pr_closed"


@dataclass(frozen=True)
class BranchSyncStatus:
    """Relationship between a local branch and origin/<branch>.

    source_ref is always the branch name, "origin/<branch>", or "" when
    neither ref exists.
    """
    branch: str
    local_exists: bool = False
    remote_exists: bool = False
    ahead: int = 0
    behind: int = 0
    source_ref: str = ""
    warning: str = ""

    @property
    def exists(self) -> bool:
        return self.local_exists or self.remote_exists

    @property
    def uses_remote(self) -> bool:
        return bool(self.source_ref) and self.source_ref != self.branch
