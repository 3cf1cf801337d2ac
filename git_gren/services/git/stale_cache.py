"""Repository-wide stale branch detection."""

from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

from git_gren.logging_config import get_logger
from git_gren.models.branch import BranchStatus, StaleReason
from git_gren.models.worktree import WorktreeInfo
from git_gren.services.git.ref_reader import RefReader

logger = get_logger(__name__)

BASE_BRANCH_CANDIDATES = ("main", "master")


@dataclass(frozen=True)
class StaleCache:
    """Snapshot of merged and gone branches taken once per listing."""

    base_branch: str = ""
    merged: FrozenSet[str] = field(default_factory=frozenset)
    gone: FrozenSet[str] = field(default_factory=frozenset)


class StaleDetector:
    """Builds a StaleCache and classifies worktrees against it."""

    def __init__(self, reader: RefReader):
        self.reader = reader

    def build(self) -> StaleCache:
        """Query merged and gone branches once for the whole repository."""
        base_branch = ""
        merged: FrozenSet[str] = frozenset()
        for candidate in BASE_BRANCH_CANDIDATES:
            result = self.reader.merged_branches(candidate)
            if result is not None:
                base_branch = candidate
                merged = frozenset(result)
                break

        gone = frozenset(self.reader.gone_branches())
        logger.debug(
            f"Stale cache: base={base_branch or '-'} merged={sorted(merged)} gone={sorted(gone)}"
        )
        return StaleCache(base_branch=base_branch, merged=merged, gone=gone)

    def classify(self, wt: WorktreeInfo, cache: StaleCache) -> Tuple[BranchStatus, StaleReason]:
        """Return (branch_status, stale_reason) for a worktree.

        The main worktree, missing worktrees and detached or bare checkouts are
        never stale.
        """
        if wt.is_main or wt.is_missing or wt.is_detached:
            return BranchStatus.ACTIVE, StaleReason.NONE

        if wt.branch in cache.merged:
            ahead = self.reader.count_commits(cache.base_branch, wt.branch)
            if ahead == 0:
                return BranchStatus.STALE, StaleReason.NO_UNIQUE_COMMITS
            return BranchStatus.STALE, StaleReason.MERGED_LOCALLY

        if wt.branch in cache.gone:
            return BranchStatus.STALE, StaleReason.REMOTE_GONE

        return BranchStatus.ACTIVE, StaleReason.NONE
