"""Decide which ref a new worktree should be checked out from."""

from git_gren.logging_config import get_logger
from git_gren.models.branch import BranchSyncStatus
from git_gren.services.git.ref_reader import RefReader

logger = get_logger(__name__)


class BranchSyncResolver:
    """Reconciles a local branch with origin/<branch>.

    Local commits are never discarded: when the local branch is ahead it wins
    and a warning is attached. Otherwise the remote ref is preferred so new
    worktrees start from what the team has pushed.
    """

    def __init__(self, reader: RefReader):
        self.reader = reader

    def resolve(self, branch: str, fetch: bool = True) -> BranchSyncStatus:
        """Resolve the sync status of branch, after a best-effort fetch."""
        if fetch:
            self.reader.fetch_origin()

        local_exists = self.reader.local_branch_exists(branch)
        remote_exists = self.reader.remote_branch_exists(branch)
        logger.debug(f"Sync {branch}: local={local_exists} remote={remote_exists}")

        if local_exists and not remote_exists:
            return BranchSyncStatus(branch, local_exists=True, source_ref=branch)

        if remote_exists and not local_exists:
            return BranchSyncStatus(branch, remote_exists=True, source_ref=f"origin/{branch}")

        if not local_exists and not remote_exists:
            return BranchSyncStatus(branch)

        ahead, behind = self.reader.ahead_behind(branch)
        logger.debug(f"Sync {branch}: ahead={ahead} behind={behind}")

        if ahead > 0:
            return BranchSyncStatus(
                branch,
                local_exists=True,
                remote_exists=True,
                ahead=ahead,
                behind=behind,
                source_ref=branch,
                warning=f"{branch} has {ahead} unpushed commit(s) - using local version",
            )

        return BranchSyncStatus(
            branch,
            local_exists=True,
            remote_exists=True,
            ahead=ahead,
            behind=behind,
            source_ref=f"origin/{branch}",
        )
