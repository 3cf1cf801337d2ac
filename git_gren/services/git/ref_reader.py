"""Read-only git queries used by the sync resolver, stale detection and listing."""

import os
from typing import List, Optional, Set, Tuple

import git

from git_gren.logging_config import get_logger
from git_gren.services.git.parsers import (
    count_lines,
    parse_branch_list,
    parse_gone_branches,
    shorten_relative_time,
)

logger = get_logger(__name__)

SHORT_SHA_LENGTH = 7

# Errors that mean "unknown" for a reader rather than a failure of the caller
READ_ERRORS = (git.exc.GitError, OSError, ValueError)


def short_sha(sha: str) -> str:
    """First 7 characters of a SHA, or the SHA itself when it is not longer."""
    if len(sha) > SHORT_SHA_LENGTH:
        return sha[:SHORT_SHA_LENGTH]
    return sha


class RefReader:
    """Single-purpose git queries.

    Every query runs one git invocation and degrades to an "unknown" value
    (False, 0, "" or an empty set) instead of raising.
    """

    def __init__(self, repo_path: str):
        """Initialize the reader.

        Args:
            repo_path: Any path inside the repository (main worktree or linked worktree)
        """
        self.repo_path = repo_path

    def _git(self, path: Optional[str] = None) -> git.Git:
        """Git command runner rooted at path (default: the repository path)."""
        return git.Git(path or self.repo_path)

    # Refs

    def local_branch_exists(self, branch: str) -> bool:
        return self._ref_exists(f"refs/heads/{branch}")

    def remote_branch_exists(self, branch: str) -> bool:
        return self._ref_exists(f"refs/remotes/origin/{branch}")

    def _ref_exists(self, ref: str) -> bool:
        try:
            self._git().show_ref("--verify", "--quiet", ref)
            return True
        except READ_ERRORS:
            return False

    def count_commits(self, from_ref: str, to_ref: str, path: Optional[str] = None) -> int:
        """Commits reachable from to_ref but not from from_ref."""
        try:
            return int(self._git(path).rev_list("--count", f"{from_ref}..{to_ref}").strip())
        except READ_ERRORS as e:
            logger.debug(f"rev-list --count {from_ref}..{to_ref} failed: {e}")
            return 0

    def ahead_behind(self, branch: str) -> Tuple[int, int]:
        """(ahead, behind) of the local branch relative to origin/<branch>."""
        remote = f"origin/{branch}"
        return self.count_commits(remote, branch), self.count_commits(branch, remote)

    def merge_base(self, a: str, b: str, path: Optional[str] = None) -> str:
        try:
            return self._git(path).merge_base(a, b).strip()
        except READ_ERRORS as e:
            logger.debug(f"merge-base {a} {b} failed: {e}")
            return ""

    def rev_parse(self, ref: str, path: Optional[str] = None) -> str:
        try:
            return self._git(path).rev_parse(ref).strip()
        except READ_ERRORS as e:
            logger.debug(f"rev-parse {ref} failed: {e}")
            return ""

    # Commits

    def commit_sha(self, path: Optional[str] = None) -> str:
        return self.rev_parse("HEAD", path)

    def short_sha(self, path: Optional[str] = None) -> str:
        return short_sha(self.commit_sha(path))

    # Branches

    def current_branch(self, path: Optional[str] = None) -> str:
        """Branch checked out at path, or "" for a detached HEAD."""
        try:
            return self._git(path).symbolic_ref("--short", "-q", "HEAD").strip()
        except READ_ERRORS:
            return ""

    def local_branches(self) -> List[str]:
        try:
            output = self._git().branch("--format=%(refname:short)")
        except READ_ERRORS as e:
            logger.debug(f"Could not list branches: {e}")
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def merged_branches(self, base: str) -> Optional[Set[str]]:
        """Branches merged into base, excluding base itself.

        Returns None when git cannot answer (e.g. base does not exist), which
        lets callers try another base branch.
        """
        try:
            output = self._git().branch("--merged", base)
        except READ_ERRORS as e:
            logger.debug(f"branch --merged {base} failed: {e}")
            return None
        return parse_branch_list(output, exclude=base)

    def gone_branches(self) -> Set[str]:
        try:
            output = self._git().branch("-vv")
        except READ_ERRORS as e:
            logger.debug(f"branch -vv failed: {e}")
            return set()
        return parse_gone_branches(output)

    def default_branch(self) -> str:
        """main, then master, then whatever origin/HEAD points at."""
        for candidate in ("main", "master"):
            if self.local_branch_exists(candidate):
                return candidate
        try:
            ref = self._git().symbolic_ref("refs/remotes/origin/HEAD").strip()
        except READ_ERRORS:
            return ""
        prefix = "refs/remotes/origin/"
        return ref[len(prefix):] if ref.startswith(prefix) else ref

    def recommended_base_branch(self) -> str:
        """Base for new branches: the current branch, else the default branch."""
        return self.current_branch() or self.default_branch()

    # Worktree state

    def status_porcelain(self, path: str) -> str:
        try:
            return self._git(path).status("--porcelain")
        except READ_ERRORS as e:
            logger.debug(f"status --porcelain in {path} failed: {e}")
            return ""

    def has_upstream(self, path: str) -> bool:
        try:
            self._git(path).rev_parse("--abbrev-ref", "--symbolic-full-name", "@{u}")
            return True
        except READ_ERRORS:
            return False

    def unpushed_count(self, path: str) -> int:
        try:
            return count_lines(self._git(path).log("@{u}..HEAD", "--oneline"))
        except READ_ERRORS:
            return 0

    def last_commit_time(self, path: str) -> str:
        try:
            return shorten_relative_time(self._git(path).log("-1", "--format=%cr"))
        except READ_ERRORS:
            return ""

    # Repository

    def toplevel(self, path: Optional[str] = None) -> str:
        """Working tree root containing path."""
        try:
            return self._git(path).rev_parse("--show-toplevel").strip()
        except READ_ERRORS:
            return ""

    def repo_root(self) -> str:
        """Root of the main worktree, from any worktree of the repository."""
        try:
            repo = git.Repo(self.repo_path, search_parent_directories=True)
            try:
                common_dir = repo.common_dir
            finally:
                repo.close()
        except READ_ERRORS as e:
            logger.debug(f"Could not resolve repository root: {e}")
            return self.toplevel() or os.path.abspath(self.repo_path)
        return os.path.dirname(os.path.abspath(common_dir))

    def fetch_origin(self) -> bool:
        """Best-effort `git fetch origin`; offline or remote-less repos just log."""
        try:
            self._git().fetch("origin")
            return True
        except READ_ERRORS as e:
            logger.debug(f"fetch origin failed (continuing with local refs): {e}")
            return False
