"""GitHub API integration service (pull request and CI annotations)"""
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING
from urllib.parse import urlparse

import git
from github import Github

from git_gren.logging_config import get_logger
from git_gren.models.worktree import CIInfo, PRInfo
from git_gren.utils.threading import get_optimal_worker_count

if TYPE_CHECKING:
    from github.Repository import Repository

logger = get_logger(__name__)

FAILED_CONCLUSIONS = {"failure", "cancelled", "timed_out", "action_required", "startup_failure"}
PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}
MAX_BULK_WORKERS = 10


def parse_github_repo(remote_url: str) -> Optional[str]:
    """owner/repo from an SSH or HTTPS GitHub remote URL, or None."""
    if "github.com" not in remote_url:
        return None
    if remote_url.startswith("git@"):
        # git@github.com:org/repo.git
        path = remote_url.split("github.com:", 1)[1]
    else:
        # https://github.com/org/repo.git
        path = urlparse(remote_url).path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return path or None


def pr_display_state(pr) -> str:
    """OPEN, DRAFT, MERGED or CLOSED for a PyGithub PullRequest."""
    if pr.merged:
        return "MERGED"
    if pr.state == "closed":
        return "CLOSED"
    if getattr(pr, "draft", False):
        return "DRAFT"
    return "OPEN"


def aggregate_check_runs(check_runs: Iterable) -> CIInfo:
    """Reduce a set of check runs to one status.

    Any failed run wins, then any unfinished run, then all-passing.
    """
    runs = list(check_runs)
    if not runs:
        return CIInfo(status="unknown")

    conclusions = [(run.conclusion or "").lower() for run in runs]
    statuses = [(run.status or "").lower() for run in runs]

    if any(c in FAILED_CONCLUSIONS for c in conclusions):
        return CIInfo(status="failure", conclusion="Some checks failed")
    if any(s != "completed" for s in statuses):
        return CIInfo(status="pending", conclusion="Checks in progress")
    if all(c in PASSING_CONCLUSIONS for c in conclusions):
        return CIInfo(status="success", conclusion="All checks passed")
    return CIInfo(status="unknown")


class GitHubService:
    """Optional PR/CI provider. Every lookup degrades to "no annotation"."""

    def __init__(self, repo_path: str, github_token: Optional[str] = None):
        """Initialize the service."""
        self.repo_path = repo_path
        self.github_token = github_token or os.environ.get("GITHUB_TOKEN")
        self.github_repo: Optional[str] = None
        self.github_enabled = False
        self.github: Optional[Github] = None
        self.gh_repo: Optional['Repository'] = None
        self._setup_done = False

    def setup_github_api(self, remote_url: str) -> None:
        """Setup GitHub API access."""
        try:
            path = parse_github_repo(remote_url)
            if not path:
                logger.debug("[GitHub] Not a GitHub repository")
                return

            self.github_repo = path

            if not self.github_token:
                logger.debug("[GitHub] No GitHub token found. Running without PR status")
                return

            self.github = Github(self.github_token)
            self.gh_repo = self.github.get_repo(self.github_repo)
            self.github_enabled = True
            logger.debug(f"[GitHub] GitHub integration enabled for: {path}")

        except Exception as e:
            logger.debug(f"[GitHub] Failed to setup GitHub API: {e}")
            self.github_enabled = False

    def ensure_setup(self) -> bool:
        """Lazily configure the API from the origin remote; True when usable."""
        if not self._setup_done:
            self._setup_done = True
            try:
                repo = git.Repo(self.repo_path, search_parent_directories=True)
                try:
                    remote_url = repo.remotes.origin.url
                finally:
                    repo.close()
            except (git.exc.GitError, AttributeError, IndexError, OSError) as e:
                logger.debug(f"[GitHub] No origin remote: {e}")
                return False
            self.setup_github_api(remote_url)
        return self.is_available()

    def is_available(self) -> bool:
        return self.github_enabled and self.gh_repo is not None and self.github_repo is not None

    def _find_pull(self, branch_name: str):
        """Most recent pull request whose head is branch_name, or None."""
        assert self.gh_repo is not None and self.github_repo is not None
        owner = self.github_repo.split('/')[0]
        pulls = list(self.gh_repo.get_pulls(state='all', head=f"{owner}:{branch_name}"))
        if not pulls:
            return None
        return max(pulls, key=lambda pr: pr.created_at)

    def get_pr_info(self, branch_name: str) -> Optional[PRInfo]:
        """PR number, state and URL for a branch."""
        if not self.ensure_setup():
            return None
        try:
            pr = self._find_pull(branch_name)
        except Exception as e:
            logger.debug(f"[GitHub] Error getting PR for {branch_name}: {e}")
            return None
        if pr is None:
            return None
        return PRInfo(
            number=pr.number,
            state=pr_display_state(pr),
            url=pr.html_url,
            head_sha=pr.head.sha,
        )

    def get_ci_status(self, branch_name: str, pr: Optional[PRInfo] = None) -> Optional[CIInfo]:
        """Aggregated check-run status for the branch's PR head commit."""
        if not self.ensure_setup():
            return None
        pr = pr or self.get_pr_info(branch_name)
        if pr is None or not pr.head_sha:
            return None
        try:
            commit = self.gh_repo.get_commit(pr.head_sha)
            return aggregate_check_runs(commit.get_check_runs())
        except Exception as e:
            logger.debug(f"[GitHub] Error getting checks for {branch_name}: {e}")
            return None

    def get_bulk_pr_info(self, branches: List[str], workers: Optional[int] = None) -> Dict[str, PRInfo]:
        """Fetch PR info for many branches in parallel."""
        if not branches or not self.ensure_setup():
            return {}

        max_workers = min(MAX_BULK_WORKERS, get_optimal_worker_count(workers), len(branches))
        results: Dict[str, PRInfo] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.get_pr_info, branch): branch for branch in branches}
            for future in as_completed(futures):
                branch = futures[future]
                try:
                    info = future.result()
                except Exception as e:
                    logger.debug(f"[GitHub] PR lookup for {branch} failed: {e}")
                    continue
                if info is not None:
                    results[branch] = info

        logger.debug(f"[GitHub] Found PRs for {len(results)} of {len(branches)} branches")
        return results
