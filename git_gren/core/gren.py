"""Core functionality for git-gren"""

import os
import webbrowser
from typing import Dict, List, Optional

from git_gren.config import Config, ConfigManager
from git_gren.exceptions import GitHubAPIError, GrenError
from git_gren.logging_config import get_logger
from git_gren.models.worktree import (
    CleanupResult,
    CreateWorktreeRequest,
    CreateWorktreeResult,
    ForEachOptions,
    ForEachResult,
    MergeOptions,
    MergeResult,
    PRInfo,
    WorktreeInfo,
)
from git_gren.services.commit_message_service import CommitMessageGenerator
from git_gren.services.compare_service import CompareResult, CompareService, FileChange
from git_gren.services.foreach_service import ForEachExecutor
from git_gren.services.git.merge import MergeOrchestrator
from git_gren.services.git.ref_reader import RefReader
from git_gren.services.git.worktrees import WorktreeService
from git_gren.services.github_service import GitHubService
from git_gren.services.hook_service import HookRunner
from git_gren.services.init_service import InitResult, InitService
from git_gren.services.marker_service import MarkerService, parse_marker_type
from git_gren.services.navigation_service import NavigationService, SwitchResult

logger = get_logger(__name__)


class Gren:
    """Main class wiring the worktree services for one repository."""

    def __init__(
        self,
        repo_path: str,
        config: Optional[Config] = None,
        github_token: Optional[str] = None,
        use_github: bool = True,
    ):
        """Initialize Gren.

        Args:
            repo_path: Any path inside the repository, normally the cwd
            config: Configuration; loaded from .gren/ in the main worktree when None
            github_token: Token for PR/CI lookups (falls back to GITHUB_TOKEN)
            use_github: Set False to skip every GitHub lookup

        Raises:
            GrenError: If repo_path is not inside a git repository
            ConfigError: If the configuration file cannot be parsed
        """
        self.repo_path = os.path.abspath(repo_path)
        self.reader = RefReader(self.repo_path)
        if not self.reader.toplevel():
            raise GrenError(f"not a git repository: {self.repo_path}")

        self.repo_root = self.reader.repo_root()
        self.config_manager = ConfigManager(self.repo_root)
        self.config = config if config is not None else self.config_manager.load()

        self.hook_runner = HookRunner(self.config.hooks, self.repo_root, self.reader)
        self.marker_service = MarkerService(self.repo_root)
        self.github_service = GitHubService(self.repo_root, github_token) if use_github else None
        self.commit_generator = CommitMessageGenerator(self.config.commit_generator)

        self.worktree_service = WorktreeService(
            self.repo_path,
            config=self.config,
            reader=self.reader,
            hook_runner=self.hook_runner,
            marker_service=self.marker_service,
            github_service=self.github_service,
        )
        self.merge_orchestrator = MergeOrchestrator(
            self.worktree_service, commit_generator=self.commit_generator
        )
        self.foreach_executor = ForEachExecutor(self.worktree_service)
        self.compare_service = CompareService(self.worktree_service)
        self.navigation_service = NavigationService(self.worktree_service)

        logger.debug(f"Repository root: {self.repo_root}")

    # Setup

    def init(self, project_name: str = "") -> InitResult:
        return InitService(self.repo_root, self.config_manager).initialize(project_name)

    # Worktrees

    def create(
        self,
        name: str,
        branch: str = "",
        base_branch: str = "",
        create_branch: bool = False,
        worktree_dir: str = "",
    ) -> CreateWorktreeResult:
        request = CreateWorktreeRequest(
            name=name,
            branch=branch,
            base_branch=base_branch,
            create_branch=create_branch,
            worktree_dir=worktree_dir,
        )
        return self.worktree_service.create_worktree(request)

    def list(self, include_github: bool = True, include_ci: bool = False) -> List[WorktreeInfo]:
        """List worktrees; PR and CI annotations are optional and best-effort."""
        worktrees = self.worktree_service.list_worktrees()
        if include_github and self.github_service is not None:
            worktrees = self.worktree_service.enrich_with_github_status(worktrees)
            if include_ci:
                worktrees = self.worktree_service.enrich_with_ci_status(worktrees)
        return worktrees

    def delete(self, identifier: str, force: bool = False) -> str:
        return self.worktree_service.delete_worktree(identifier, force=force)

    def cleanup(self, dry_run: bool = False, force: bool = False) -> CleanupResult:
        return self.worktree_service.cleanup(force=force, dry_run=dry_run)

    # Merge workflow

    def merge(self, options: MergeOptions) -> MergeResult:
        return self.merge_orchestrator.merge(options)

    def step_commit(self, message: str = "", use_llm: bool = False) -> str:
        return self.merge_orchestrator.step_commit(message, use_llm)

    def step_squash(self, target: Optional[str] = None, message: str = "", use_llm: bool = False) -> int:
        return self.merge_orchestrator.step_squash(target, message, use_llm)

    def step_rebase(self, target: Optional[str] = None) -> bool:
        return self.merge_orchestrator.step_rebase(target)

    def step_push(self, target: Optional[str] = None) -> str:
        return self.merge_orchestrator.step_push(target)

    def step_restore(self) -> str:
        return self.merge_orchestrator.restore_backup()

    # Batch

    def for_each(self, options: ForEachOptions) -> List[ForEachResult]:
        return self.foreach_executor.run(options)

    def compare(self, source: str) -> CompareResult:
        return self.compare_service.compare(source)

    def apply_changes(self, source: str, paths: Optional[List[str]] = None) -> List[FileChange]:
        return self.compare_service.apply(source, paths)

    # Navigation

    def switch(self, query: str, execute: str = "") -> SwitchResult:
        return self.navigation_service.switch(query, execute)

    def enter(self, path: str, branch: str, execute: str = "") -> SwitchResult:
        return self.navigation_service.enter(path, branch, execute)

    # Markers

    def _marker_branch(self, branch: Optional[str]) -> str:
        branch = (branch or "").strip() or self.reader.current_branch(self.repo_path)
        if not branch:
            raise GrenError("HEAD is detached; pass a branch name")
        return branch

    def set_marker(self, marker_type: str, branch: Optional[str] = None) -> str:
        """Set an activity marker; returns the normalized marker value."""
        branch = self._marker_branch(branch)
        try:
            value = parse_marker_type(marker_type)
        except ValueError as e:
            raise GrenError(str(e)) from e
        if not self.marker_service.set_marker(branch, value):
            raise GrenError(f"could not set marker for {branch}")
        return value

    def clear_marker(self, branch: Optional[str] = None) -> bool:
        return self.marker_service.clear_marker(self._marker_branch(branch))

    def get_marker(self, branch: Optional[str] = None) -> str:
        return self.marker_service.get_marker(self._marker_branch(branch))

    def list_markers(self) -> Dict[str, str]:
        return self.marker_service.list_markers()

    # Pull requests

    def _pr_branch(self, identifier: Optional[str]) -> str:
        if identifier:
            return self.worktree_service.find_worktree(identifier).branch
        return self._marker_branch(None)

    def get_pr(self, identifier: Optional[str] = None) -> Optional[PRInfo]:
        if self.github_service is None or not self.github_service.ensure_setup():
            raise GitHubAPIError(
                "get_pr", "GitHub integration unavailable (needs a github.com origin and GITHUB_TOKEN)"
            )
        return self.github_service.get_pr_info(self._pr_branch(identifier))

    def open_pr(self, identifier: Optional[str] = None) -> Optional[PRInfo]:
        """Open the PR for a worktree (default: current) in the browser."""
        pr = self.get_pr(identifier)
        if pr is not None and pr.url:
            webbrowser.open(pr.url)
        return pr
