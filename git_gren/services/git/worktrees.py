"""Worktree lifecycle service: create, list, enrich and delete worktrees."""

import os
from dataclasses import replace
from typing import List, Optional, Tuple

import git

from git_gren.config import Config, default_worktree_dir
from git_gren.exceptions import (
    BranchAlreadyCheckedOutError,
    BranchNotFoundError,
    CurrentWorktreeError,
    GitOperationError,
    GrenError,
    HookFailedError,
    WorktreeNotFoundError,
    WorktreeRemoveError,
)
from git_gren.logging_config import get_logger
from git_gren.models.branch import BranchStatus, StaleReason
from git_gren.models.hook import HookType
from git_gren.models.worktree import (
    CleanupResult,
    CreateWorktreeRequest,
    CreateWorktreeResult,
    WorktreeInfo,
    WorktreeStatus,
)
from git_gren.services.git.errors import format_git_error, git_error_text
from git_gren.services.git.parsers import parse_status_counts, parse_worktree_porcelain
from git_gren.services.git.ref_reader import RefReader
from git_gren.services.git.stale_cache import StaleDetector
from git_gren.services.git.sync_resolver import BranchSyncResolver
from git_gren.services.hook_service import HookRunner
from git_gren.services.marker_service import MarkerService
from git_gren.services.template import sanitize_branch

logger = get_logger(__name__)

SUBMODULE_HINT = (
    "Submodules may need to be deinitialized first: "
    "run 'git submodule deinit --all --force' in the worktree."
)
UNCOMMITTED_HINT = (
    "The worktree has uncommitted changes. Commit or stash them first, or use force delete."
)
FORCE_HINT = "Use force delete to remove anyway."


def removal_hint(stderr: str) -> str:
    """Remediation hint for a failed `git worktree remove`."""
    lowered = stderr.lower()
    if "submodule" in lowered:
        return SUBMODULE_HINT
    if "modified or untracked" in lowered:
        return UNCOMMITTED_HINT
    return FORCE_HINT


def has_submodules(path: str) -> bool:
    return os.path.isfile(os.path.join(path, ".gitmodules"))


class WorktreeService:
    """Service for managing git worktrees."""

    def __init__(
        self,
        repo_path: str,
        config: Optional[Config] = None,
        reader: Optional[RefReader] = None,
        hook_runner: Optional[HookRunner] = None,
        marker_service: Optional[MarkerService] = None,
        github_service=None,
    ):
        """Initialize the worktree service.

        Args:
            repo_path: Path inside the repository (normally the process cwd)
            config: Loaded gren configuration
            reader: Read-only git queries
            hook_runner: Runs lifecycle hooks
            marker_service: Activity marker store
            github_service: Optional PR/CI provider (None disables PR enrichment)
        """
        self.repo_path = repo_path
        self.config = config or Config()
        self.reader = reader or RefReader(repo_path)
        self.repo_root = self.reader.repo_root()
        self.sync_resolver = BranchSyncResolver(self.reader)
        self.stale_detector = StaleDetector(self.reader)
        self.hook_runner = hook_runner or HookRunner(self.config.hooks, self.repo_root, self.reader)
        self.marker_service = marker_service or MarkerService(self.repo_root)
        self.github_service = github_service

    def _git(self, path: Optional[str] = None) -> git.Git:
        return git.Git(path or self.repo_path)

    # Create

    def resolve_worktree_dir(self, override: str = "") -> str:
        """Directory for new worktrees: explicit override, then config, then ../<repo>-worktrees."""
        configured = override or self.config.worktree_dir
        if not configured:
            return default_worktree_dir(self.repo_root)
        configured = os.path.expanduser(configured)
        if not os.path.isabs(configured):
            configured = os.path.join(self.repo_root, configured)
        return os.path.normpath(configured)

    def create_worktree(self, request: CreateWorktreeRequest) -> CreateWorktreeResult:
        """Create a worktree for request.branch (default: request.name).

        Raises:
            BranchAlreadyCheckedOutError: If the branch is checked out in another worktree
            BranchNotFoundError: If the branch does not exist and create_branch is False
            GitOperationError: If git refuses to add the worktree
        """
        name = sanitize_branch(request.name.strip())
        if not name:
            raise GrenError("worktree name cannot be empty")
        branch = request.branch.strip() or request.name.strip()

        self.reader.fetch_origin()

        worktree_dir = self.resolve_worktree_dir(request.worktree_dir)
        path = os.path.join(worktree_dir, name)
        if os.path.exists(path):
            raise GrenError(f"worktree path already exists: {path}")

        sync = self.sync_resolver.resolve(branch, fetch=False)

        # Best-effort: git re-validates this when adding the worktree
        for existing in self.read_worktrees():
            if existing.branch == branch:
                raise BranchAlreadyCheckedOutError(branch, existing.path)

        base_ref = ""
        warning = sync.warning
        if sync.local_exists and not sync.remote_exists:
            args = ["add", path, branch]
        elif sync.remote_exists and not sync.local_exists:
            args = ["add", "--track", "-b", branch, path, f"origin/{branch}"]
        elif sync.exists:
            if sync.ahead == 0 and sync.behind > 0:
                self._fast_forward_local_branch(branch)
            args = ["add", path, branch]
        else:
            if not request.create_branch:
                raise BranchNotFoundError(branch)
            base_ref, warning = self._resolve_base_ref(request.base_branch)
            args = ["add", "-b", branch, path]
            if base_ref:
                if base_ref.startswith("origin/"):
                    args.insert(1, "--no-track")
                args.append(base_ref)

        os.makedirs(worktree_dir, exist_ok=True)
        logger.info(f"Creating worktree {path} for {branch} (git worktree {' '.join(args[1:])})")
        try:
            self._git(self.repo_root).worktree(*args)
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree_add", branch, format_git_error("worktree add", e)) from e

        self._init_submodules(path)
        self._link_config_dir(path)

        hook_result = self.hook_runner.run(
            HookType.POST_CREATE, path, branch, base_branch=base_ref or request.base_branch
        )
        if not hook_result.success:
            logger.warning(f"post-create hook failed for {path}: {hook_result.error}")
            hook_warning = f"post-create hook failed: {hook_result.error}"
            warning = f"{warning}\n{hook_warning}" if warning else hook_warning

        return CreateWorktreeResult(
            path=path,
            branch=branch,
            source_ref=sync.source_ref or base_ref,
            warning=warning,
            hook_output=hook_result.output,
        )

    def _resolve_base_ref(self, base_branch: str) -> Tuple[str, str]:
        """Start point for a new branch and the base branch's sync warning."""
        base = base_branch.strip() or self.reader.recommended_base_branch()
        if not base:
            return "", ""
        base_sync = self.sync_resolver.resolve(base, fetch=False)
        if base_sync.warning:
            logger.warning(base_sync.warning)
        return base_sync.source_ref or base, base_sync.warning

    def _fast_forward_local_branch(self, branch: str) -> None:
        """Move refs/heads/<branch> to origin/<branch> when the local branch is strictly behind."""
        old_sha = self.reader.rev_parse(f"refs/heads/{branch}")
        new_sha = self.reader.rev_parse(f"refs/remotes/origin/{branch}")
        if not old_sha or not new_sha:
            return
        try:
            self._git(self.repo_root).update_ref(f"refs/heads/{branch}", new_sha, old_sha)
            logger.info(f"Fast-forwarded {branch} to origin/{branch}")
        except git.exc.GitCommandError as e:
            logger.warning(f"Could not fast-forward {branch}: {format_git_error('update-ref', e)}")

    def _init_submodules(self, path: str) -> None:
        if not has_submodules(path):
            return
        try:
            self._git(path).submodule("update", "--init", "--recursive")
            logger.info(f"Initialized submodules in {path}")
        except git.exc.GitCommandError as e:
            logger.warning(f"Submodule init failed in {path}: {format_git_error('submodule update', e)}")

    def _link_config_dir(self, path: str) -> None:
        source = os.path.join(self.repo_root, ".gren")
        target = os.path.join(path, ".gren")
        if not os.path.isdir(source) or os.path.lexists(target):
            return
        try:
            os.symlink(source, target)
            logger.debug(f"Linked {target} -> {source}")
        except OSError as e:
            logger.debug(f"Could not link .gren into {path}: {e}")

    # List

    def read_worktrees(self) -> List[WorktreeInfo]:
        """Parse `git worktree list --porcelain` without any enrichment."""
        try:
            output = self._git().worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree_list", message=format_git_error("worktree list", e)) from e

        current_root = os.path.realpath(self.reader.toplevel(self.repo_path) or self.repo_path)
        worktrees = []
        for record in parse_worktree_porcelain(output):
            exists = os.path.isdir(record.path)
            worktrees.append(
                WorktreeInfo(
                    name=os.path.basename(record.path.rstrip(os.sep)),
                    path=record.path,
                    branch=record.display_branch,
                    head=record.head,
                    is_current=exists and os.path.realpath(record.path) == current_root,
                    is_main=os.path.isdir(os.path.join(record.path, ".git")),
                    status=WorktreeStatus.CLEAN if exists else WorktreeStatus.MISSING,
                )
            )
        logger.debug(f"Found {len(worktrees)} worktrees")
        return worktrees

    def list_worktrees(self) -> List[WorktreeInfo]:
        """All worktrees with status, stale classification and markers.

        Enrichment failures are logged per worktree and never drop a record.
        """
        worktrees = [self._safe_enrich(wt, self._enrich_status) for wt in self.read_worktrees()]

        cache = self.stale_detector.build()
        worktrees = [
            self._safe_enrich(wt, lambda w: self._enrich_stale(w, cache)) for wt in worktrees
        ]

        markers = self.marker_service.list_markers()
        if markers:
            worktrees = [
                replace(wt, marker=markers[wt.branch]) if wt.branch in markers else wt
                for wt in worktrees
            ]
        return worktrees

    @staticmethod
    def _safe_enrich(wt: WorktreeInfo, enrich) -> WorktreeInfo:
        try:
            return enrich(wt)
        except Exception as e:
            logger.warning(f"Could not enrich worktree {wt.path}: {e}")
            return wt

    def _enrich_status(self, wt: WorktreeInfo) -> WorktreeInfo:
        if wt.is_missing:
            return wt

        counts = parse_status_counts(self.reader.status_porcelain(wt.path))
        unpushed = self.reader.unpushed_count(wt.path)
        not_pushed = not wt.is_detached and not self.reader.has_upstream(wt.path)

        has_changes = counts.staged > 0 or counts.modified > 0
        if has_changes and counts.untracked > 0:
            status = WorktreeStatus.MIXED
        elif has_changes:
            status = WorktreeStatus.MODIFIED
        elif counts.untracked > 0:
            status = WorktreeStatus.UNTRACKED
        elif unpushed > 0 or not_pushed:
            status = WorktreeStatus.UNPUSHED
        else:
            status = WorktreeStatus.CLEAN

        return replace(
            wt,
            status=status,
            staged_count=counts.staged,
            modified_count=counts.modified,
            untracked_count=counts.untracked,
            unpushed_count=unpushed,
            last_commit=self.reader.last_commit_time(wt.path),
            has_submodules=has_submodules(wt.path),
        )

    def _enrich_stale(self, wt: WorktreeInfo, cache) -> WorktreeInfo:
        branch_status, stale_reason = self.stale_detector.classify(wt, cache)
        return replace(wt, branch_status=branch_status, stale_reason=stale_reason)

    def enrich_with_github_status(self, worktrees: List[WorktreeInfo]) -> List[WorktreeInfo]:
        """Attach PR annotations; merged or closed PRs mark the branch stale."""
        if self.github_service is None or not self.github_service.ensure_setup():
            return list(worktrees)

        branches = [wt.branch for wt in worktrees if not wt.is_detached and not wt.is_main]
        prs = self.github_service.get_bulk_pr_info(branches)

        enriched = []
        for wt in worktrees:
            pr = prs.get(wt.branch) if not wt.is_main else None
            if pr is None:
                enriched.append(wt)
                continue
            updates = {"pr_number": pr.number, "pr_state": pr.state, "pr_url": pr.url}
            if pr.state == "MERGED":
                updates.update(branch_status=BranchStatus.STALE, stale_reason=StaleReason.PR_MERGED)
            elif pr.state == "CLOSED":
                updates.update(branch_status=BranchStatus.STALE, stale_reason=StaleReason.PR_CLOSED)
            enriched.append(replace(wt, **updates))
        return enriched

    def enrich_with_ci_status(self, worktrees: List[WorktreeInfo]) -> List[WorktreeInfo]:
        """Attach aggregated CI status for worktrees that have a PR."""
        if self.github_service is None or not self.github_service.ensure_setup():
            return list(worktrees)

        enriched = []
        for wt in worktrees:
            ci = self.github_service.get_ci_status(wt.branch) if wt.pr_number else None
            if ci is None:
                enriched.append(wt)
            else:
                enriched.append(replace(wt, ci_status=ci.status, ci_conclusion=ci.conclusion))
        return enriched

    # Lookup

    def find_worktree(self, identifier: str, worktrees: Optional[List[WorktreeInfo]] = None) -> WorktreeInfo:
        """Worktree whose name, path or branch matches identifier."""
        worktrees = worktrees if worktrees is not None else self.read_worktrees()
        identifier = identifier.strip()

        for wt in worktrees:
            if wt.name == identifier:
                return wt

        resolved = os.path.realpath(os.path.abspath(os.path.expanduser(identifier)))
        for wt in worktrees:
            if wt.path == identifier or os.path.realpath(wt.path) == resolved:
                return wt

        for wt in worktrees:
            if wt.branch == identifier:
                return wt

        raise WorktreeNotFoundError(identifier)

    # Delete

    def delete_worktree(self, identifier: str, force: bool = False) -> str:
        """Delete a worktree by name or path; returns the pre-remove hook output.

        Raises:
            WorktreeNotFoundError: If nothing matches identifier
            CurrentWorktreeError: If it is the worktree we are running in
            HookFailedError: If the pre-remove hook fails
            WorktreeRemoveError: If git refuses to remove it (with a hint)
        """
        wt = self.find_worktree(identifier)
        if wt.is_current:
            raise CurrentWorktreeError(wt.path)

        hook_result = self.hook_runner.run(HookType.PRE_REMOVE, wt.path, wt.branch)
        if not hook_result.success:
            raise HookFailedError(HookType.PRE_REMOVE.value, hook_result.output, hook_result.error)

        self.remove_worktree(wt, force=force)
        return hook_result.output

    def remove_worktree(self, wt: WorktreeInfo, force: bool = False) -> None:
        """Remove a worktree without the current-worktree guard or hooks."""
        if not os.path.isdir(wt.path):
            self._prune()
            logger.info(f"Pruned missing worktree {wt.path}")
            return

        submodules = has_submodules(wt.path)
        if submodules:
            try:
                self._git(wt.path).submodule("deinit", "--all", "--force")
            except git.exc.GitCommandError as e:
                raise WorktreeRemoveError(
                    wt.path, format_git_error("submodule deinit", e), SUBMODULE_HINT
                ) from e

        args = ["remove", wt.path]
        if submodules or force:
            args.append("--force")

        try:
            self._git(self.repo_root).worktree(*args)
        except git.exc.GitCommandError as e:
            message = format_git_error("worktree remove", e)
            logger.error(f"Failed to remove worktree at {wt.path}: {message}")
            raise WorktreeRemoveError(wt.path, message, removal_hint(git_error_text(e))) from e

        logger.info(f"Removed worktree at {wt.path}")

    def _prune(self) -> None:
        try:
            self._git(self.repo_root).worktree("prune")
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree_prune", message=format_git_error("worktree prune", e)) from e

    def cleanup(self, force: bool = False, dry_run: bool = False) -> CleanupResult:
        """Delete every stale worktree (merged, no unique commits, gone remote, merged/closed PR)."""
        worktrees = self.enrich_with_github_status(self.list_worktrees())
        result = CleanupResult(
            candidates=[
                wt for wt in worktrees if wt.is_stale and not wt.is_current and not wt.is_main
            ]
        )
        if dry_run:
            return result

        for wt in result.candidates:
            try:
                self.delete_worktree(wt.path, force=force)
                result.deleted.append(wt)
            except GrenError as e:
                logger.error(f"Cleanup failed to delete {wt.name}: {e}")
                result.failed.append((wt, str(e)))
        return result
