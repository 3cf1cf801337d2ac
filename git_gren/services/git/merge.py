"""Merge-back workflow: commit, squash, rebase, fast-forward and tear down a worktree."""

import os
from typing import Optional

import git

from git_gren.exceptions import (
    CommitMessageError,
    GitOperationError,
    GrenError,
    HookFailedError,
    MergeError,
    NothingToCommitError,
    NothingToSquashError,
    RebaseConflictError,
)
from git_gren.logging_config import get_logger
from git_gren.models.hook import HookType
from git_gren.models.worktree import MergeOptions, MergeResult, WorktreeInfo
from git_gren.services.commit_message_service import CommitMessageGenerator
from git_gren.services.git.errors import format_git_error, git_error_text
from git_gren.services.git.worktrees import WorktreeService
from git_gren.services.template import sanitize_branch

logger = get_logger(__name__)

BACKUP_REF_PREFIX = "refs/backup/"

SKIP_ON_TARGET = "already on target branch"
SKIP_MAIN_WORKTREE = "cannot merge from main worktree"


def backup_ref_name(branch: str) -> str:
    return f"{BACKUP_REF_PREFIX}{sanitize_branch(branch)}"


def _is_inside(path: str, directory: str) -> bool:
    path = os.path.realpath(path)
    directory = os.path.realpath(directory)
    return path == directory or path.startswith(directory + os.sep)


class MergeOrchestrator:
    """Runs the merge workflow, or any single step of it, in one worktree.

    Every step is a no-op when its precondition already holds. Only
    fast-forward ref updates and soft resets are performed; anything that
    would need a real merge fails instead.
    """

    def __init__(
        self,
        worktree_service: WorktreeService,
        commit_generator: Optional[CommitMessageGenerator] = None,
        worktree_path: Optional[str] = None,
    ):
        self.worktrees = worktree_service
        self.reader = worktree_service.reader
        self.hook_runner = worktree_service.hook_runner
        self.commit_generator = commit_generator
        self.worktree_path = worktree_path or worktree_service.repo_path

    # Helpers

    def _root(self) -> str:
        """Top of the worktree the orchestrator operates on."""
        return self.reader.toplevel(self.worktree_path) or self.worktree_path

    def _branch(self, path: str) -> str:
        branch = self.reader.current_branch(path)
        if not branch:
            raise MergeError("HEAD is detached; check out a branch first")
        return branch

    def _target(self, target: Optional[str]) -> str:
        resolved = (target or "").strip() or self.reader.default_branch()
        if not resolved:
            raise MergeError("could not determine the target branch; pass it explicitly")
        return resolved

    def _run(self, path: str, command: str, *args: str) -> str:
        try:
            return getattr(git.Git(path), command)(*args)
        except git.exc.GitCommandError as e:
            raise GitOperationError(
                command.replace("_", "-"), message=format_git_error(command.replace("_", "-"), e)
            ) from e

    def _run_hook(self, hook_type: HookType, path: str, branch: str, target: str) -> str:
        result = self.hook_runner.run(hook_type, path, branch, target_branch=target)
        if not result.success:
            raise HookFailedError(hook_type.value, result.output, result.error)
        return result.output

    def _generate_message(self, path: str, branch: str) -> str:
        if self.commit_generator is None or not self.commit_generator.enabled:
            return ""
        try:
            diff = self._run(path, "diff", "--cached")
            return self.commit_generator.generate(diff, f"Branch: {branch}")
        except (CommitMessageError, GitOperationError) as e:
            logger.warning(f"Falling back to default commit message: {e}")
            return ""

    # Commit

    def _commit_all(self, path: str, branch: str, message: str = "", use_llm: bool = False) -> bool:
        """Stage everything and commit; False when there was nothing to commit."""
        self._run(path, "add", "-A")
        if not self.reader.status_porcelain(path).strip():
            return False

        if not message and use_llm:
            message = self._generate_message(path, branch)
        message = message or f"WIP: changes on {branch}"

        try:
            git.Git(path).commit("-m", message)
        except git.exc.GitCommandError as e:
            if "nothing to commit" in str(e):
                return False
            raise GitOperationError("commit", branch, format_git_error("commit", e)) from e
        logger.info(f"Committed changes on {branch}: {message}")
        return True

    def step_commit(self, message: str = "", use_llm: bool = False) -> str:
        """Stage all changes and commit them; returns the message used.

        Raises:
            NothingToCommitError: If the working tree is clean
        """
        path = self._root()
        branch = self.reader.current_branch(path) or "HEAD"

        self._run(path, "add", "-A")
        if not self.reader.status_porcelain(path).strip():
            raise NothingToCommitError(branch)

        if not message and use_llm:
            message = self._generate_message(path, branch)
        message = message or f"WIP: changes on {branch}"
        self._run(path, "commit", "-m", message)
        logger.info(f"Committed changes on {branch}: {message}")
        return message

    # Squash

    def _create_backup_ref(self, path: str, branch: str) -> str:
        ref = backup_ref_name(branch)
        self._run(path, "update_ref", ref, "HEAD")
        logger.info(f"Created backup ref {ref}")
        return ref

    def _squash(self, path: str, branch: str, target: str, message: str, use_llm: bool, default: str) -> None:
        base = self.reader.merge_base(target, "HEAD", path)
        if not base:
            raise MergeError(f"no common ancestor between {branch} and {target}", branch)

        old_head = self.reader.rev_parse("HEAD", path)
        self._create_backup_ref(path, branch)

        if not message and use_llm and self.commit_generator is not None and self.commit_generator.enabled:
            try:
                diff = self._run(path, "diff", f"{base}..HEAD")
                commit_log = self._run(path, "log", "--oneline", f"{base}..HEAD")
                message = self.commit_generator.generate_squash(diff, commit_log, branch, target)
            except (CommitMessageError, GitOperationError) as e:
                logger.warning(f"Falling back to default squash message: {e}")

        self._run(path, "reset", "--soft", base)
        try:
            git.Git(path).commit("-m", message or default)
        except git.exc.GitCommandError as e:
            # Put the original commits back; the backup ref also still points at them
            git.Git(path).reset("--soft", old_head)
            raise MergeError(f"squash commit failed: {git_error_text(e)}", branch) from e
        logger.info(f"Squashed {branch} onto {base[:7]}")

    def step_squash(self, target: Optional[str] = None, message: str = "", use_llm: bool = False) -> int:
        """Squash all commits ahead of target into one; returns how many were squashed.

        Raises:
            NothingToSquashError: If there is at most one commit ahead of target
        """
        path = self._root()
        branch = self._branch(path)
        target = self._target(target)

        count = self.reader.count_commits(target, "HEAD", path)
        if count <= 1:
            raise NothingToSquashError(count, target)

        self._squash(path, branch, target, message, use_llm, f"Squashed {count} commits from {branch}")
        return count

    def restore_backup(self) -> str:
        """Reset the current branch to its last pre-squash backup ref."""
        path = self._root()
        branch = self._branch(path)
        ref = backup_ref_name(branch)
        if not self.reader.rev_parse(ref, path):
            raise MergeError(f"no backup found for branch {branch}", branch)
        self._run(path, "reset", "--keep", ref)
        logger.info(f"Restored {branch} from {ref}")
        return ref

    # Rebase

    def _rebase(self, path: str, branch: str, target: str) -> None:
        try:
            git.Git(path).rebase(target)
        except git.exc.GitCommandError as e:
            try:
                git.Git(path).rebase("--abort")
            except git.exc.GitCommandError as abort_error:
                logger.error(f"rebase --abort failed in {path}: {git_error_text(abort_error)}")
            raise RebaseConflictError(branch, target, git_error_text(e)) from e
        logger.info(f"Rebased {branch} onto {target}")

    def step_rebase(self, target: Optional[str] = None) -> bool:
        """Rebase onto target; False when already up to date.

        Raises:
            RebaseConflictError: If the rebase stops; it is aborted first
        """
        path = self._root()
        branch = self._branch(path)
        target = self._target(target)

        behind = self.reader.count_commits("HEAD", target, path)
        if behind == 0:
            logger.info(f"{branch} is up to date with {target}")
            return False
        self._rebase(path, branch, target)
        return True

    # Fast-forward

    def _fast_forward(self, path: str, branch: str, target: str) -> str:
        head = self.reader.rev_parse("HEAD", path)
        target_sha = self.reader.rev_parse(f"refs/heads/{target}", path)
        if not target_sha:
            raise MergeError(f"target branch '{target}' not found", branch)
        if target_sha == head:
            logger.info(f"{target} already at {head[:7]}")
            return head

        if self.reader.merge_base(target_sha, head, path) != target_sha:
            raise MergeError(
                f"cannot fast-forward: {target} has diverged from current branch. "
                f"Rebase first with 'gren step rebase {target}'",
                branch,
            )

        holder = self._worktree_on_branch(target)
        if holder is not None:
            # Keep the checked-out worktree's index and files in step with the ref
            self._run(holder.path, "merge", "--ff-only", head)
        else:
            self._run(path, "update_ref", f"refs/heads/{target}", head, target_sha)
        logger.info(f"Fast-forwarded {target} to {head[:7]}")
        return head

    def _worktree_on_branch(self, branch: str) -> Optional[WorktreeInfo]:
        for wt in self.worktrees.read_worktrees():
            if wt.branch == branch and not wt.is_missing:
                return wt
        return None

    def step_push(self, target: Optional[str] = None) -> str:
        """Fast-forward target to HEAD; returns the new target commit.

        Raises:
            MergeError: If target is not an ancestor of HEAD
        """
        path = self._root()
        branch = self.reader.current_branch(path) or "HEAD"
        return self._fast_forward(path, branch, self._target(target))

    # Full workflow

    def merge(self, options: MergeOptions) -> MergeResult:
        """Commit, squash, rebase, fast-forward target and optionally remove the worktree."""
        path = self._root()
        branch = self._branch(path)
        target = self._target(options.target)
        result = MergeResult(source_branch=branch, target_branch=target)

        if branch == target:
            result.skipped, result.skip_reason = True, SKIP_ON_TARGET
            return result
        if os.path.isdir(os.path.join(path, ".git")):
            result.skipped, result.skip_reason = True, SKIP_MAIN_WORKTREE
            return result

        logger.info(f"Merging {branch} into {target}")

        if not options.force and self.reader.status_porcelain(path).strip():
            self._commit_all(path, branch, use_llm=True)

        if options.squash:
            count = self.reader.count_commits(target, "HEAD", path)
            if count > 1:
                self._squash(path, branch, target, "", True, f"Squashed commits from {branch}")
                result.commits_squashed = count

        if options.rebase and self.reader.count_commits("HEAD", target, path) > 0:
            self._rebase(path, branch, target)

        if options.verify:
            result.hook_output.append(self._run_hook(HookType.PRE_MERGE, path, branch, target))

        self._fast_forward(path, branch, target)

        if options.remove:
            if options.verify:
                result.hook_output.append(self._run_hook(HookType.PRE_REMOVE, path, branch, target))
            try:
                self._remove(path)
                result.worktree_removed = True
            except GrenError as e:
                # The target has already moved; report the merge and keep the worktree
                logger.warning(f"Merged {branch} into {target} but could not remove {path}: {e}")
                result.remove_error = str(e)

        if options.verify:
            post = self.hook_runner.run(HookType.POST_MERGE, path, branch, target_branch=target)
            if not post.success:
                logger.warning(f"post-merge hook failed: {post.error}")
            result.hook_output.append(post.output)

        result.hook_output = [output for output in result.hook_output if output]
        return result

    def _remove(self, path: str) -> None:
        wt = self.worktrees.find_worktree(path)
        cwd = os.getcwd()
        if _is_inside(cwd, path):
            os.chdir(self.worktrees.repo_root)
            logger.debug(f"Changed directory to {self.worktrees.repo_root}")
        try:
            self.worktrees.remove_worktree(wt, force=True)
        except GrenError:
            if os.path.isdir(cwd):
                os.chdir(cwd)
            raise
