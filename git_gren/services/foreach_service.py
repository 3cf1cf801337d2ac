"""Run a command in every worktree."""

import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import List

from git_gren.logging_config import get_logger
from git_gren.models.worktree import ForEachOptions, ForEachResult, WorktreeInfo
from git_gren.services.git.ref_reader import short_sha
from git_gren.services.git.worktrees import WorktreeService
from git_gren.services.template import TemplateContext, expand_template
from git_gren.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)


class ForEachExecutor:
    """Expands a command template per worktree and runs it there.

    A failure in one worktree is recorded on its result and never stops the
    others. With parallel=True worktrees run on a bounded thread pool; each
    worktree is still touched by exactly one process.
    """

    def __init__(self, worktree_service: WorktreeService):
        self.worktrees = worktree_service
        self.reader = worktree_service.reader

    def select(self, options: ForEachOptions) -> List[WorktreeInfo]:
        selected = []
        for wt in self.worktrees.read_worktrees():
            if wt.is_missing:
                logger.debug(f"Skipping missing worktree {wt.path}")
                continue
            if options.skip_current and wt.is_current:
                continue
            if options.skip_main and wt.is_main:
                continue
            selected.append(wt)
        return selected

    def run(self, options: ForEachOptions) -> List[ForEachResult]:
        if not options.command:
            raise ValueError("no command given")

        worktrees = self.select(options)
        default_branch = self.reader.default_branch()
        repo_root = self.worktrees.repo_root

        def run_one(wt: WorktreeInfo) -> ForEachResult:
            return self._run_in(wt, options.command, repo_root, default_branch)

        if options.parallel and len(worktrees) > 1:
            max_workers = min(get_optimal_worker_count(options.workers), len(worktrees))
            logger.debug(f"Running in {len(worktrees)} worktrees with {max_workers} workers")
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                # map() keeps results in worktree order
                return list(executor.map(run_one, worktrees))

        return [run_one(wt) for wt in worktrees]

    def _run_in(self, wt: WorktreeInfo, command: List[str], repo_root: str, default_branch: str) -> ForEachResult:
        result = ForEachResult(worktree=wt.name, branch=wt.branch, path=wt.path)
        commit = wt.head or self.reader.commit_sha(wt.path)
        context = TemplateContext(
            branch=wt.branch,
            worktree=wt.path,
            worktree_name=wt.name,
            repo=os.path.basename(repo_root.rstrip(os.sep)),
            repo_root=repo_root,
            commit=commit,
            short_commit=short_sha(commit),
            default_branch=default_branch,
        )
        expanded = [expand_template(part, context) for part in command]
        argv = ["sh", "-c", expanded[0]] if len(expanded) == 1 else expanded

        try:
            completed = subprocess.run(
                argv,
                cwd=wt.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            logger.warning(f"Command failed to start in {wt.path}: {e}")
            result.exit_code = -1
            result.error = str(e)
            return result

        result.output = completed.stdout or ""
        result.exit_code = completed.returncode
        if completed.returncode != 0:
            result.error = f"exit status {completed.returncode}"
        logger.debug(f"{wt.name}: exit {completed.returncode}")
        return result
