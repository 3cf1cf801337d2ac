"""Compare another worktree's changes against the current worktree."""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import List, Optional

import git

from git_gren.exceptions import GrenError, UnsafePathError
from git_gren.logging_config import get_logger
from git_gren.services.git.errors import format_git_error
from git_gren.services.git.parsers import parse_name_status, parse_porcelain_changes
from git_gren.services.git.worktrees import WorktreeService

logger = get_logger(__name__)


@dataclass
class FileChange:
    """A file that differs between two worktrees."""

    path: str
    status: str  # added, modified, deleted
    is_committed: bool


@dataclass
class CompareResult:
    source_worktree: str
    target_worktree: str
    files: List[FileChange] = field(default_factory=list)
    source_path: str = ""
    target_path: str = ""


def validate_change_path(path: str) -> None:
    """Raise UnsafePathError for absolute paths and paths containing '..'."""
    if os.path.isabs(path) or PurePath(path).anchor:
        raise UnsafePathError(path, "absolute path not allowed")
    if ".." in PurePath(path).parts:
        raise UnsafePathError(path, "contains '..'")


class CompareService:
    """Lists files a source worktree changes relative to the current one."""

    def __init__(self, worktree_service: WorktreeService):
        self.worktrees = worktree_service
        self.reader = worktree_service.reader

    def compare(self, source: str) -> CompareResult:
        """Uncommitted and committed changes of source; uncommitted wins on overlap.

        Raises:
            WorktreeNotFoundError: If source matches no worktree
            GrenError: If source is the current worktree
        """
        worktrees = self.worktrees.read_worktrees()
        source_wt = self.worktrees.find_worktree(source, worktrees)
        current = next((wt for wt in worktrees if wt.is_current), None)
        if current is not None and current.path == source_wt.path:
            raise GrenError("cannot compare worktree to itself")

        result = CompareResult(
            source_worktree=source_wt.name,
            target_worktree=current.name if current else "",
            source_path=source_wt.path,
            target_path=current.path if current else "",
        )

        files = {}
        if current is not None:
            for path, status in self._committed_changes(source_wt.path, source_wt.branch, current.branch):
                files[path] = FileChange(path, status, is_committed=True)
        for path, status in parse_porcelain_changes(self.reader.status_porcelain(source_wt.path)):
            files[path] = FileChange(path, status, is_committed=False)

        result.files = sorted(files.values(), key=lambda change: change.path)
        logger.info(f"Compare {source_wt.name}: {len(result.files)} changed files")
        return result

    def _committed_changes(self, source_path: str, source_branch: str, target_branch: str) -> list:
        try:
            output = git.Git(source_path).diff("--name-status", f"{target_branch}..{source_branch}")
        except git.exc.GitCommandError as e:
            # Unrelated histories or a detached side
            logger.debug(format_git_error("diff --name-status", e))
            return []
        return parse_name_status(output)

    def apply(self, source: str, paths: Optional[List[str]] = None) -> List[FileChange]:
        """Copy source's changed files into the current worktree; returns what was applied.

        Added and modified files are copied over, deleted files are removed.
        Every path is validated before anything is written.

        Args:
            source: Worktree name, path or branch to take changes from
            paths: Only apply these files (default: every changed file)

        Raises:
            UnsafePathError: If a path is absolute or contains '..'
            GrenError: If there is no current worktree or a file cannot be written
        """
        for path in paths or []:
            validate_change_path(path)

        result = self.compare(source)
        if not result.target_path:
            raise GrenError("not inside a worktree; cannot apply changes")

        changes = result.files
        if paths is not None:
            wanted = set(paths)
            changes = [change for change in changes if change.path in wanted]
        for change in changes:
            validate_change_path(change.path)

        logger.info(f"Applying {len(changes)} files from {result.source_worktree}")
        for change in changes:
            self._apply_change(result.source_path, result.target_path, change)
        return changes

    def _apply_change(self, source_root: str, target_root: str, change: FileChange) -> None:
        target = os.path.join(target_root, change.path)
        try:
            if change.status == "deleted":
                if os.path.lexists(target):
                    os.remove(target)
                logger.debug(f"Deleted {change.path}")
                return
            os.makedirs(os.path.dirname(target), exist_ok=True)
            shutil.copy2(os.path.join(source_root, change.path), target)
            logger.debug(f"Applied {change.path}")
        except OSError as e:
            raise GrenError(f"failed to apply {change.path}: {e}") from e
