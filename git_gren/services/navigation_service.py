"""Worktree navigation through a directive file sourced by the shell wrapper.

A process cannot change its parent shell's directory, so `gren switch`
writes shell lines (a `cd`, optionally followed by a command) to the file
named by GREN_DIRECTIVE_FILE. The wrapper installed by `gren shell-init`
creates that file, runs gren and sources whatever was written to it.
"""

import os
import shlex
from dataclasses import dataclass, field
from typing import List, Optional

import git

from git_gren.exceptions import NavigationError, WorktreeNotFoundError
from git_gren.logging_config import get_logger
from git_gren.models.hook import HookType
from git_gren.models.worktree import WorktreeInfo
from git_gren.services.git.errors import format_git_error
from git_gren.services.git.worktrees import WorktreeService

logger = get_logger(__name__)

DIRECTIVE_FILE_ENV = "GREN_DIRECTIVE_FILE"
LEGACY_DIRECTIVE_FILE = "/tmp/gren_navigate"  # used by wrappers that predate GREN_DIRECTIVE_FILE
PREVIOUS_WORKTREE_KEY = "gren.previousWorktree"

PREVIOUS = "-"
CURRENT = "@"


class DirectiveWriter:
    """Writes the shell directive the wrapper sources after gren exits."""

    def __init__(self, path: Optional[str] = None):
        self._path = path

    @property
    def path(self) -> str:
        return self._path or os.environ.get(DIRECTIVE_FILE_ENV) or LEGACY_DIRECTIVE_FILE

    @property
    def shell_integration_active(self) -> bool:
        return bool(self._path or os.environ.get(DIRECTIVE_FILE_ENV))

    def write(self, *lines: str) -> None:
        try:
            with open(self.path, "w") as f:
                f.write("\n".join(lines) + "\n")
        except OSError as e:
            raise NavigationError(f"failed to write navigation directive to {self.path}: {e}") from e
        logger.debug(f"Wrote directive to {self.path}: {lines}")

    def write_cd(self, path: str, command: str = "") -> None:
        """cd into path, then run command in the same shell when given."""
        lines = [f"cd {shlex.quote(path)}"]
        if command:
            lines.append(command)
        self.write(*lines)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


@dataclass
class SwitchResult:
    """Where a switch or create --execute sends the shell."""

    path: str
    branch: str
    execute: str = ""
    shell_integration: bool = False
    hook_output: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def find_worktree_by_query(worktrees: List[WorktreeInfo], query: str) -> Optional[WorktreeInfo]:
    """Case-insensitive lookup: exact name, exact branch, branch suffix, then substring."""
    query = query.strip().lower()
    if not query:
        return None

    for wt in worktrees:
        if wt.name.lower() == query:
            return wt
    for wt in worktrees:
        if wt.branch.lower() == query:
            return wt
    for wt in worktrees:
        branch = wt.branch.lower()
        if branch.endswith("/" + query) or branch.endswith("-" + query):
            return wt
    for wt in worktrees:
        if query in wt.branch.lower():
            return wt
    return None


class NavigationService:
    """Resolves switch targets, remembers the previous worktree and writes directives."""

    def __init__(self, worktree_service: WorktreeService, directive_writer: Optional[DirectiveWriter] = None):
        self.worktrees = worktree_service
        self.hook_runner = worktree_service.hook_runner
        self.repo_root = worktree_service.repo_root
        self.directive_writer = directive_writer or DirectiveWriter()

    # Previous worktree

    def previous_worktree(self) -> str:
        try:
            return git.Git(self.repo_root).config("--local", "--get", PREVIOUS_WORKTREE_KEY).strip()
        except git.exc.GitCommandError:
            # Unset key
            return ""

    def _remember(self, path: str) -> None:
        try:
            git.Git(self.repo_root).config("--local", PREVIOUS_WORKTREE_KEY, path)
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not record previous worktree: {format_git_error('config', e)}")

    # Lookup

    def resolve(self, query: str, worktrees: Optional[List[WorktreeInfo]] = None) -> WorktreeInfo:
        """Worktree for query; '-' is the previous worktree and '@' the current one.

        Raises:
            NavigationError: If '-' or '@' cannot be resolved
            WorktreeNotFoundError: If nothing matches query
        """
        worktrees = worktrees if worktrees is not None else self.worktrees.read_worktrees()

        if query == PREVIOUS:
            previous = self.previous_worktree()
            if not previous:
                raise NavigationError("no previous worktree")
            for wt in worktrees:
                if wt.path == previous:
                    return wt
            raise NavigationError(f"previous worktree no longer exists: {previous}")

        if query == CURRENT:
            for wt in worktrees:
                if wt.is_current:
                    return wt
            raise NavigationError("not in a worktree")

        wt = find_worktree_by_query(worktrees, query)
        if wt is None:
            raise WorktreeNotFoundError(query)
        return wt

    # Switch

    def switch(self, query: str, execute: str = "") -> SwitchResult:
        """Point the shell at the worktree matching query and run post-switch hooks.

        Raises:
            NavigationError: If the target is missing on disk or the directive cannot be written
            WorktreeNotFoundError: If nothing matches query
        """
        worktrees = self.worktrees.read_worktrees()
        target = self.resolve(query, worktrees)
        if target.is_missing:
            raise NavigationError(f"worktree directory is missing: {target.path}")

        current = next((wt for wt in worktrees if wt.is_current), None)
        if current is not None and current.path != target.path:
            self._remember(current.path)

        logger.info(f"Switching to {target.path}")
        result = self._write(target.path, target.branch, execute)
        self._collect(result, self.hook_runner.run(HookType.POST_SWITCH, target.path, target.branch))
        self._start(result)
        return result

    def enter(self, path: str, branch: str, execute: str = "") -> SwitchResult:
        """Send the shell into a freshly created worktree, running execute there."""
        result = self._write(path, branch, execute)
        self._start(result)
        return result

    def _write(self, path: str, branch: str, execute: str) -> SwitchResult:
        self.directive_writer.write_cd(path, execute)
        return SwitchResult(
            path=path,
            branch=branch,
            execute=execute,
            shell_integration=self.directive_writer.shell_integration_active,
        )

    def _start(self, result: SwitchResult) -> None:
        if not result.execute:
            return
        post_start = self.hook_runner.run(
            HookType.POST_START, result.path, result.branch, execute_cmd=result.execute
        )
        self._collect(result, post_start)

    @staticmethod
    def _collect(result: SwitchResult, hook_result) -> None:
        if hook_result.output:
            result.hook_output.append(hook_result.output)
        if not hook_result.success:
            message = f"{hook_result.hook_type.value} hook failed: {hook_result.error}"
            logger.warning(message)
            result.warnings.append(message)


BASH_ZSH_INIT = """\
# gren shell integration (bash/zsh)
# gren writes shell lines to $GREN_DIRECTIVE_FILE; this wrapper sources them.
if command -v gren >/dev/null 2>&1 || [[ -n "${GREN_BIN:-}" ]]; then
    gren() {
        local directive_file exit_code=0
        directive_file="$(mktemp)"

        GREN_DIRECTIVE_FILE="$directive_file" command "${GREN_BIN:-gren}" "$@" || exit_code=$?

        if [[ -s "$directive_file" ]]; then
            source "$directive_file"
            if [[ "$PWD" != "$OLDPWD" ]]; then
                echo "Now in: $PWD"
            fi
        fi

        rm -f "$directive_file"
        return "$exit_code"
    }

    alias gcd='gren switch'
fi
"""

FISH_INIT = """\
# gren shell integration (fish)
# gren writes shell lines to $GREN_DIRECTIVE_FILE; this wrapper sources them.
if command -v gren >/dev/null 2>&1; or set -q GREN_BIN
    function gren
        set -l directive_file (mktemp)
        set -l exit_code 0
        set -l old_pwd $PWD
        set -l gren_bin gren
        set -q GREN_BIN; and set gren_bin $GREN_BIN

        GREN_DIRECTIVE_FILE=$directive_file command $gren_bin $argv
        or set exit_code $status

        if test -s $directive_file
            source $directive_file
            if test "$PWD" != "$old_pwd"
                echo "Now in: $PWD"
            end
        end

        rm -f $directive_file
        return $exit_code
    end

    alias gcd='gren switch'
end
"""

SHELL_INIT_SCRIPTS = {
    "bash": BASH_ZSH_INIT,
    "zsh": BASH_ZSH_INIT,
    "fish": FISH_INIT,
}


def shell_init_script(shell: str) -> str:
    """Wrapper function for shell; raises NavigationError for unsupported shells."""
    try:
        return SHELL_INIT_SCRIPTS[shell]
    except KeyError:
        supported = ", ".join(SHELL_INIT_SCRIPTS)
        raise NavigationError(f"unsupported shell: {shell} (supported: {supported})") from None
