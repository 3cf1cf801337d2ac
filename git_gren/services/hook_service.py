"""Runs user-configured lifecycle hooks."""

import json
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from git_gren.config import Hooks
from git_gren.logging_config import get_logger
from git_gren.models.hook import HookResult, HookType
from git_gren.services.git.ref_reader import RefReader, short_sha
from git_gren.services.template import TemplateContext, expand_template

logger = get_logger(__name__)


@dataclass
class HookContext:
    """Everything a hook is told about the worktree it runs for."""

    hook_type: HookType
    worktree_path: str
    branch: str
    repo_root: str
    repo: str = ""
    base_branch: str = ""
    target_branch: str = ""
    execute_cmd: str = ""
    commit: str = ""
    default_branch: str = ""

    @property
    def worktree_name(self) -> str:
        return os.path.basename(self.worktree_path.rstrip(os.sep))

    @property
    def short_commit(self) -> str:
        return short_sha(self.commit)

    def to_json(self) -> Dict[str, str]:
        """Payload written to the hook's stdin; optional fields are omitted when empty."""
        payload = {
            "hook_type": self.hook_type.value,
            "branch": self.branch,
            "worktree": self.worktree_path,
            "worktree_name": self.worktree_name,
            "repo": self.repo,
            "repo_root": self.repo_root,
            "commit": self.commit,
            "short_commit": self.short_commit,
            "default_branch": self.default_branch,
        }
        for key in ("target_branch", "base_branch", "execute_cmd"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload

    def to_env(self, json_context: str) -> Dict[str, str]:
        return {
            "GREN_WORKTREE_PATH": self.worktree_path,
            "GREN_BRANCH": self.branch,
            "GREN_BASE_BRANCH": self.base_branch,
            "GREN_REPO_ROOT": self.repo_root,
            "GREN_HOOK_TYPE": self.hook_type.value,
            "GREN_TARGET_BRANCH": self.target_branch,
            "GREN_EXECUTE_CMD": self.execute_cmd,
            "GREN_JSON_CONTEXT": json_context,
        }

    def template_context(self) -> TemplateContext:
        return TemplateContext(
            branch=self.branch,
            worktree=self.worktree_path,
            worktree_name=self.worktree_name,
            repo=self.repo,
            repo_root=self.repo_root,
            commit=self.commit,
            short_commit=self.short_commit,
            default_branch=self.default_branch,
        )


class HookRunner:
    """Executes the hook configured for a lifecycle point.

    Output is captured (stdout and stderr combined) and returned on the
    HookResult rather than streamed to the terminal.
    """

    def __init__(self, hooks: Hooks, repo_root: str, reader: Optional[RefReader] = None):
        self.hooks = hooks
        self.repo_root = repo_root
        self.reader = reader or RefReader(repo_root)

    def has_hook(self, hook_type: HookType) -> bool:
        return bool(self.hooks.get(hook_type).strip())

    def run(
        self,
        hook_type: HookType,
        worktree_path: str,
        branch: str,
        base_branch: str = "",
        target_branch: str = "",
        execute_cmd: str = "",
    ) -> HookResult:
        """Run the hook for hook_type; a missing hook is a successful no-op."""
        command = self.hooks.get(hook_type).strip()
        if not command:
            return HookResult(hook_type=hook_type)

        context = self.build_context(
            hook_type, worktree_path, branch, base_branch, target_branch, execute_cmd
        )
        return self.execute(command, context)

    def build_context(
        self,
        hook_type: HookType,
        worktree_path: str,
        branch: str,
        base_branch: str = "",
        target_branch: str = "",
        execute_cmd: str = "",
    ) -> HookContext:
        commit = ""
        if os.path.isdir(worktree_path):
            commit = self.reader.commit_sha(worktree_path)
        return HookContext(
            hook_type=hook_type,
            worktree_path=worktree_path,
            branch=branch,
            repo_root=self.repo_root,
            repo=os.path.basename(self.repo_root.rstrip(os.sep)),
            base_branch=base_branch,
            target_branch=target_branch,
            execute_cmd=execute_cmd,
            commit=commit,
            default_branch=self.reader.default_branch(),
        )

    def execute(self, command: str, context: HookContext) -> HookResult:
        json_context = json.dumps(context.to_json())
        env = os.environ.copy()
        env.update(context.to_env(json_context))

        argv = self._build_argv(command, context)
        cwd = context.worktree_path if os.path.isdir(context.worktree_path) else self.repo_root
        hook_type = context.hook_type

        logger.info(f"Running {hook_type.value} hook: {command}")
        try:
            completed = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                input=json_context,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            logger.error(f"{hook_type.value} hook could not be started: {e}")
            return HookResult(hook_type, command, success=False, error=str(e))

        output = completed.stdout or ""
        if completed.returncode != 0:
            logger.warning(f"{hook_type.value} hook exited with status {completed.returncode}")
            return HookResult(
                hook_type,
                command,
                success=False,
                output=output,
                error=f"exit status {completed.returncode}",
            )

        logger.debug(f"{hook_type.value} hook output:\n{output}")
        return HookResult(hook_type, command, success=True, output=output)

    def _build_argv(self, command: str, context: HookContext) -> List[str]:
        script = self._resolve_script(command)
        if script:
            return [
                script,
                context.worktree_path,
                context.branch,
                context.base_branch,
                context.repo_root,
            ]
        return ["sh", "-c", expand_template(command, context.template_context())]

    def _resolve_script(self, command: str) -> Optional[str]:
        """Path of an executable script when command names one, else None."""
        if " " in command and not command.endswith(".sh"):
            return None
        path = command if os.path.isabs(command) else os.path.join(self.repo_root, command)
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        return None
