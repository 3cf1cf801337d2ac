"""`gren init`: write a default config and a post-create hook for a repository."""

import glob
import os
import stat
from dataclasses import dataclass, field
from typing import List, Optional

import git

from git_gren.config import (
    CONFIG_DIR,
    DEFAULT_HOOK_FILE,
    Config,
    ConfigManager,
    Hooks,
    default_worktree_dir,
)
from git_gren.logging_config import get_logger

logger = get_logger(__name__)

LOCKFILE_PACKAGE_MANAGERS = [
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package.json", "npm"),
]
ENV_PATTERNS = [".env.local", ".env.*.local"]
CONFIG_FILES = [".envrc", ".nvmrc", ".node-version"]


@dataclass
class InitResult:
    config_path: str = ""
    hook_path: str = ""
    config_created: bool = False
    hook_created: bool = False
    package_manager: str = "auto"
    linked_files: List[str] = field(default_factory=list)


class InitService:
    """Creates .gren/config.toml and .gren/post-create.sh."""

    def __init__(self, repo_root: str, config_manager: Optional[ConfigManager] = None):
        self.repo_root = repo_root
        self.config_manager = config_manager or ConfigManager(repo_root)

    def _exists(self, name: str) -> bool:
        return os.path.exists(os.path.join(self.repo_root, name))

    def is_ignored(self, name: str) -> bool:
        try:
            git.Git(self.repo_root).check_ignore("-q", name)
            return True
        except (git.exc.GitError, OSError):
            return False

    def detect_package_manager(self) -> str:
        for lock_file, manager in LOCKFILE_PACKAGE_MANAGERS:
            if self._exists(lock_file):
                return manager
        return "auto"

    def detect_linked_files(self) -> List[str]:
        """Gitignored env/config files worth symlinking into new worktrees."""
        candidates = []
        for pattern in ENV_PATTERNS:
            for match in sorted(glob.glob(os.path.join(self.repo_root, pattern))):
                candidates.append(os.path.relpath(match, self.repo_root))
        candidates.extend(name for name in CONFIG_FILES if self._exists(name))

        linked = []
        for name in candidates:
            if name not in linked and self.is_ignored(name):
                linked.append(name)
        return linked

    def initialize(self, project_name: str = "") -> InitResult:
        project_name = project_name.strip() or os.path.basename(self.repo_root.rstrip(os.sep))
        result = InitResult(package_manager=self.detect_package_manager())
        result.linked_files = self.detect_linked_files()

        hook_rel = os.path.join(CONFIG_DIR, DEFAULT_HOOK_FILE)
        hook_path = os.path.join(self.repo_root, hook_rel)
        if not os.path.exists(hook_path):
            self.write_post_create_hook(hook_path, result.package_manager, result.linked_files)
            result.hook_created = True
        result.hook_path = hook_path

        config = Config(
            worktree_dir=default_worktree_dir(self.repo_root, project_name),
            package_manager=result.package_manager,
            hooks=Hooks(post_create=hook_rel),
        )
        result.config_path = str(self.config_manager.save(config))
        result.config_created = True
        logger.info(f"Initialized gren for project '{project_name}'")
        return result

    @staticmethod
    def render_post_create_hook(package_manager: str, linked_files: List[str]) -> str:
        lines = [
            "#!/usr/bin/env bash",
            "# gren post-create hook",
            "# Runs after a new worktree is created. Arguments:",
            "#   $1 worktree path, $2 branch, $3 base branch, $4 repository root",
            "",
            "set -euo pipefail",
            "",
            'WORKTREE_PATH="$1"',
            'BRANCH_NAME="${2:-}"',
            'REPO_ROOT="$4"',
            "",
            'cd "$WORKTREE_PATH"',
            'echo "Setting up worktree for $BRANCH_NAME"',
            "",
        ]
        if linked_files:
            lines.append("# Symlink gitignored env and config files from the main worktree")
            for name in linked_files:
                lines.append(
                    f'[ -e "$REPO_ROOT/{name}" ] && ln -sf "$REPO_ROOT/{name}" "$WORKTREE_PATH/{name}"'
                )
            lines.append("")

        lines.extend([
            'if command -v direnv > /dev/null 2>&1 && [ -f ".envrc" ]; then',
            "    direnv allow",
            "fi",
            "",
            "# Uncomment to install dependencies",
            '# if [ -f "package.json" ]; then',
        ])
        if package_manager not in ("", "auto"):
            lines.append(f"#     {package_manager} install")
        else:
            lines.append("#     npm install  # or: yarn, pnpm, bun")
        lines.extend(["# fi", ""])
        return "\n".join(lines)

    def write_post_create_hook(self, hook_path: str, package_manager: str, linked_files: List[str]) -> None:
        os.makedirs(os.path.dirname(hook_path), exist_ok=True)
        with open(hook_path, "w", encoding="utf-8") as f:
            f.write(self.render_post_create_hook(package_manager, linked_files))
        mode = os.stat(hook_path).st_mode
        os.chmod(hook_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info(f"Created post-create hook {hook_path}")
