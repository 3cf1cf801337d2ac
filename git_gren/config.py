"""Configuration handling for git-gren"""

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import tomlkit

from git_gren.exceptions import ConfigError
from git_gren.logging_config import get_logger
from git_gren.models.hook import HookType

logger = get_logger(__name__)

CONFIG_DIR = ".gren"
CONFIG_FILE_TOML = "config.toml"
CONFIG_FILE_JSON = "config.json"  # legacy format, read-only
DEFAULT_VERSION = "1.0.0"
DEFAULT_HOOK_FILE = "post-create.sh"
PACKAGE_MANAGERS = ["npm", "yarn", "pnpm", "bun"]


@dataclass
class Hooks:
    """Hook commands keyed by lifecycle point."""

    post_create: str = ""
    pre_remove: str = ""
    pre_merge: str = ""
    post_merge: str = ""
    post_switch: str = ""
    post_start: str = ""

    def get(self, hook_type: HookType) -> str:
        return getattr(self, hook_type.config_key, "") or ""

    def to_dict(self) -> dict:
        return {
            hook_type.config_key: self.get(hook_type)
            for hook_type in HookType
            if self.get(hook_type)
        }

    @classmethod
    def from_dict(cls, hooks_dict: dict) -> "Hooks":
        """Create Hooks from a mapping; accepts both post-create and post_create keys."""
        values = {}
        for key, command in hooks_dict.items():
            normalized = key.replace("-", "_")
            if normalized not in cls.__dataclass_fields__:
                logger.warning(f"Ignoring unknown hook '{key}'")
                continue
            if not isinstance(command, str):
                raise ConfigError(f"hook '{key}' must be a string command")
            values[normalized] = command
        return cls(**values)


@dataclass
class CommitGeneratorConfig:
    """External command used to generate commit messages."""

    command: str = ""
    args: List[str] = field(default_factory=list)
    template: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.command.strip())

    def to_dict(self) -> dict:
        data = {"command": self.command, "args": list(self.args)}
        if self.template:
            data["template"] = self.template
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CommitGeneratorConfig":
        args = data.get("args", [])
        if not isinstance(args, list):
            raise ConfigError("commit_generator.args must be a list")
        return cls(
            command=data.get("command", ""),
            args=[str(arg) for arg in args],
            template=data.get("template", ""),
        )


@dataclass
class Config:
    """Configuration for git-gren with validation."""

    # Directory that holds new worktrees ("" = ../<repo>-worktrees)
    worktree_dir: str = ""
    package_manager: str = "auto"
    version: str = DEFAULT_VERSION
    hooks: Hooks = field(default_factory=Hooks)
    commit_generator: CommitGeneratorConfig = field(default_factory=CommitGeneratorConfig)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_package_manager()
        self._validate_version()

    def _validate_package_manager(self):
        """Validate package_manager is auto or a known manager."""
        if self.package_manager in ("", "auto"):
            return
        if self.package_manager not in PACKAGE_MANAGERS:
            raise ConfigError(
                f"invalid package_manager: {self.package_manager} "
                f"(must be one of: {', '.join(PACKAGE_MANAGERS)}, auto)"
            )

    def _validate_version(self):
        """Validate version is not empty."""
        if not self.version or not str(self.version).strip():
            raise ConfigError("version cannot be empty")

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary (the on-disk layout)."""
        data = {
            "worktree_dir": self.worktree_dir,
            "package_manager": self.package_manager,
            "version": self.version,
        }
        hooks = self.hooks.to_dict()
        if hooks:
            data["hooks"] = hooks
        if self.commit_generator.enabled:
            data["commit_generator"] = self.commit_generator.to_dict()
        return data

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        hooks = Hooks.from_dict(config_dict.get("hooks") or {})
        # Legacy configs stored the post-create hook at the top level
        legacy_hook = config_dict.get("post_create_hook")
        if legacy_hook and not hooks.post_create:
            hooks.post_create = legacy_hook

        return cls(
            worktree_dir=config_dict.get("worktree_dir", "") or "",
            package_manager=config_dict.get("package_manager", "auto") or "auto",
            version=config_dict.get("version", DEFAULT_VERSION) or DEFAULT_VERSION,
            hooks=hooks,
            commit_generator=CommitGeneratorConfig.from_dict(
                config_dict.get("commit_generator") or {}
            ),
        )


class ConfigManager:
    """Loads and saves .gren/config.toml for one repository."""

    def __init__(self, repo_root: str):
        self.repo_root = repo_root
        self.config_dir = Path(repo_root) / CONFIG_DIR

    @property
    def toml_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_TOML

    @property
    def json_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_JSON

    def exists(self) -> bool:
        return self.toml_path.is_file() or self.json_path.is_file()

    def load(self) -> Config:
        """Load configuration, preferring TOML over the legacy JSON file.

        Returns the default Config when the repository has not been initialized.

        Raises:
            ConfigError: If a config file exists but cannot be parsed or is invalid
        """
        if self.toml_path.is_file():
            try:
                with open(self.toml_path, "rb") as f:
                    data = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"failed to parse TOML config file: {e}") from e
            logger.debug(f"Loaded config from {self.toml_path}")
        elif self.json_path.is_file():
            try:
                with open(self.json_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"failed to parse JSON config file: {e}") from e
            logger.debug(f"Loaded legacy config from {self.json_path}")
        else:
            logger.debug("No gren config found, using defaults")
            return Config()

        if not isinstance(data, dict):
            raise ConfigError("configuration must be a table")
        return Config.from_dict(data)

    def save(self, config: Config) -> Path:
        """Write config as TOML and drop the legacy JSON file if present."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add(tomlkit.comment(" gren configuration"))
        doc.add(tomlkit.nl())
        for key, value in config.to_dict().items():
            if isinstance(value, dict):
                table = tomlkit.table()
                for sub_key, sub_value in value.items():
                    table.add(sub_key, sub_value)
                doc.add(key, table)
            else:
                doc.add(key, value)

        self.toml_path.write_text(tomlkit.dumps(doc), encoding="utf-8")
        logger.info(f"Saved config to {self.toml_path}")

        if self.json_path.is_file():
            try:
                os.remove(self.json_path)
            except OSError as e:
                logger.debug(f"Could not remove legacy config {self.json_path}: {e}")
        return self.toml_path


def default_worktree_dir(repo_root: str, project_name: Optional[str] = None) -> str:
    """Default location for new worktrees: a sibling of the repository root."""
    root = Path(repo_root)
    name = project_name or root.name
    return str(root.parent / f"{name}-worktrees")
