"""Tests for configuration loading and gren init"""
import json
import os
import tomllib

import pytest

from git_gren.config import (
    CommitGeneratorConfig,
    Config,
    ConfigManager,
    Hooks,
    default_worktree_dir,
)
from git_gren.exceptions import ConfigError
from git_gren.models.hook import HookType
from git_gren.services.init_service import InitService


class TestConfig:
    """Test Config validation and conversion."""

    def test_defaults(self):
        """Test default values."""
        config = Config()
        assert config.worktree_dir == ""
        assert config.package_manager == "auto"
        assert config.version == "1.0.0"
        assert config.hooks == Hooks()
        assert config.commit_generator.enabled is False

    def test_invalid_package_manager(self):
        """Test unknown package managers are rejected."""
        with pytest.raises(ConfigError, match="invalid package_manager"):
            Config(package_manager="maven")

    def test_empty_version(self):
        """Test an empty version is rejected."""
        with pytest.raises(ConfigError):
            Config(version=" ")

    def test_from_dict_hooks(self):
        """Test dashed and underscored hook keys are both accepted."""
        config = Config.from_dict({
            "hooks": {"post-create": "setup.sh", "pre_merge": "make test", "bogus": "x"},
        })
        assert config.hooks.get(HookType.POST_CREATE) == "setup.sh"
        assert config.hooks.get(HookType.PRE_MERGE) == "make test"

    def test_non_string_hook(self):
        """Test hook commands must be strings."""
        with pytest.raises(ConfigError):
            Config.from_dict({"hooks": {"pre_merge": ["make", "test"]}})

    def test_legacy_post_create_hook(self):
        """Test the old top-level post_create_hook key is honored."""
        config = Config.from_dict({"post_create_hook": ".gren/post-create.sh"})
        assert config.hooks.post_create == ".gren/post-create.sh"

    def test_commit_generator(self):
        """Test the commit generator table."""
        config = Config.from_dict({"commit_generator": {"command": "llm", "args": ["-m", 4]}})
        assert config.commit_generator == CommitGeneratorConfig(command="llm", args=["-m", "4"])
        with pytest.raises(ConfigError):
            CommitGeneratorConfig.from_dict({"command": "llm", "args": "-m"})

    def test_default_worktree_dir(self):
        """Test the default directory is a sibling of the repository."""
        assert default_worktree_dir("/src/app") == "/src/app-worktrees"
        assert default_worktree_dir("/src/app", "web") == "/src/web-worktrees"


class TestConfigManager:
    """Test reading and writing config files."""

    def test_missing_config_uses_defaults(self, temp_dir):
        """Test an uninitialized repo loads defaults."""
        manager = ConfigManager(str(temp_dir))
        assert manager.exists() is False
        assert manager.load() == Config()

    def test_save_and_load_toml(self, temp_dir):
        """Test a saved config loads back the same."""
        manager = ConfigManager(str(temp_dir))
        config = Config(
            worktree_dir="../wt",
            package_manager="pnpm",
            hooks=Hooks(post_create=".gren/post-create.sh", pre_merge="make test"),
            commit_generator=CommitGeneratorConfig(command="llm", args=["-s"]),
        )
        path = manager.save(config)

        assert path == temp_dir / ".gren" / "config.toml"
        with open(path, "rb") as f:
            data = tomllib.load(f)
        assert data["hooks"] == {"post_create": ".gren/post-create.sh", "pre_merge": "make test"}
        assert manager.load() == config

    def test_legacy_json(self, temp_dir):
        """Test the JSON config is read and replaced on save."""
        manager = ConfigManager(str(temp_dir))
        manager.config_dir.mkdir()
        manager.json_path.write_text(json.dumps({"worktree_dir": "/wt", "package_manager": "yarn"}))

        config = manager.load()
        assert config.worktree_dir == "/wt"
        assert config.package_manager == "yarn"

        manager.save(config)
        assert manager.toml_path.is_file()
        assert not manager.json_path.exists()

    def test_toml_preferred_over_json(self, temp_dir):
        """Test TOML wins when both files exist."""
        manager = ConfigManager(str(temp_dir))
        manager.config_dir.mkdir()
        manager.json_path.write_text(json.dumps({"worktree_dir": "/from-json"}))
        manager.toml_path.write_text('worktree_dir = "/from-toml"\n')
        assert manager.load().worktree_dir == "/from-toml"

    def test_invalid_toml(self, temp_dir):
        """Test unparsable TOML raises ConfigError."""
        manager = ConfigManager(str(temp_dir))
        manager.config_dir.mkdir()
        manager.toml_path.write_text("worktree_dir = [unclosed\n")
        with pytest.raises(ConfigError, match="failed to parse TOML"):
            manager.load()

    def test_invalid_values(self, temp_dir):
        """Test a parsable config with bad values raises ConfigError."""
        manager = ConfigManager(str(temp_dir))
        manager.config_dir.mkdir()
        manager.toml_path.write_text('package_manager = "maven"\n')
        with pytest.raises(ConfigError):
            manager.load()


class TestInitService:
    """Test gren init."""

    def test_initialize(self, git_repo):
        """Test config and hook are written with detected settings."""
        root = git_repo.working_dir
        open(os.path.join(root, "pnpm-lock.yaml"), "w").close()
        with open(os.path.join(root, ".gitignore"), "w") as f:
            f.write(".env.local\n")
        with open(os.path.join(root, ".env.local"), "w") as f:
            f.write("SECRET=1\n")

        result = InitService(root).initialize("web")

        assert result.package_manager == "pnpm"
        assert result.linked_files == [".env.local"]
        assert result.config_created is True
        assert result.hook_created is True
        assert os.access(result.hook_path, os.X_OK)

        config = ConfigManager(root).load()
        assert config.package_manager == "pnpm"
        assert config.hooks.post_create == os.path.join(".gren", "post-create.sh")
        assert config.worktree_dir == os.path.join(os.path.dirname(root), "web-worktrees")

        with open(result.hook_path) as f:
            script = f.read()
        assert '"$REPO_ROOT/.env.local"' in script
        assert "#     pnpm install" in script

    def test_existing_hook_kept(self, git_repo):
        """Test an existing post-create hook is not overwritten."""
        root = git_repo.working_dir
        os.makedirs(os.path.join(root, ".gren"))
        hook_path = os.path.join(root, ".gren", "post-create.sh")
        with open(hook_path, "w") as f:
            f.write("#!/bin/sh\necho mine\n")

        result = InitService(root).initialize()
        assert result.hook_created is False
        with open(hook_path) as f:
            assert "echo mine" in f.read()

    def test_detect_package_manager(self, temp_dir):
        """Test lockfiles are checked in priority order."""
        service = InitService(str(temp_dir))
        assert service.detect_package_manager() == "auto"
        (temp_dir / "package.json").write_text("{}")
        assert service.detect_package_manager() == "npm"
        (temp_dir / "yarn.lock").write_text("")
        assert service.detect_package_manager() == "yarn"
        (temp_dir / "bun.lockb").write_text("")
        assert service.detect_package_manager() == "bun"

    def test_tracked_files_not_linked(self, git_repo):
        """Test only gitignored files are suggested for linking."""
        root = git_repo.working_dir
        with open(os.path.join(root, ".nvmrc"), "w") as f:
            f.write("20\n")
        assert InitService(root).detect_linked_files() == []
