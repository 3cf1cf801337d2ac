"""Tests for lifecycle hook execution"""
import json
import stat
from unittest.mock import Mock

from git_gren.config import Hooks
from git_gren.models.hook import HookType
from git_gren.services.hook_service import HookContext, HookRunner


def make_reader(commit="0123456789abcdef0123456789abcdef01234567"):
    reader = Mock()
    reader.commit_sha.return_value = commit
    reader.default_branch.return_value = "main"
    return reader


def make_script(path, body):
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


class TestHookContext:
    """Test the context handed to hooks."""

    def _context(self, **kwargs):
        return HookContext(
            hook_type=HookType.PRE_MERGE,
            worktree_path="/wt/feature-login",
            branch="feature/login",
            repo_root="/src/app",
            repo="app",
            commit="0123456789abcdef",
            default_branch="main",
            **kwargs,
        )

    def test_optional_fields_omitted(self):
        """Test empty optional fields are left out of the JSON payload."""
        payload = self._context().to_json()
        assert payload["hook_type"] == "pre-merge"
        assert payload["worktree_name"] == "feature-login"
        assert payload["short_commit"] == "0123456"
        assert "target_branch" not in payload
        assert "base_branch" not in payload
        assert "execute_cmd" not in payload

    def test_optional_fields_present(self):
        """Test set optional fields are included."""
        payload = self._context(target_branch="main", execute_cmd="make").to_json()
        assert payload["target_branch"] == "main"
        assert payload["execute_cmd"] == "make"

    def test_environment(self):
        """Test GREN_* variables are populated."""
        env = self._context(base_branch="develop").to_env("{}")
        assert env["GREN_WORKTREE_PATH"] == "/wt/feature-login"
        assert env["GREN_BRANCH"] == "feature/login"
        assert env["GREN_BASE_BRANCH"] == "develop"
        assert env["GREN_REPO_ROOT"] == "/src/app"
        assert env["GREN_HOOK_TYPE"] == "pre-merge"
        assert env["GREN_TARGET_BRANCH"] == ""
        assert env["GREN_JSON_CONTEXT"] == "{}"


class TestHookRunner:
    """Test running hooks as subprocesses."""

    def test_missing_hook_is_noop(self, temp_dir):
        """Test an unconfigured hook succeeds without running anything."""
        runner = HookRunner(Hooks(), str(temp_dir), make_reader())
        result = runner.run(HookType.POST_CREATE, str(temp_dir), "feature")

        assert result.success is True
        assert result.ran is False
        assert runner.has_hook(HookType.POST_CREATE) is False

    def test_inline_command_with_template(self, temp_dir):
        """Test inline commands run through the shell with variables expanded."""
        hooks = Hooks(post_create="echo {{ branch | sanitize }} $GREN_HOOK_TYPE")
        runner = HookRunner(hooks, str(temp_dir), make_reader())

        result = runner.run(HookType.POST_CREATE, str(temp_dir), "feature/login")
        assert result.success is True
        assert result.output.strip() == "feature-login post-create"

    def test_runs_in_worktree(self, temp_dir):
        """Test the hook's working directory is the worktree."""
        worktree = temp_dir / "wt"
        worktree.mkdir()
        runner = HookRunner(Hooks(post_create="pwd"), str(temp_dir), make_reader())

        result = runner.run(HookType.POST_CREATE, str(worktree), "feature")
        assert result.output.strip() == str(worktree)

    def test_stdin_receives_json(self, temp_dir):
        """Test the JSON context arrives on stdin."""
        runner = HookRunner(Hooks(pre_merge="cat"), str(temp_dir), make_reader())

        result = runner.run(HookType.PRE_MERGE, str(temp_dir), "feature", target_branch="main")
        payload = json.loads(result.output)
        assert payload["branch"] == "feature"
        assert payload["target_branch"] == "main"
        assert payload["default_branch"] == "main"
        assert "base_branch" not in payload

    def test_script_receives_positional_args(self, temp_dir):
        """Test an executable script gets worktree, branch, base and root."""
        make_script(temp_dir / "hook.sh", 'echo "$1|$2|$3|$4"\n')
        runner = HookRunner(Hooks(post_create="hook.sh"), str(temp_dir), make_reader())

        result = runner.run(HookType.POST_CREATE, str(temp_dir), "feature", base_branch="main")
        assert result.output.strip() == f"{temp_dir}|feature|main|{temp_dir}"

    def test_non_executable_script_uses_shell(self, temp_dir):
        """Test a non-executable file name is treated as an inline command."""
        (temp_dir / "hook.sh").write_text("echo never\n")
        runner = HookRunner(Hooks(post_create="hook.sh"), str(temp_dir), make_reader())

        result = runner.run(HookType.POST_CREATE, str(temp_dir), "feature")
        assert result.success is False

    def test_failure(self, temp_dir):
        """Test a non-zero exit is reported with its output."""
        runner = HookRunner(Hooks(pre_remove="echo nope; exit 3"), str(temp_dir), make_reader())

        result = runner.run(HookType.PRE_REMOVE, str(temp_dir), "feature")
        assert result.success is False
        assert result.error == "exit status 3"
        assert result.output.strip() == "nope"

    def test_stderr_is_captured(self, temp_dir):
        """Test stderr is folded into the output."""
        runner = HookRunner(Hooks(post_merge="echo oops >&2"), str(temp_dir), make_reader())
        result = runner.run(HookType.POST_MERGE, str(temp_dir), "feature")
        assert result.output.strip() == "oops"

    def test_missing_worktree_skips_commit_lookup(self, temp_dir):
        """Test hooks for a vanished worktree run from the repo root."""
        reader = make_reader()
        runner = HookRunner(Hooks(pre_remove="pwd"), str(temp_dir), reader)

        result = runner.run(HookType.PRE_REMOVE, str(temp_dir / "gone"), "feature")
        assert result.output.strip() == str(temp_dir)
        reader.commit_sha.assert_not_called()
