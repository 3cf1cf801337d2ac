"""Tests for WorktreeService"""
import os
import shutil
from pathlib import Path
from unittest.mock import Mock, call, patch

import git
import pytest

from git_gren.config import Config, Hooks
from git_gren.exceptions import (
    BranchAlreadyCheckedOutError,
    BranchNotFoundError,
    CurrentWorktreeError,
    GrenError,
    HookFailedError,
    WorktreeNotFoundError,
    WorktreeRemoveError,
)
from git_gren.models.branch import BranchStatus, StaleReason
from git_gren.models.worktree import CreateWorktreeRequest, PRInfo, WorktreeStatus
from git_gren.services.git.worktrees import (
    FORCE_HINT,
    SUBMODULE_HINT,
    UNCOMMITTED_HINT,
    WorktreeService,
    removal_hint,
)


def rev(repo_path, ref):
    return git.Git(str(repo_path)).rev_parse(ref)


class TestListWorktrees:
    """Test listing and enrichment."""

    def test_single_worktree(self, git_repo):
        """Test a repository with one worktree yields one current main record."""
        worktrees = WorktreeService(git_repo.working_dir).list_worktrees()

        assert len(worktrees) == 1
        wt = worktrees[0]
        assert wt.is_current is True
        assert wt.is_main is True
        assert wt.branch == "main"
        assert wt.branch_status == BranchStatus.ACTIVE

    def test_linked_worktree(self, git_repo, add_worktree):
        """Test a linked worktree is listed and is not main."""
        path = add_worktree("feature")
        worktrees = WorktreeService(git_repo.working_dir).list_worktrees()

        assert len(worktrees) == 2
        linked = next(wt for wt in worktrees if wt.branch == "feature")
        assert linked.name == "feature"
        assert os.path.realpath(linked.path) == str(path)
        assert linked.is_main is False
        assert linked.is_current is False

    def test_current_from_linked_worktree(self, git_repo, add_worktree):
        """Test is_current follows the service's repo path."""
        path = add_worktree("feature")
        worktrees = WorktreeService(str(path)).list_worktrees()

        current = [wt for wt in worktrees if wt.is_current]
        assert [wt.branch for wt in current] == ["feature"]

    def test_status_counts(self, git_repo, add_worktree, commit_file):
        """Test staged, modified and untracked counts and derived status."""
        path = add_worktree("feature")
        commit_file(path, "tracked.txt", "one\n")
        (path / "tracked.txt").write_text("two\n")
        (path / "new.txt").write_text("new\n")

        wt = WorktreeService(git_repo.working_dir).find_worktree("feature")
        enriched = WorktreeService(git_repo.working_dir)._enrich_status(wt)
        assert enriched.modified_count == 1
        assert enriched.untracked_count == 1
        assert enriched.status == WorktreeStatus.MIXED
        assert enriched.last_commit.endswith("ago")

    def test_unpushed_status(self, git_repo, origin_repo, add_worktree, commit_file):
        """Test a clean worktree is unpushed without upstream or with commits ahead of it."""
        path = add_worktree("feature")
        service = WorktreeService(git_repo.working_dir)
        wt = service.find_worktree("feature")
        assert service._enrich_status(wt).status == WorktreeStatus.UNPUSHED

        git.Git(str(path)).push("-u", "origin", "feature")
        assert service._enrich_status(wt).status == WorktreeStatus.CLEAN

        commit_file(path, "a.txt", "a")
        enriched = service._enrich_status(wt)
        assert enriched.status == WorktreeStatus.UNPUSHED
        assert enriched.unpushed_count == 1

    def test_submodule_flag(self, git_repo, add_worktree):
        """Test .gitmodules marks a worktree as having submodules."""
        path = add_worktree("feature")
        (path / ".gitmodules").write_text("")

        worktrees = WorktreeService(git_repo.working_dir).list_worktrees()
        linked = next(wt for wt in worktrees if wt.branch == "feature")
        assert linked.has_submodules is True

    def test_missing_worktree(self, git_repo, add_worktree):
        """Test a deleted directory is reported as missing, not dropped."""
        path = add_worktree("feature")
        shutil.rmtree(path)

        worktrees = WorktreeService(git_repo.working_dir).list_worktrees()
        linked = next(wt for wt in worktrees if wt.branch == "feature")
        assert linked.status == WorktreeStatus.MISSING
        assert linked.branch_status == BranchStatus.ACTIVE

    def test_stale_branch(self, git_repo, add_worktree):
        """Test a branch with nothing beyond main is stale."""
        add_worktree("done")
        worktrees = WorktreeService(git_repo.working_dir).list_worktrees()
        done = next(wt for wt in worktrees if wt.branch == "done")
        assert done.branch_status == BranchStatus.STALE
        assert done.stale_reason == StaleReason.NO_UNIQUE_COMMITS

    def test_enrichment_failure_keeps_record(self, git_repo):
        """Test an enrichment error is logged and the record kept."""
        service = WorktreeService(git_repo.working_dir)
        with patch.object(service, "_enrich_status", side_effect=RuntimeError("boom")):
            worktrees = service.list_worktrees()
        assert len(worktrees) == 1

    def test_markers_attached(self, git_repo):
        """Test markers are attached to the matching branch."""
        marker_service = Mock()
        marker_service.list_markers.return_value = {"main": "working"}
        worktrees = WorktreeService(
            git_repo.working_dir, marker_service=marker_service
        ).list_worktrees()
        assert worktrees[0].marker == "working"


class TestGitHubEnrichment:
    """Test PR annotations."""

    def _service(self, git_repo, prs):
        github = Mock()
        github.ensure_setup.return_value = True
        github.get_bulk_pr_info.return_value = prs
        return WorktreeService(git_repo.working_dir, github_service=github), github

    def test_merged_pr_marks_stale(self, git_repo, add_worktree):
        """Test a merged PR classifies the branch as pr_merged."""
        add_worktree("feature")
        service, _ = self._service(
            git_repo, {"feature": PRInfo(number=7, state="MERGED", url="https://x/7")}
        )
        worktrees = service.enrich_with_github_status(service.list_worktrees())
        feature = next(wt for wt in worktrees if wt.branch == "feature")

        assert feature.pr_number == 7
        assert feature.stale_reason == StaleReason.PR_MERGED
        assert feature.branch_status == BranchStatus.STALE

    def test_closed_pr_marks_stale(self, git_repo, add_worktree):
        """Test a closed PR classifies the branch as pr_closed."""
        add_worktree("feature")
        service, _ = self._service(git_repo, {"feature": PRInfo(number=8, state="CLOSED")})
        worktrees = service.enrich_with_github_status(service.list_worktrees())
        feature = next(wt for wt in worktrees if wt.branch == "feature")
        assert feature.stale_reason == StaleReason.PR_CLOSED

    def test_main_is_not_looked_up(self, git_repo, add_worktree):
        """Test the main worktree is excluded from PR lookups."""
        add_worktree("feature")
        service, github = self._service(git_repo, {})
        service.enrich_with_github_status(service.list_worktrees())
        github.get_bulk_pr_info.assert_called_once_with(["feature"])

    def test_unavailable_github_is_noop(self, git_repo):
        """Test no annotations when GitHub is not configured."""
        github = Mock()
        github.ensure_setup.return_value = False
        service = WorktreeService(git_repo.working_dir, github_service=github)
        worktrees = service.list_worktrees()
        assert service.enrich_with_github_status(worktrees) == worktrees
        github.get_bulk_pr_info.assert_not_called()


class TestCreateWorktree:
    """Test worktree creation shapes."""

    def test_local_branch(self, git_repo, gren_config, worktree_dir):
        """Test a local-only branch is checked out directly."""
        git_repo.git.branch("feature")
        service = WorktreeService(git_repo.working_dir, config=gren_config)

        result = service.create_worktree(CreateWorktreeRequest(name="feature"))

        assert result.path == str(worktree_dir / "feature")
        assert result.source_ref == "feature"
        assert result.warning == ""
        assert git.Git(result.path).symbolic_ref("--short", "HEAD") == "feature"

    def test_slash_branch_is_sanitized(self, git_repo, gren_config, worktree_dir):
        """Test branch slashes become dashes in the directory name."""
        git_repo.git.branch("feature/login")
        service = WorktreeService(git_repo.working_dir, config=gren_config)

        result = service.create_worktree(CreateWorktreeRequest(name="feature/login"))
        assert result.path == str(worktree_dir / "feature-login")
        assert result.branch == "feature/login"

    def test_remote_only_branch(self, git_repo, origin_repo, gren_config):
        """Test a remote-only branch gets a tracking local branch."""
        git_repo.git.branch("remote-only")
        git_repo.git.push("origin", "remote-only")
        git_repo.git.branch("-D", "remote-only")
        service = WorktreeService(git_repo.working_dir, config=gren_config)

        result = service.create_worktree(CreateWorktreeRequest(name="remote-only"))

        assert result.source_ref == "origin/remote-only"
        assert service.reader.local_branch_exists("remote-only") is True
        assert git.Git(result.path).rev_parse("--abbrev-ref", "@{u}") == "origin/remote-only"

    def test_behind_local_is_fast_forwarded(self, git_repo, origin_repo, gren_config, commit_file):
        """Test a local branch strictly behind origin is moved up before checkout."""
        git_repo.git.checkout("-b", "feature")
        commit_file(git_repo.working_dir, "a.txt", "a")
        commit_file(git_repo.working_dir, "b.txt", "b")
        git_repo.git.push("origin", "feature")
        git_repo.git.checkout("main")
        git_repo.git.branch("-f", "feature", "feature~1")

        service = WorktreeService(git_repo.working_dir, config=gren_config)
        result = service.create_worktree(CreateWorktreeRequest(name="feature"))

        assert result.source_ref == "origin/feature"
        assert rev(git_repo.working_dir, "feature") == rev(git_repo.working_dir, "origin/feature")
        assert rev(result.path, "HEAD") == rev(git_repo.working_dir, "origin/feature")

    def test_ahead_local_keeps_commits(self, git_repo, origin_repo, gren_config, commit_file):
        """Test unpushed local commits are kept and warned about."""
        git_repo.git.checkout("-b", "feature-x")
        commit_file(git_repo.working_dir, "a.txt", "a")
        git_repo.git.push("origin", "feature-x")
        commit_file(git_repo.working_dir, "b.txt", "b")
        commit_file(git_repo.working_dir, "c.txt", "c")
        local_sha = rev(git_repo.working_dir, "HEAD")
        git_repo.git.checkout("main")

        service = WorktreeService(git_repo.working_dir, config=gren_config)
        result = service.create_worktree(CreateWorktreeRequest(name="feature-x"))

        assert result.source_ref == "feature-x"
        assert "2 unpushed commit(s)" in result.warning
        assert rev(result.path, "HEAD") == local_sha

    def test_new_branch_from_base(self, git_repo, gren_config):
        """Test a new branch is created from the recommended base."""
        service = WorktreeService(git_repo.working_dir, config=gren_config)
        result = service.create_worktree(CreateWorktreeRequest(name="fresh", create_branch=True))

        assert result.source_ref == "main"
        assert rev(result.path, "HEAD") == rev(git_repo.working_dir, "main")

    def test_new_branch_from_remote_base_does_not_track(self, git_repo, origin_repo, gren_config):
        """Test a new branch based on origin/main has no upstream."""
        service = WorktreeService(git_repo.working_dir, config=gren_config)
        result = service.create_worktree(
            CreateWorktreeRequest(name="fresh", base_branch="main", create_branch=True)
        )

        assert result.source_ref == "origin/main"
        assert service.reader.has_upstream(result.path) is False

    def test_new_branch_from_ahead_base_warns(self, git_repo, origin_repo, gren_config, commit_file):
        """Test unpushed commits on the base branch are kept and warned about."""
        sha = commit_file(git_repo.working_dir, "local.txt", "local")
        service = WorktreeService(git_repo.working_dir, config=gren_config)

        result = service.create_worktree(CreateWorktreeRequest(name="fresh", create_branch=True))

        assert result.source_ref == "main"
        assert result.warning == "main has 1 unpushed commit(s) - using local version"
        assert rev(result.path, "HEAD") == sha

    def test_missing_branch_without_create(self, git_repo, gren_config):
        """Test a missing branch fails unless create_branch is set."""
        service = WorktreeService(git_repo.working_dir, config=gren_config)
        with pytest.raises(BranchNotFoundError, match="not found locally or on remote"):
            service.create_worktree(CreateWorktreeRequest(name="nope"))

    def test_branch_already_checked_out(self, git_repo, gren_config):
        """Test a branch checked out elsewhere is rejected."""
        service = WorktreeService(git_repo.working_dir, config=gren_config)
        with pytest.raises(BranchAlreadyCheckedOutError) as exc_info:
            service.create_worktree(CreateWorktreeRequest(name="again", branch="main"))
        assert exc_info.value.path == git_repo.working_dir

    def test_existing_path(self, git_repo, gren_config, worktree_dir):
        """Test an existing target directory is rejected."""
        git_repo.git.branch("feature")
        (worktree_dir / "feature").mkdir()
        service = WorktreeService(git_repo.working_dir, config=gren_config)
        with pytest.raises(GrenError, match="already exists"):
            service.create_worktree(CreateWorktreeRequest(name="feature"))

    def test_post_create_hook(self, git_repo, worktree_dir):
        """Test the post-create hook runs in the new worktree."""
        git_repo.git.branch("feature")
        config = Config(
            worktree_dir=str(worktree_dir),
            hooks=Hooks(post_create='echo "created {{ branch }} in $(basename "$PWD")"'),
        )
        result = WorktreeService(git_repo.working_dir, config=config).create_worktree(
            CreateWorktreeRequest(name="feature")
        )
        assert result.hook_output.strip() == "created feature in feature"

    def test_failed_post_create_hook_is_a_warning(self, git_repo, worktree_dir):
        """Test a failing post-create hook does not fail creation."""
        git_repo.git.branch("feature")
        config = Config(worktree_dir=str(worktree_dir), hooks=Hooks(post_create="exit 3"))
        result = WorktreeService(git_repo.working_dir, config=config).create_worktree(
            CreateWorktreeRequest(name="feature")
        )
        assert os.path.isdir(result.path)
        assert "post-create hook failed: exit status 3" in result.warning

    def test_config_dir_is_linked(self, git_repo, gren_config):
        """Test .gren is symlinked into new worktrees."""
        (Path(git_repo.working_dir) / ".gren").mkdir()
        git_repo.git.branch("feature")
        result = WorktreeService(git_repo.working_dir, config=gren_config).create_worktree(
            CreateWorktreeRequest(name="feature")
        )
        link = Path(result.path) / ".gren"
        assert link.is_symlink()
        assert os.path.realpath(link) == os.path.join(git_repo.working_dir, ".gren")

    def test_default_worktree_dir(self, git_repo):
        """Test the default directory is a sibling of the repository."""
        service = WorktreeService(git_repo.working_dir)
        expected = os.path.join(os.path.dirname(git_repo.working_dir), "test_repo-worktrees")
        assert service.resolve_worktree_dir() == expected

    def test_relative_worktree_dir(self, git_repo):
        """Test a relative configured directory is resolved against the repo root."""
        service = WorktreeService(git_repo.working_dir, config=Config(worktree_dir="../trees"))
        assert service.resolve_worktree_dir() == os.path.join(
            os.path.dirname(git_repo.working_dir), "trees"
        )


class TestFindWorktree:
    """Test worktree lookup."""

    def test_by_name_path_and_branch(self, git_repo, add_worktree):
        """Test lookup by name, path and branch."""
        path = add_worktree("feature/login", name="login")
        service = WorktreeService(git_repo.working_dir)

        assert service.find_worktree("login").branch == "feature/login"
        assert service.find_worktree(str(path)).branch == "feature/login"
        assert service.find_worktree("feature/login").name == "login"

    def test_not_found(self, git_repo):
        """Test unknown identifiers raise WorktreeNotFoundError."""
        with pytest.raises(WorktreeNotFoundError):
            WorktreeService(git_repo.working_dir).find_worktree("nope")


class TestDeleteWorktree:
    """Test worktree deletion."""

    def test_delete(self, git_repo, add_worktree):
        """Test a clean worktree is removed."""
        path = add_worktree("feature")
        WorktreeService(git_repo.working_dir).delete_worktree("feature")
        assert not path.exists()

    @pytest.mark.parametrize("identifier_kind", ["name", "path", "branch"])
    def test_delete_current_fails(self, git_repo, add_worktree, identifier_kind):
        """Test the current worktree cannot be deleted by any identifier."""
        path = add_worktree("feature/login", name="login")
        identifier = {"name": "login", "path": str(path), "branch": "feature/login"}[identifier_kind]
        service = WorktreeService(str(path))
        with pytest.raises(CurrentWorktreeError, match="cannot delete current worktree"):
            service.delete_worktree(identifier)
        assert path.exists()

    def test_dirty_worktree_needs_force(self, git_repo, add_worktree):
        """Test uncommitted changes block removal with a hint."""
        path = add_worktree("feature")
        (path / "dirty.txt").write_text("dirty\n")
        service = WorktreeService(git_repo.working_dir)

        with pytest.raises(WorktreeRemoveError) as exc_info:
            service.delete_worktree("feature")
        assert exc_info.value.hint == UNCOMMITTED_HINT
        assert "Hint:" in str(exc_info.value)

        service.delete_worktree("feature", force=True)
        assert not path.exists()

    def test_missing_worktree_is_pruned(self, git_repo, add_worktree):
        """Test a worktree whose directory is gone is pruned."""
        path = add_worktree("feature")
        shutil.rmtree(path)
        service = WorktreeService(git_repo.working_dir)

        service.delete_worktree("feature")
        assert [wt.branch for wt in service.read_worktrees()] == ["main"]

    def test_submodules_deinit_before_remove(self, git_repo, add_worktree):
        """Test submodules are deinitialized and removal forced."""
        path = add_worktree("feature")
        (path / ".gitmodules").write_text("")
        service = WorktreeService(git_repo.working_dir)
        wt = service.find_worktree("feature")

        with patch.object(service, "_git") as mock_git:
            service.remove_worktree(wt)

        runner = mock_git.return_value
        assert runner.method_calls == [
            call.submodule("deinit", "--all", "--force"),
            call.worktree("remove", wt.path, "--force"),
        ]

    def test_submodule_deinit_failure(self, git_repo, add_worktree):
        """Test a deinit failure is reported with the submodule hint."""
        path = add_worktree("feature")
        (path / ".gitmodules").write_text("")
        service = WorktreeService(git_repo.working_dir)
        wt = service.find_worktree("feature")

        with patch.object(service, "_git") as mock_git:
            mock_git.return_value.submodule.side_effect = git.exc.GitCommandError(
                "submodule", 1, stderr="fatal: boom"
            )
            with pytest.raises(WorktreeRemoveError) as exc_info:
                service.remove_worktree(wt)
        assert exc_info.value.hint == SUBMODULE_HINT

    def test_pre_remove_hook_blocks(self, git_repo, add_worktree):
        """Test a failing pre-remove hook stops deletion."""
        path = add_worktree("feature")
        config = Config(hooks=Hooks(pre_remove="echo no; exit 1"))
        service = WorktreeService(git_repo.working_dir, config=config)

        with pytest.raises(HookFailedError):
            service.delete_worktree("feature")
        assert path.exists()


class TestRemovalHint:
    """Test remediation hints for failed removals."""

    def test_hints(self):
        """Test stderr text maps to the right hint."""
        assert removal_hint("fatal: working trees containing submodules cannot be moved") == SUBMODULE_HINT
        assert removal_hint("fatal: 'x' contains modified or untracked files, use --force") == UNCOMMITTED_HINT
        assert removal_hint("fatal: something else") == FORCE_HINT


class TestCleanup:
    """Test stale worktree cleanup."""

    def test_dry_run(self, git_repo, add_worktree):
        """Test dry run lists candidates without deleting."""
        path = add_worktree("done")
        result = WorktreeService(git_repo.working_dir).cleanup(dry_run=True)

        assert [wt.branch for wt in result.candidates] == ["done"]
        assert result.deleted == []
        assert path.exists()

    def test_deletes_stale_only(self, git_repo, add_worktree, commit_file):
        """Test stale worktrees are removed and active ones kept."""
        done = add_worktree("done")
        active = add_worktree("active")
        commit_file(active, "work.txt", "work")

        result = WorktreeService(git_repo.working_dir).cleanup()

        assert [wt.branch for wt in result.deleted] == ["done"]
        assert not done.exists()
        assert active.exists()

    def test_failures_are_collected(self, git_repo, add_worktree):
        """Test one failed deletion does not stop the batch."""
        dirty = add_worktree("dirty")
        (dirty / "x.txt").write_text("x")
        clean = add_worktree("clean")

        result = WorktreeService(git_repo.working_dir).cleanup()

        assert [wt.branch for wt in result.deleted] == ["clean"]
        assert [wt.branch for wt, _ in result.failed] == ["dirty"]
        assert not clean.exists()
