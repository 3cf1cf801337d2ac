"""Pytest fixtures for git-gren tests"""
import os
import tempfile
from pathlib import Path
import pytest
import git

from git_gren.config import Config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolve symlinks (e.g. /tmp -> /private/tmp) so paths match git's output
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository on main with one commit."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")

    # Create initial commit on main branch
    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.git.add("README.md")
    repo.git.commit("-m", "Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def origin_repo(temp_dir, git_repo):
    """Attach a bare repository as origin and push main to it."""
    origin_path = temp_dir / "origin.git"
    origin = git.Repo.init(origin_path, bare=True)
    git_repo.create_remote("origin", str(origin_path))
    git_repo.git.push("origin", "main")
    git_repo.git.fetch("origin")

    yield origin

    origin.close()


@pytest.fixture
def commit_file():
    """Return a helper that writes a file and commits it in a repo or worktree."""

    def _commit(path, name, content, message=None):
        path = Path(path)
        (path / name).parent.mkdir(parents=True, exist_ok=True)
        (path / name).write_text(content)
        runner = git.Git(str(path))
        runner.add(name)
        runner.commit("-m", message or f"Add {name}")
        return runner.rev_parse("HEAD")

    return _commit


@pytest.fixture
def worktree_dir(temp_dir):
    """Directory that holds worktrees created by tests."""
    path = temp_dir / "worktrees"
    path.mkdir()
    return path


@pytest.fixture
def gren_config(worktree_dir):
    """Config that creates worktrees under the test worktree directory."""
    return Config(worktree_dir=str(worktree_dir))


@pytest.fixture
def add_worktree(git_repo, worktree_dir):
    """Return a helper that adds a worktree for a new branch off main."""

    def _add(branch, name=None, base="main"):
        path = worktree_dir / (name or branch.replace("/", "-"))
        git_repo.git.worktree("add", "-b", branch, str(path), base)
        return path

    return _add

