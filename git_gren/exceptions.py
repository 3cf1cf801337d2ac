"""Custom exceptions for git-gren"""

from typing import Optional


class GrenError(Exception):
    """Base exception for all git-gren errors."""
    pass


class ConfigError(GrenError):
    """Exception raised for unreadable or invalid configuration."""
    pass


class GitOperationError(GrenError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class BranchNotFoundError(GitOperationError):
    """Exception raised when a branch exists neither locally nor on origin."""

    def __init__(self, branch: str):
        super().__init__(
            "create_worktree", branch, f"branch '{branch}' not found locally or on remote"
        )


class BranchAlreadyCheckedOutError(GitOperationError):
    """Exception raised when a branch is already checked out in another worktree."""

    def __init__(self, branch: str, path: str):
        self.path = path
        super().__init__(
            "create_worktree", branch, f"branch is already checked out at '{path}'"
        )


class WorktreeNotFoundError(GitOperationError):
    """Exception raised when no worktree matches a name or path."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__("find_worktree", message=f"worktree '{identifier}' not found")


class CurrentWorktreeError(GitOperationError):
    """Exception raised when attempting to delete the worktree we are standing in."""

    def __init__(self, path: str):
        self.path = path
        super().__init__("delete_worktree", message="cannot delete current worktree")


class WorktreeRemoveError(GitOperationError):
    """Exception raised when git refuses to remove a worktree."""

    def __init__(self, path: str, message: str, hint: str = ""):
        self.path = path
        self.hint = hint
        full = message
        if hint:
            full += f"\n\nHint: {hint}"
        super().__init__("worktree_remove", message=full)


class MergeError(GitOperationError):
    """Exception raised when the merge workflow cannot continue."""

    def __init__(self, message: str, branch: Optional[str] = None):
        super().__init__("merge", branch, message)


class RebaseConflictError(MergeError):
    """Exception raised when a rebase stops on conflicts (the rebase is aborted)."""

    def __init__(self, branch: str, target: str, details: str = ""):
        self.target = target
        message = "rebase failed (conflicts?)"
        if details:
            message += f": {details}"
        super().__init__(message, branch)


class NothingToCommitError(GitOperationError):
    """Exception raised when a commit step finds a clean working tree."""

    def __init__(self, branch: Optional[str] = None):
        super().__init__("commit", branch, "nothing to commit")


class NothingToSquashError(GitOperationError):
    """Exception raised when there is at most one commit ahead of the target."""

    def __init__(self, count: int, target: str):
        self.count = count
        self.target = target
        super().__init__(
            "squash", message=f"nothing to squash (only {count} commit ahead of {target})"
        )


class HookFailedError(GrenError):
    """Exception raised when a blocking hook exits non-zero."""

    def __init__(self, hook_type: str, output: str = "", error: str = ""):
        self.hook_type = hook_type
        self.output = output
        self.error = error

        error_msg = f"{hook_type} hook failed"
        if error:
            error_msg += f": {error}"
        if output:
            error_msg += f"\n{output.rstrip()}"

        super().__init__(error_msg)


class GitHubAPIError(GrenError):
    """Exception raised for errors in GitHub API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub API operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class CommitMessageError(GrenError):
    """Exception raised when the external commit message generator fails."""
    pass


class UnsafePathError(GrenError):
    """Exception raised when a changed-file path would escape the worktree."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"invalid path ({reason}): {path}")


class NavigationError(GrenError):
    """Exception raised when a switch target cannot be resolved or written."""
    pass
