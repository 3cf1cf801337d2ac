"""Formatting of GitPython command errors."""

import git


def git_error_text(error: Exception) -> str:
    """git's own diagnostic from a GitCommandError, without GitPython's decoration."""
    text = (getattr(error, "stderr", "") or "").strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:"):].strip()
    if len(text) >= 2 and text[0] == text[-1] == "'":
        text = text[1:-1]
    text = text.strip()
    if not text and not isinstance(error, git.exc.GitCommandError):
        return str(error)
    return text


def format_git_error(command: str, error: Exception) -> str:
    """'git <command> failed (exit N): <stderr>' for a failed invocation."""
    stderr = git_error_text(error)
    status = getattr(error, "status", "unknown")
    if stderr:
        return f"git {command} failed (exit {status}): {stderr}"
    return f"git {command} failed with exit code {status}"
