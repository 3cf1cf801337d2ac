"""Pull request and CI formatting utilities."""

from git_gren.constants import CI_SYMBOLS
from git_gren.models.worktree import WorktreeInfo


def format_pr_link(wt: WorktreeInfo) -> str:
    """
    Format a worktree's PR as a Rich hyperlink with its state and CI symbol.

    Args:
        wt: Worktree information with optional PR annotations

    Returns:
        Rich markup such as "[link=...]#12[/link] OPEN ✓", or "" without a PR
    """
    if not wt.pr_number:
        return ""
    text = f"#{wt.pr_number}"
    if wt.pr_url:
        text = f"[link={wt.pr_url}]{text}[/link]"
    text = f"{text} {wt.pr_state}"
    ci_symbol = CI_SYMBOLS.get(wt.ci_status, "")
    if ci_symbol:
        text = f"{text} {ci_symbol}"
    return text
