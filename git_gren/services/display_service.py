"""Display and formatting service for worktree information"""
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from git_gren.constants import COLUMNS, CLI_COLORS, LEGEND_TEXT
from git_gren.formatters import (
    format_changes,
    format_marker,
    format_pr_link,
    format_stale_reason,
    format_status,
    format_worktree_name,
    get_worktree_style_type,
)
from git_gren.logging_config import get_logger
from git_gren.models.worktree import CleanupResult, ForEachResult, WorktreeInfo
from git_gren.services.compare_service import CompareResult

console = Console()
logger = get_logger(__name__)

COMPARE_STATUS_COLORS = {
    "added": "green",
    "modified": "yellow",
    "deleted": "red",
}


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False, output: Optional[Console] = None):
        self.verbose = verbose
        self.debug_mode = debug
        self.console = output or console

    def build_worktree_table(self, worktrees: List[WorktreeInfo]) -> Table:
        """Build a table of worktree information."""
        table = Table()

        # Add columns using shared constants
        for col in COLUMNS:
            if col.width:
                table.add_column(col.label, max_width=col.width, overflow="ellipsis")
            else:
                table.add_column(col.label)

        for wt in worktrees:
            row_style = CLI_COLORS.get(get_worktree_style_type(wt))
            cells = {
                "name": escape(format_worktree_name(wt)),
                "branch": escape(wt.branch),
                "status": format_status(wt.status),
                "changes": format_changes(wt),
                "last_commit": wt.last_commit,
                "stale": format_stale_reason(wt),
                "pr": format_pr_link(wt),
                "marker": format_marker(wt),
                "path": escape(wt.path),
            }
            table.add_row(*(cells[col.key] for col in COLUMNS), style=row_style)
        return table

    def display_worktree_table(self, worktrees: List[WorktreeInfo], show_legend: bool = False) -> None:
        """Display a table of worktree information."""
        logger.debug(f"Displaying {len(worktrees)} worktrees")
        self.console.print(self.build_worktree_table(worktrees))

        if show_legend:
            self.console.print(LEGEND_TEXT)

            stale = [wt for wt in worktrees if wt.is_stale and not wt.is_main]
            self.console.print("Summary:")
            self.console.print(f"Total worktrees: {len(worktrees)}")
            self.console.print(f"Stale worktrees: {len(stale)}")
            if stale:
                self.console.print("[dim]Run 'gren cleanup' to remove stale worktrees[/dim]")

    def display_cleanup_result(self, result: CleanupResult, dry_run: bool = False) -> None:
        if not result.candidates:
            self.console.print("[green]No stale worktrees to clean up[/green]")
            return

        if dry_run:
            self.console.print("\nWorktrees that would be deleted:")
            for wt in result.candidates:
                self.console.print(f"  {escape(wt.name)} ({escape(wt.branch)}, {format_stale_reason(wt)})")
            return

        for wt in result.deleted:
            self.console.print(f"[green]Deleted {escape(wt.name)}[/green] ({format_stale_reason(wt)})")
        for wt, error in result.failed:
            self.console.print(f"[red]Failed to delete {escape(wt.name)}: {escape(error)}[/red]")

        self.console.print(
            f"\nDeleted {len(result.deleted)} of {len(result.candidates)} stale worktree(s)"
        )

    def display_foreach_results(self, results: List[ForEachResult]) -> None:
        for result in results:
            color = "green" if result.success else "red"
            self.console.print(f"[bold {color}]==> {escape(result.worktree)}[/bold {color}] [dim]({escape(result.branch)})[/dim]")
            if result.output:
                self.console.print(escape(result.output.rstrip("\n")))
            if result.error:
                self.console.print(f"[red]{escape(result.error)}[/red]")

        failed = sum(1 for result in results if not result.success)
        if failed:
            self.console.print(f"\n[red]{failed} of {len(results)} worktree(s) failed[/red]")

    def display_compare_result(self, result: CompareResult) -> None:
        if not result.files:
            self.console.print(
                f"No differences between {escape(result.source_worktree)} and {escape(result.target_worktree)}"
            )
            return

        table = Table(title=f"{result.source_worktree} vs {result.target_worktree}")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("State")
        for change in result.files:
            color = COMPARE_STATUS_COLORS.get(change.status, "white")
            table.add_row(
                escape(change.path),
                f"[{color}]{change.status}[/{color}]",
                "committed" if change.is_committed else "uncommitted",
            )
        self.console.print(table)
