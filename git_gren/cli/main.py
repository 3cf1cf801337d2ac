"""Command-line interface for git-gren"""

import os
import sys

from rich.console import Console
from rich.markup import escape

from git_gren.cli.args import parse_args
from git_gren.core import Gren
from git_gren.logging_config import setup_logging
from git_gren.models.worktree import ForEachOptions, MergeOptions
from git_gren.services.display_service import DisplayService
from git_gren.services.marker_service import marker_display
from git_gren.services.navigation_service import shell_init_script

console = Console()


def _print_hook_output(output: str) -> None:
    if output and output.strip():
        console.print(f"[dim]{escape(output.rstrip())}[/dim]")


def cmd_init(gren: Gren, args, display: DisplayService) -> int:
    result = gren.init(args.project_name)
    console.print(f"[green]Wrote config to {escape(result.config_path)}[/green]")
    if result.hook_created:
        console.print(f"[green]Created post-create hook {escape(result.hook_path)}[/green]")
    else:
        console.print(f"Keeping existing hook {escape(result.hook_path)}")
    console.print(f"Package manager: {result.package_manager}")
    if result.linked_files:
        console.print(f"Linked files: {', '.join(result.linked_files)}")
    return 0


def cmd_create(gren: Gren, args, display: DisplayService) -> int:
    result = gren.create(
        args.name,
        branch=args.branch,
        base_branch=args.base,
        create_branch=args.new,
        worktree_dir=args.dir,
    )
    if result.warning:
        console.print(f"[yellow]Warning: {escape(result.warning)}[/yellow]")
    _print_hook_output(result.hook_output)
    source = f" from {escape(result.source_ref)}" if result.source_ref else ""
    console.print(
        f"[green]Created worktree for {escape(result.branch)}{source} at {escape(result.path)}[/green]"
    )
    if args.execute:
        _report_switch(gren.enter(result.path, result.branch, args.execute))
    return 0


def cmd_list(gren: Gren, args, display: DisplayService) -> int:
    worktrees = gren.list(include_github=not args.no_github, include_ci=args.ci)
    display.display_worktree_table(worktrees, show_legend=args.legend)
    return 0


def cmd_delete(gren: Gren, args, display: DisplayService) -> int:
    _print_hook_output(gren.delete(args.name, force=args.force))
    console.print(f"[green]Deleted worktree {escape(args.name)}[/green]")
    return 0


def cmd_cleanup(gren: Gren, args, display: DisplayService) -> int:
    result = gren.cleanup(dry_run=args.dry_run, force=args.force_delete)
    display.display_cleanup_result(result, dry_run=args.dry_run)
    return 1 if result.failed else 0


def cmd_merge(gren: Gren, args, display: DisplayService) -> int:
    options = MergeOptions(
        target=args.target,
        squash=not args.no_squash,
        rebase=not args.no_rebase,
        remove=not args.no_remove,
        verify=not args.no_verify,
        force=args.force,
    )
    result = gren.merge(options)
    if result.skipped:
        console.print(f"[yellow]Skipped: {result.skip_reason}[/yellow]")
        return 0

    for output in result.hook_output:
        _print_hook_output(output)
    if result.commits_squashed:
        console.print(f"Squashed {result.commits_squashed} commits")
    console.print(
        f"[green]Merged {escape(result.source_branch)} into {escape(result.target_branch)}[/green]"
    )
    if result.worktree_removed:
        console.print("Removed worktree")
    elif result.remove_error:
        console.print(f"[yellow]Worktree not removed: {escape(result.remove_error)}[/yellow]")
    return 0


def cmd_step(gren: Gren, args, display: DisplayService) -> int:
    target = args.target or None
    if args.action == "commit":
        message = gren.step_commit(args.message, use_llm=args.llm)
        console.print(f"[green]Committed: {escape(message)}[/green]")
    elif args.action == "squash":
        count = gren.step_squash(target, args.message, use_llm=args.llm)
        console.print(f"[green]Squashed {count} commits[/green]")
    elif args.action == "rebase":
        if gren.step_rebase(target):
            console.print("[green]Rebased onto target[/green]")
        else:
            console.print("Already up to date")
    elif args.action == "push":
        sha = gren.step_push(target)
        console.print(f"[green]Fast-forwarded target to {sha[:7]}[/green]")
    elif args.action == "restore":
        ref = gren.step_restore()
        console.print(f"[green]Restored from {escape(ref)}[/green]")
    return 0


def cmd_for_each(gren: Gren, args, display: DisplayService) -> int:
    if not args.cmd:
        console.print("[red]Error: no command given (usage: gren for-each -- CMD...)[/red]")
        return 1
    options = ForEachOptions(
        command=args.cmd,
        skip_current=args.skip_current,
        skip_main=args.skip_main,
        parallel=args.parallel,
        workers=args.workers,
    )
    results = gren.for_each(options)
    display.display_foreach_results(results)
    return 0 if all(result.success for result in results) else 1


def cmd_marker(gren: Gren, args, display: DisplayService) -> int:
    if args.marker_action == "set":
        value = gren.set_marker(args.type, args.branch)
        console.print(f"Marker set: {marker_display(value)}")
    elif args.marker_action == "clear":
        gren.clear_marker(args.branch)
        console.print("Marker cleared")
    elif args.marker_action == "get":
        value = gren.get_marker(args.branch)
        console.print(marker_display(value) if value else "[dim]No marker[/dim]")
    elif args.marker_action == "list":
        markers = gren.list_markers()
        if not markers:
            console.print("[dim]No markers[/dim]")
        for branch, value in sorted(markers.items()):
            console.print(f"{escape(branch)}: {marker_display(value)}")
    return 0


def cmd_pr(gren: Gren, args, display: DisplayService) -> int:
    pr = gren.get_pr(args.name) if args.no_open else gren.open_pr(args.name)
    if pr is None:
        console.print("[yellow]No pull request found[/yellow]")
        return 1
    console.print(f"#{pr.number} {pr.state} {pr.url}")
    return 0


def cmd_compare(gren: Gren, args, display: DisplayService) -> int:
    if not args.apply:
        display.display_compare_result(gren.compare(args.source))
        return 0

    applied = gren.apply_changes(args.source, args.paths or None)
    for change in applied:
        console.print(f"  {change.status}: {escape(change.path)}")
    console.print(f"[green]Applied {len(applied)} file(s) from {escape(args.source)}[/green]")
    return 0


def _report_switch(result) -> None:
    for output in result.hook_output:
        _print_hook_output(output)
    for warning in result.warnings:
        console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")
    if not result.shell_integration:
        console.print("Navigation command written. Set up shell integration to follow it:")
        console.print('  eval "$(gren shell-init bash)"  # or zsh/fish')


def cmd_switch(gren: Gren, args, display: DisplayService) -> int:
    result = gren.switch(args.query, execute=args.execute)
    _report_switch(result)
    return 0


def cmd_shell_init(args) -> int:
    # Printed raw so the output can be eval'd
    sys.stdout.write(shell_init_script(args.shell))
    return 0


COMMANDS = {
    "init": cmd_init,
    "create": cmd_create,
    "list": cmd_list,
    "delete": cmd_delete,
    "cleanup": cmd_cleanup,
    "merge": cmd_merge,
    "step": cmd_step,
    "for-each": cmd_for_each,
    "marker": cmd_marker,
    "pr": cmd_pr,
    "compare": cmd_compare,
    "switch": cmd_switch,
}


def main(argv=None):
    """Main entry point for the application."""
    parsed_args = None
    try:
        # Parse command line arguments
        parsed_args = parse_args(argv)

        # Setup logging before creating Gren
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        # Shell integration is installed from rc files, outside any repository
        if parsed_args.command == "shell-init":
            return cmd_shell_init(parsed_args)

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")

            # Show threading information
            from git_gren.utils.threading import get_threading_info
            threading_info = get_threading_info()
            console.print("[yellow]Threading Information:[/yellow]")
            console.print(f"  Python version: {threading_info['python_version']}")
            console.print(f"  Threading mode: {threading_info['mode']}")
            console.print(f"  CPU count: {threading_info['cpu_count']}")
            console.print(f"  Optimal workers: {threading_info['optimal_workers']}")
            console.print(f"  Free-threading enabled: {threading_info['free_threading']}")

        gren = Gren(os.getcwd(), use_github=not getattr(parsed_args, "no_github", False))

        if parsed_args.debug:
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in gren.config.to_dict().items():
                console.print(f"  {key}: {value}")

        display = DisplayService(verbose=parsed_args.verbose, debug=parsed_args.debug)
        return COMMANDS[parsed_args.command](gren, parsed_args, display)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
