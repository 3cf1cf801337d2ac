"""Command-line argument parsing for git-gren."""

import argparse
from git_gren.__version__ import __version__

STEP_ACTIONS = ["commit", "squash", "rebase", "push", "restore"]
SWITCH_ALIASES = ["navigate", "nav", "cd"]
SHELLS = ["bash", "zsh", "fish"]


def build_parser() -> argparse.ArgumentParser:
    """Build the gren argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="gren",
        description="Git worktree management tool",
        epilog="PR and CI columns need a github.com origin and the GITHUB_TOKEN environment variable.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"gren {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information and write ~/.gren/gren.log"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    init = subparsers.add_parser("init", help="Create .gren/config.toml and a post-create hook")
    init.add_argument("--project-name", default="", help="Project name (default: repository directory name)")

    create = subparsers.add_parser("create", help="Create a worktree")
    create.add_argument("name", help="Worktree name (also the branch name unless -b is given)")
    create.add_argument("-b", "--branch", default="", help="Branch to check out")
    create.add_argument("--base", default="", help="Base ref for a new branch (default: main/master)")
    create.add_argument(
        "-n", "--new", action="store_true", help="Create the branch if it does not exist"
    )
    create.add_argument("--dir", default="", help="Directory to create the worktree in")
    create.add_argument(
        "-x", "--execute", default="", help="Switch to the new worktree and run this command there"
    )

    list_cmd = subparsers.add_parser("list", help="List worktrees")
    list_cmd.add_argument("--no-github", action="store_true", help="Skip GitHub PR lookups")
    list_cmd.add_argument("--ci", action="store_true", help="Include CI check status")
    list_cmd.add_argument("--legend", action="store_true", help="Show legend and summary")

    delete = subparsers.add_parser("delete", help="Delete a worktree")
    delete.add_argument("name", help="Worktree name, path or branch")
    delete.add_argument(
        "-f", "--force", action="store_true", help="Delete even with uncommitted changes"
    )

    cleanup = subparsers.add_parser("cleanup", help="Delete stale worktrees")
    cleanup.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview mode - show what would be deleted without actually deleting",
    )
    cleanup.add_argument(
        "--force-delete", action="store_true", help="Delete even with uncommitted changes"
    )
    cleanup.add_argument("--no-github", action="store_true", help="Skip GitHub PR lookups")

    merge = subparsers.add_parser("merge", help="Merge the current worktree into a target branch")
    merge.add_argument("target", nargs="?", default="", help="Target branch (default: main/master)")
    merge.add_argument("--no-squash", action="store_true", help="Keep individual commits")
    merge.add_argument("--no-rebase", action="store_true", help="Do not rebase onto the target")
    merge.add_argument("--no-remove", action="store_true", help="Keep the worktree after merging")
    merge.add_argument("--no-verify", action="store_true", help="Skip merge hooks")
    merge.add_argument("--force", action="store_true", help="Do not commit uncommitted changes first")

    step = subparsers.add_parser("step", help="Run a single merge step")
    step.add_argument("action", choices=STEP_ACTIONS, help="Step to run")
    step.add_argument("target", nargs="?", default="", help="Target branch (default: main/master)")
    step.add_argument("-m", "--message", default="", help="Commit message")
    step.add_argument(
        "--llm", action="store_true", help="Generate the message with the configured commit generator"
    )

    for_each = subparsers.add_parser("for-each", help="Run a command in every worktree")
    for_each.add_argument("--skip-current", action="store_true", help="Skip the current worktree")
    for_each.add_argument("--skip-main", action="store_true", help="Skip the main worktree")
    for_each.add_argument("--parallel", action="store_true", help="Run worktrees in parallel")
    for_each.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of parallel workers (default: auto-detect based on CPU and threading mode)",
    )
    for_each.add_argument(
        "cmd",
        nargs=argparse.REMAINDER,
        metavar="-- CMD",
        help="Command to run; supports {{ branch }}, {{ worktree }}, {{ commit }} and friends",
    )

    marker = subparsers.add_parser("marker", help="Manage activity markers")
    marker_sub = marker.add_subparsers(dest="marker_action", metavar="ACTION")
    marker_sub.required = True
    marker_set = marker_sub.add_parser("set", help="Set a marker (working, waiting, idle or custom)")
    marker_set.add_argument("type", help="Marker type")
    marker_set.add_argument("--branch", default="", help="Branch (default: current)")
    marker_clear = marker_sub.add_parser("clear", help="Clear a marker")
    marker_clear.add_argument("--branch", default="", help="Branch (default: current)")
    marker_get = marker_sub.add_parser("get", help="Show a marker")
    marker_get.add_argument("--branch", default="", help="Branch (default: current)")
    marker_sub.add_parser("list", help="List all markers")

    pr = subparsers.add_parser("pr", help="Open the pull request for a worktree")
    pr.add_argument("name", nargs="?", default="", help="Worktree name (default: current)")
    pr.add_argument("--no-open", action="store_true", help="Print the URL without opening a browser")

    compare = subparsers.add_parser("compare", help="List or apply files another worktree changes")
    compare.add_argument("source", help="Worktree to compare against the current one")
    compare.add_argument("paths", nargs="*", help="Only apply these files (with --apply)")
    compare.add_argument(
        "--apply", action="store_true", help="Copy the changed files into the current worktree"
    )

    switch = subparsers.add_parser(
        "switch",
        aliases=SWITCH_ALIASES,
        help="Switch to a worktree (needs shell integration, see shell-init)",
        epilog="Use '-' for the previous worktree and '@' for the current one.",
    )
    switch.add_argument("query", help="Worktree name, branch, or part of a branch name")
    switch.add_argument("-x", "--execute", default="", help="Command to run after switching")

    shell_init = subparsers.add_parser("shell-init", help="Print shell integration for switch")
    shell_init.add_argument("shell", choices=SHELLS, help="Shell to generate the wrapper for")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    args = build_parser().parse_args(argv)
    if args.command in SWITCH_ALIASES:
        args.command = "switch"
    if args.command == "for-each" and args.cmd and args.cmd[0] == "--":
        args.cmd = args.cmd[1:]
    return args
