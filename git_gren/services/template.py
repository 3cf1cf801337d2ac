"""{{ variable }} expansion for hook and for-each commands."""

import re
from dataclasses import dataclass
from typing import Dict

_VARIABLE_RE = re.compile(r"\{\{\s*([a-z_]+)\s*(?:\|\s*([a-z_]+)\s*)?\}\}")


def sanitize_branch(branch: str) -> str:
    """Make a branch name usable as a single path component."""
    return branch.replace("/", "-").replace("\\", "-")


@dataclass
class TemplateContext:
    """Values available to command templates for one worktree."""

    branch: str = ""
    worktree: str = ""
    worktree_name: str = ""
    repo: str = ""
    repo_root: str = ""
    commit: str = ""
    short_commit: str = ""
    default_branch: str = ""

    def variables(self) -> Dict[str, str]:
        return {
            "branch": self.branch,
            "worktree": self.worktree,
            "worktree_name": self.worktree_name,
            "repo": self.repo,
            "repo_root": self.repo_root,
            "commit": self.commit,
            "short_commit": self.short_commit,
            "default_branch": self.default_branch,
        }


FILTERS = {
    "sanitize": sanitize_branch,
}


def expand_template(template: str, context: TemplateContext) -> str:
    """Replace {{ var }} and {{ var | filter }} placeholders.

    Unknown variables and filters are left as written.
    """
    variables = context.variables()

    def replace(match: "re.Match") -> str:
        name, filter_name = match.group(1), match.group(2)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        if filter_name:
            if filter_name not in FILTERS:
                return match.group(0)
            value = FILTERS[filter_name](value)
        return value

    return _VARIABLE_RE.sub(replace, template)
