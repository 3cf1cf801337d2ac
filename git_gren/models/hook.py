"""Hook model."""

from dataclasses import dataclass
from enum import Enum


class HookType(Enum):
    """Lifecycle points at which user hooks run."""

    POST_CREATE = "post-create"
    PRE_REMOVE = "pre-remove"
    PRE_MERGE = "pre-merge"
    POST_MERGE = "post-merge"
    POST_SWITCH = "post-switch"
    POST_START = "post-start"

    @property
    def config_key(self) -> str:
        return self.value.replace("-", "_")


@dataclass
class HookResult:
    """Outcome of a single hook invocation."""

    hook_type: HookType
    command: str = ""
    success: bool = True
    output: str = ""
    error: str = ""

    @property
    def ran(self) -> bool:
        return bool(self.command)
