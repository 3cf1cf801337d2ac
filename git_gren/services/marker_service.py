"""Activity markers stored in the repository's local git config."""

from typing import Dict
from urllib.parse import quote, unquote

import git

from git_gren.logging_config import get_logger

logger = get_logger(__name__)

MARKER_PREFIX = "gren.marker."
MARKER_SUFFIX = ".type"
MARKER_TIMEOUT = 5  # seconds

MARKER_WORKING = "working"
MARKER_WAITING = "waiting"
MARKER_IDLE = "idle"

MARKER_ALIASES = {
    "working": MARKER_WORKING,
    "work": MARKER_WORKING,
    "🤖": MARKER_WORKING,
    "waiting": MARKER_WAITING,
    "wait": MARKER_WAITING,
    "💬": MARKER_WAITING,
    "idle": MARKER_IDLE,
    "💤": MARKER_IDLE,
}

MARKER_EMOJI = {
    MARKER_WORKING: "🤖",
    MARKER_WAITING: "💬",
    MARKER_IDLE: "💤",
}


def encode_branch(branch: str) -> str:
    """Percent-encode a branch name so it is a single config subsection."""
    return quote(branch, safe="")


def decode_branch(encoded: str) -> str:
    return unquote(encoded)


def marker_key(branch: str) -> str:
    return f"{MARKER_PREFIX}{encode_branch(branch)}{MARKER_SUFFIX}"


def parse_marker_type(value: str) -> str:
    """Normalize a marker value; known aliases map to their canonical name.

    Raises:
        ValueError: If value is empty
    """
    value = value.strip()
    if not value:
        raise ValueError("marker type cannot be empty")
    return MARKER_ALIASES.get(value.lower(), value)


def marker_display(value: str) -> str:
    return MARKER_EMOJI.get(value, value)


class MarkerService:
    """Get/set/clear/list markers; every operation is bounded by a short timeout
    and treats failure as "no marker"."""

    def __init__(self, repo_path: str, timeout: int = MARKER_TIMEOUT):
        self.repo_path = repo_path
        self.timeout = timeout

    def _config(self, *args: str) -> str:
        return git.Git(self.repo_path).config("--local", *args, kill_after_timeout=self.timeout)

    def set_marker(self, branch: str, marker_type: str) -> bool:
        value = parse_marker_type(marker_type)
        try:
            self._config(marker_key(branch), value)
        except (git.exc.GitError, OSError) as e:
            logger.warning(f"Could not set marker for {branch}: {e}")
            return False
        logger.info(f"Set marker {value} on {branch}")
        return True

    def clear_marker(self, branch: str) -> bool:
        try:
            self._config("--unset", marker_key(branch))
        except (git.exc.GitError, OSError) as e:
            logger.debug(f"No marker cleared for {branch}: {e}")
            return False
        logger.info(f"Cleared marker on {branch}")
        return True

    def get_marker(self, branch: str) -> str:
        try:
            return self._config("--get", marker_key(branch)).strip()
        except (git.exc.GitError, OSError):
            return ""

    def list_markers(self) -> Dict[str, str]:
        """All markers keyed by (decoded) branch name."""
        try:
            output = self._config("--get-regexp", r"^gren\.marker\.")
        except (git.exc.GitError, OSError) as e:
            # git exits 1 when nothing matches
            logger.debug(f"No markers listed: {e}")
            return {}

        markers = {}
        for line in output.splitlines():
            key, _, value = line.partition(" ")
            if not (key.startswith(MARKER_PREFIX) and key.endswith(MARKER_SUFFIX)):
                continue
            encoded = key[len(MARKER_PREFIX):-len(MARKER_SUFFIX)]
            if encoded:
                markers[decode_branch(encoded)] = value.strip()
        return markers
