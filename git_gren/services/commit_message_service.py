"""Commit message generation through an external command (e.g. an LLM CLI)."""

import os
import subprocess
from typing import Optional

from git_gren.config import CommitGeneratorConfig
from git_gren.exceptions import CommitMessageError
from git_gren.logging_config import get_logger

logger = get_logger(__name__)

DIFF_SIZE_THRESHOLD = 400000
MAX_SUBJECT_LENGTH = 72

LOCK_FILES = {
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "Cargo.lock",
    "go.sum",
    "Gemfile.lock",
    "poetry.lock",
    "Pipfile.lock",
    "composer.lock",
    "flake.lock",
}

MESSAGE_PREFIXES = (
    "Here's the commit message:",
    "Here is the commit message:",
    "Commit message:",
    "commit message:",
)

DEFAULT_PROMPT = (
    "Generate a concise git commit message for the following changes.\n"
    "Follow conventional commits format (feat:, fix:, docs:, refactor:, test:, chore:, etc.).\n"
    "Be specific but concise. One line only, maximum 72 characters.\n"
    "Focus on WHAT changed and WHY, not HOW.\n"
    "Do not include any extra text, just the commit message.\n\n"
)


def _diff_header_path(line: str) -> str:
    # diff --git a/path b/path
    parts = line.split(" ")
    if len(parts) >= 4 and parts[2].startswith("a/"):
        return parts[2][2:]
    return parts[2] if len(parts) >= 3 else ""


def filter_lock_files(diff: str) -> str:
    """Drop the file sections of lock files from a unified diff."""
    kept = []
    in_lock_file = False
    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            path = _diff_header_path(line)
            in_lock_file = os.path.basename(path) in LOCK_FILES
            if in_lock_file:
                logger.debug(f"Filtering lock file from diff: {path}")
        if not in_lock_file:
            kept.append(line)
    return "\n".join(kept)


def truncate_diff(diff: str, limit: int = DIFF_SIZE_THRESHOLD) -> str:
    if len(diff) <= limit:
        return diff
    logger.debug(f"Diff truncated to {limit} characters")
    return diff[:limit] + "\n\n... (diff truncated for LLM processing)"


def clean_commit_message(output: str) -> str:
    """Reduce generator output to a single commit subject line."""
    msg = output.strip()

    if msg.startswith("```"):
        msg = msg[3:]
        end = msg.find("```")
        if end != -1:
            msg = msg[:end]
        msg = msg.strip()
        # Drop a language tag such as ```text
        first, _, rest = msg.partition("\n")
        if rest and " " not in first and ":" not in first:
            msg = rest.strip()

    for prefix in MESSAGE_PREFIXES:
        if msg.startswith(prefix):
            msg = msg[len(prefix):]
    msg = msg.strip()

    if len(msg) >= 2 and msg[0] == msg[-1] and msg[0] in ("\"", "'"):
        msg = msg[1:-1]

    msg = msg.split("\n", 1)[0].strip()

    if len(msg) > MAX_SUBJECT_LENGTH:
        msg = msg[:MAX_SUBJECT_LENGTH - 3] + "..."
    return msg


class CommitMessageGenerator:
    """Runs `command args...` with a prompt on stdin and reads a message from stdout."""

    def __init__(self, config: CommitGeneratorConfig, timeout: Optional[int] = None):
        self.config = config
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def build_prompt(self, diff: str, context: str = "") -> str:
        if self.config.template:
            prompt = self.config.template
            for placeholder in ("{{ diff }}", "{{diff}}"):
                prompt = prompt.replace(placeholder, diff)
            for placeholder in ("{{ context }}", "{{context}}"):
                prompt = prompt.replace(placeholder, context)
            return prompt

        prompt = DEFAULT_PROMPT
        if context:
            prompt += f"Context:\n{context}\n\n"
        return prompt + f"Diff:\n{diff}"

    def generate(self, diff: str, context: str = "") -> str:
        """Generate a commit message for diff.

        Raises:
            CommitMessageError: If no generator is configured, it fails, or it returns nothing
        """
        if not self.enabled:
            raise CommitMessageError("commit message generator not configured")

        prompt = self.build_prompt(truncate_diff(filter_lock_files(diff)), context)
        argv = [self.config.command, *self.config.args]
        logger.debug(f"Generating commit message with: {' '.join(argv)}")

        try:
            completed = subprocess.run(
                argv,
                input=prompt,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CommitMessageError(f"commit message command failed: {e}") from e

        if completed.returncode != 0:
            raise CommitMessageError(
                f"commit message command failed (exit {completed.returncode}): "
                f"{completed.stderr.strip()}"
            )

        message = clean_commit_message(completed.stdout)
        if not message:
            raise CommitMessageError("commit message command returned no message")
        return message

    def generate_squash(self, diff: str, commit_log: str, branch: str, target: str) -> str:
        context = f"Branch: {branch}\nTarget: {target}\n\nCommits being squashed:\n{commit_log}"
        return self.generate(diff, context)
