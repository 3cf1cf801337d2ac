"""Core functionality for git-gren."""

from git_gren.core.gren import Gren

__all__ = ["Gren"]
