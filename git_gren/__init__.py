"""
git-gren - Git worktree lifecycle and branch reconciliation tool
"""

from .__version__ import __version__
from .core import Gren
from .cli.main import main

__all__ = ["Gren", "main", "__version__"]
