"""Version information for git-gren."""

__version__ = "0.1.0"
