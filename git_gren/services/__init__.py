"""Services for git-gren."""
