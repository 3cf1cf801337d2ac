"""Allow running as `python -m git_gren`."""

import sys

from git_gren.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
