"""
Entry point for running docsync from a source checkout.

Equivalent to the installed `docsync` command.
"""

import sys

from docsync.cli import main

if __name__ == "__main__":
    sys.exit(main())
