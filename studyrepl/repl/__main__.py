"""
Entry point for running the StudyREPL as a module.

Usage: python3 -m studyrepl.repl
"""

import sys

from .repl import main

if __name__ == "__main__":
    sys.exit(main())
