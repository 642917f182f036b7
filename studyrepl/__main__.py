"""
Usage: python3 -m studyrepl [eval EXPR | run FILE | repl]
"""

import sys

from .repl import main

if __name__ == "__main__":
    sys.exit(main())
