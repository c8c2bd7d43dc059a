"""
yakchat - Entry point for ``python -m yakchat`` and the console script.
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
