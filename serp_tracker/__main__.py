"""
Allow running the rank tracker as a module:
    python -m serp_tracker KEYWORD [KEYWORD ...] --domain DOMAIN [options]
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
