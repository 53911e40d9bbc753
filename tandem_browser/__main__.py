"""
Entry point for running as a module.

Usage: python -m tandem_browser run navigate --url https://example.com
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
