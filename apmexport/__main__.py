"""
apmexport.__main__ - Entry point for running apmexport as a module.

Usage:
    python -m apmexport <input_file> [options]

This module enables running apmexport using:
    python -m apmexport spans.json --dry-run
"""

import sys

from apmexport.cli import main

if __name__ == "__main__":
    sys.exit(main())
