#!/usr/bin/env python3
"""
GitWatch Runner Script.

Watches a directory tree and commits changed files without installing
the package.
Requires Python 3.11+.

Usage:
    python scripts/gitwatch.py /path/to/repository [-delayed]
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from service.cli import main


if __name__ == "__main__":
    sys.exit(main())
