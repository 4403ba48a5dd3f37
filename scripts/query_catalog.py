#!/usr/bin/env python3
"""
Search the generated snapshot from the command line
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from repo_directory.query import main


if __name__ == '__main__':
    sys.exit(main())
