#!/usr/bin/env python3
"""
Fetch GitHub metadata for data/repos.yaml and write generated/repos.json
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from repo_directory.enrich import main


if __name__ == '__main__':
    sys.exit(main())
