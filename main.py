#!/usr/bin/env python3
"""
Entry point wrapper for the judge CLI.

Allows running the grader from a source checkout without installing it.
"""

import sys
import os

bundle_dir = os.path.dirname(os.path.abspath(__file__))

# Add checkout directory to path
sys.path.insert(0, bundle_dir)

if __name__ == "__main__":
    from judge.cli import main
    sys.exit(main())
