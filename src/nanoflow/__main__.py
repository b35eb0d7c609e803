"""
Entry point for running nanoflow as a module.

Usage:
    python -m nanoflow run workflow.json
"""

import sys

from nanoflow.main import main

if __name__ == "__main__":
    sys.exit(main())
