"""
Main entry point for the datamask CLI when run as a module.

    python -m datamask.cli
"""

import sys

from . import main

if __name__ == '__main__':
    sys.exit(main())
