"""
Module execution entry point.

Allows running with: python -m kirocred_cli
"""

import sys
from kirocred_cli.main import main

if __name__ == "__main__":
    sys.exit(main())
