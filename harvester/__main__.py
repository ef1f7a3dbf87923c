"""
Allows execution via: python -m harvester
"""

import sys

from harvester.main import main

if __name__ == "__main__":
    sys.exit(main())
