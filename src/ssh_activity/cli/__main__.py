"""
Allow running activityctl as a module: python -m ssh_activity.cli
"""

import sys
from .activityctl import main

if __name__ == "__main__":
    sys.exit(main())
