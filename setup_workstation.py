#!/usr/bin/env python3
"""
Workstation Setup - provision a workstation from an application catalog.

Usage:
    setup_workstation.py                          # Provision the built-in catalog
    setup_workstation.py --catalog apps.yml       # Provision a custom catalog
    setup_workstation.py --dry-run                # Detect only
    setup_workstation.py --log-level Debug --email me@example.com
"""

import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from workstation_setup.cli import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
