#!/usr/bin/env python3
"""
rssfilter - RSS/Atom Feed Filtering Proxy
=========================================

Launcher for the command line interface.

Usage:
    python main.py --help
    python main.py filter https://example.com/feed.xml -t '^Sponsored'
    python main.py serve
    python main.py check-config
"""

import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from rssfilter.cli import main

if __name__ == '__main__':
    main()
